from __future__ import annotations

import hashlib
from typing import Dict, Optional

from sitebuilder.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Raw model responses keyed by prompt hash
_cache: Dict[str, str] = {}
_MAX_CACHE_SIZE = 100


def make_key(kind: str, prompt: str) -> str:
    content = f"{kind}|{prompt}"
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def get_cached(kind: str, prompt: str) -> Optional[str]:
    key = make_key(kind, prompt)
    result = _cache.get(key)
    if result:
        LOGGER.info("Cache HIT for %s key %s", kind, key)
    return result


def set_cached(kind: str, prompt: str, response: str) -> None:
    key = make_key(kind, prompt)
    # FIFO eviction
    if key not in _cache and len(_cache) >= _MAX_CACHE_SIZE:
        oldest_key = next(iter(_cache))
        del _cache[oldest_key]
    _cache[key] = response
    LOGGER.debug("Cache SET for %s key %s", kind, key)


def clear_cache() -> None:
    _cache.clear()
    LOGGER.info("Generation cache cleared")
