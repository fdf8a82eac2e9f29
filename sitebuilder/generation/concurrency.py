import asyncio
from typing import Optional

from sitebuilder.settings import get_settings

_semaphore: Optional[asyncio.Semaphore] = None


def get_generation_semaphore() -> asyncio.Semaphore:
    """
    Process-wide cap on concurrent generation-service calls.
    Independent of the per-kind single-flight guard in the coordinators.
    """
    global _semaphore
    if _semaphore is None:
        settings = get_settings()
        _semaphore = asyncio.Semaphore(settings.llm_semaphore)
    return _semaphore


def reset_generation_semaphore() -> None:
    global _semaphore
    _semaphore = None
