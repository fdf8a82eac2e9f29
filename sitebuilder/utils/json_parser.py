import json
import re
from typing import Any, Dict


def extract_json_object(text: str) -> Dict[str, Any]:
    """Pull a single JSON object out of raw model output.

    Accepts bare JSON, JSON inside a markdown fence, or JSON surrounded by
    chatter. Raises ValueError when nothing usable is found.
    """
    if not text or not text.strip():
        raise ValueError("Empty response from generation service")
    if text.count("```") % 2 == 1:
        raise ValueError("Detected unterminated markdown fence in model response")

    candidates = [text.strip()]
    candidates.extend(m.strip() for m in re.findall(r"```(?:json)?\s*([\s\S]*?)\s*```", text))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1].strip())

    for candidate in candidates:
        if not _looks_complete(candidate):
            continue
        for loader in (_strict, _repaired):
            try:
                parsed = loader(candidate)
            except (json.JSONDecodeError, ValueError):
                continue
            if isinstance(parsed, dict):
                return parsed

    raise ValueError("Failed to parse a JSON object from model response")


def _strict(candidate: str) -> Any:
    return json.loads(candidate)


def _repaired(candidate: str) -> Any:
    # trailing commas before } or ]
    fixed = re.sub(r",\s*([}\]])", r"\1", candidate)
    return json.loads(fixed, strict=False)


def _looks_complete(segment: str) -> bool:
    stripped = segment.strip()
    return bool(stripped) and stripped[0] in "{[" and stripped[-1] in "}]"
