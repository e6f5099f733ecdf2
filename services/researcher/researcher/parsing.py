import json
import logging
import re
from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from .models import GroundingSource

logger = logging.getLogger("parsing")

M = TypeVar("M", bound=BaseModel)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.I)
_FENCE_CLOSE = re.compile(r"```\s*$")


def strip_code_fence(text: str) -> str:
    """Drop a leading ```json / ``` marker and a trailing ``` marker, if present."""
    t = (text or "").strip()
    t = _FENCE_OPEN.sub("", t, count=1)
    return _FENCE_CLOSE.sub("", t, count=1)


def extract_json_array(text: str) -> Optional[str]:
    """
    Slice from the first '[' to the last ']' (inclusive).
    Models like to wrap the array in prose or fences; everything outside is ignored.
    """
    cleaned = strip_code_fence(text)
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start == -1 or end == -1 or end < start:
        return None
    return cleaned[start:end + 1]


def parse_records(raw_text: str, model: Type[M]) -> Optional[List[M]]:
    """
    Best-effort parse of the model's answer into typed records.
    Returns None when the text holds no usable JSON array; callers fall back to raw text.
    """
    chunk = extract_json_array(raw_text)
    if chunk is None:
        logger.warning("Could not find JSON array in the response (%s).", model.__name__)
        return None

    try:
        data = json.loads(chunk)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse response as JSON (%s): %s", model.__name__, e)
        return None

    if not isinstance(data, list):
        logger.warning("Response JSON is not an array (%s).", model.__name__)
        return None

    try:
        return TypeAdapter(List[model]).validate_python(data)
    except ValidationError as e:
        logger.warning("Response JSON does not match %s: %s", model.__name__, e.error_count())
        return None


def extract_sources(response: Any) -> List[GroundingSource]:
    """
    Web sources from the first candidate's grounding metadata.
    Chunks without a web uri are skipped; order is kept.
    """
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    meta = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(meta, "grounding_chunks", None) or []

    out = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None) if web else None
        if not uri:
            continue
        out.append(GroundingSource(uri=uri, title=getattr(web, "title", None) or ""))
    return out
