"""
JSON extraction and repair for model output.
"""

import json
import re
from typing import Any

from vibes_pipeline.features.vibes.errors import ParseError

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_MISSING_SEPARATOR_RE = re.compile(r"([}\]])(\s*)([{\[])")


def extract_json_text(raw: str) -> str:
    """Strip code fences and any prose around the outermost object."""
    text = _FENCE_RE.sub("", raw).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start : end + 1]


def repair_json_text(text: str) -> str:
    """Drop trailing commas and separate adjacent object/array literals."""
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return _MISSING_SEPARATOR_RE.sub(r"\1,\2\3", text)


def parse_model_json(raw: str) -> tuple[Any, bool]:
    """
    Parse model output into a JSON value.

    Returns:
        ``(value, repaired)`` where ``repaired`` is True when the repair pass
        was needed.

    Raises:
        ParseError: still invalid after one repair pass
    """
    text = extract_json_text(raw)
    try:
        return json.loads(text), False
    except json.JSONDecodeError:
        pass

    repaired = repair_json_text(text)
    try:
        return json.loads(repaired), True
    except json.JSONDecodeError as e:
        merged = _merge_top_level_objects(repaired)
        if merged is None:
            raise ParseError(f"Model returned invalid JSON: {e.msg} at position {e.pos}") from e
        return merged, True


def _merge_top_level_objects(text: str) -> dict[str, Any] | None:
    """Join ``{..},{..}`` emitted at top level into one object; later keys win."""
    try:
        parts = json.loads(f"[{text}]")
    except json.JSONDecodeError:
        return None
    if len(parts) < 2 or not all(isinstance(part, dict) for part in parts):
        return None

    merged: dict[str, Any] = {}
    for part in parts:
        merged.update(part)
    return merged
