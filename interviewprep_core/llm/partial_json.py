"""Incremental parsing of streamed JSON objects."""

from typing import Any, Dict, Optional

from pydantic_core import from_json


def parse_partial_json(text: str) -> Optional[Dict[str, Any]]:
    """Parse a possibly truncated JSON object.

    Returns None until at least an opening object is available. Trailing
    incomplete strings are kept as prefixes.
    """
    text = text.strip()
    if not text.startswith("{"):
        start = text.find("{")
        if start < 0:
            return None
        text = text[start:]
    try:
        value = from_json(text, allow_partial="trailing-strings")
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def merge_partial(previous: Any, current: Any) -> Any:
    """Merge a newer partial over an older one.

    A value that has appeared never reverts to empty: keys missing from the
    newer partial are kept, lists keep at least as many items as before,
    and empty strings do not replace non-empty ones.
    """
    if isinstance(previous, dict) and isinstance(current, dict):
        merged = dict(previous)
        for key, value in current.items():
            merged[key] = merge_partial(previous.get(key), value) if key in previous else value
        return merged

    if isinstance(previous, list) and isinstance(current, list):
        items = [
            merge_partial(previous[i], current[i]) if i < len(previous) else current[i]
            for i in range(len(current))
        ]
        if len(previous) > len(current):
            items.extend(previous[len(current):])
        return items

    if current is None or current == "" or current == [] or current == {}:
        return previous if previous not in (None, "", [], {}) else current

    return current


__all__ = ["parse_partial_json", "merge_partial"]
