"""
Compact descriptions of JSON values for the read path.

Agents get a shallow summary or a short preview instead of raw payloads, so
a large subtree never floods their context.
"""

from __future__ import annotations

from typing import Any, Dict

from ..db.values import ValueKind, kind_of

PREVIEW_KEYS = 3
PREVIEW_CHARS = 80


def describe(value: Any) -> Dict[str, Any]:
    """Type and size of one value: childCount, length or the value itself."""
    kind = kind_of(value)
    if kind == ValueKind.ARRAY:
        return {"type": kind.value, "length": len(value)}
    if kind == ValueKind.OBJECT:
        return {"type": kind.value, "childCount": len(value)}
    return {"type": kind.value, "value": value}


def shallow_summary(data: Any) -> Any:
    """Replace each child of an object with its description.

    Arrays collapse to their length; scalars and null are returned as-is.
    """
    kind = kind_of(data)
    if kind == ValueKind.ARRAY:
        return {"type": kind.value, "length": len(data)}
    if kind == ValueKind.OBJECT:
        return {key: describe(child) for key, child in data.items()}
    return data


def preview(data: Any) -> str:
    """One-line preview: `Array(n)`, `{ a, b, c, ... }` or truncated scalar."""
    kind = kind_of(data)
    if kind == ValueKind.NULL:
        return "null"
    if kind == ValueKind.ARRAY:
        return f"Array({len(data)})"
    if kind == ValueKind.OBJECT:
        keys = list(data)
        more = ", ..." if len(keys) > PREVIEW_KEYS else ""
        return "{ " + ", ".join(keys[:PREVIEW_KEYS]) + more + " }"
    if kind == ValueKind.BOOLEAN:
        text = "true" if data else "false"
    else:
        text = str(data)
    return text[:PREVIEW_CHARS] + "..." if len(text) > PREVIEW_CHARS else text
