"""
JSON value classification.

Payloads read from or written to the database are arbitrary JSON values.
Every component that needs to tell structured values from scalars asks
kind_of() instead of doing its own isinstance checks, so the branches over
ValueKind stay exhaustive.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Union

JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]


class ValueKind(Enum):
    """Kinds of JSON value, named the way they are reported to agents."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    @property
    def is_structured(self) -> bool:
        """Whether values of this kind have children."""
        return self in (ValueKind.ARRAY, ValueKind.OBJECT)


def kind_of(value: Any) -> ValueKind:
    """Classify a decoded JSON value.

    Raises:
        TypeError: If the value is not JSON-like
    """
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.OBJECT
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


def child_items(value: Any) -> list[tuple[str, Any]]:
    """Return (key, child) pairs of a structured value.

    Arrays are keyed by index, skipping holes, which is how the database
    stores them.
    """
    kind = kind_of(value)
    if kind == ValueKind.OBJECT:
        return [(str(k), v) for k, v in value.items()]
    if kind == ValueKind.ARRAY:
        return [(str(i), v) for i, v in enumerate(value) if v is not None]
    return []
