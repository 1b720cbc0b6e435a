"""
Safe access into schema-less document data.

Game systems put whatever they like under a document's ``system`` key, so the
shape of that data is only known at runtime. These helpers walk nested
mappings and return None instead of raising when a key is missing or a value
has the wrong type.
"""

from __future__ import annotations

from typing import Any, Mapping, Union

# Values found in FoundryVTT document data (decoded JSON)
JSONValue = Union[str, int, float, bool, None, dict[str, Any], list[Any]]


def is_record(value: Any) -> bool:
    """Return True for mapping values (JSON objects), False for everything else."""
    return isinstance(value, Mapping)


def extract_nested(obj: Any, *keys: str) -> JSONValue | None:
    """
    Follow a chain of keys through nested mappings.

    Args:
        obj: Root mapping (usually a document's ``system`` data)
        *keys: Keys to follow in order

    Returns:
        The value at the end of the chain, or None if any step is missing
        or is not a mapping

    Example:
        >>> extract_nested({"attributes": {"hp": {"value": 7}}}, "attributes", "hp", "value")
        7
        >>> extract_nested({"attributes": 3}, "attributes", "hp") is None
        True
    """
    current = obj
    for key in keys:
        if is_record(current) and key in current:
            current = current[key]
        else:
            return None
    return current


def extract_string(obj: Any, *keys: str) -> str | None:
    """Like extract_nested, but only returns str values."""
    value = extract_nested(obj, *keys)
    return value if isinstance(value, str) else None


def extract_number(obj: Any, *keys: str) -> int | float | None:
    """Like extract_nested, but only returns int/float values (bools excluded)."""
    value = extract_nested(obj, *keys)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def extract_record(obj: Any, *keys: str) -> Mapping[str, Any] | None:
    """Like extract_nested, but only returns mapping values."""
    value = extract_nested(obj, *keys)
    return value if is_record(value) else None
