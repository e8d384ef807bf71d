"""Deep, value-kind aware equality for mergeable fields.

The merge compares field values with ``values_equal``, which dispatches
on the field's declared ``ValueKind``:

- PRIMITIVE: plain ``==`` (Decimal("1.0") equals Decimal("1"))
- INSTANT: same point in time, naive values read as UTC
- ORDERED_LIST: same length and pairwise equal elements
- KEYED_MAP: same keys and equal values per key

Nested list/map elements are compared with the kind inferred from
their runtime type.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from typing import Any

from ledgersync.core.instants import parse_instant
from ledgersync.core.types import ValueKind


def values_equal(a: Any, b: Any, kind: ValueKind = ValueKind.PRIMITIVE) -> bool:
    """Compare two field values according to their value kind.

    Args:
        a: First value.
        b: Second value.
        kind: Declared value kind of the field.

    Returns:
        True if the values are considered equal.
    """
    return _COMPARATORS[kind](a, b)


def infer_kind(value: Any) -> ValueKind:
    """Infer the value kind of a nested element."""
    if isinstance(value, datetime):
        return ValueKind.INSTANT
    if isinstance(value, Mapping):
        return ValueKind.KEYED_MAP
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return ValueKind.ORDERED_LIST
    return ValueKind.PRIMITIVE


def _element_equal(a: Any, b: Any) -> bool:
    kind = infer_kind(a)
    if kind is ValueKind.PRIMITIVE:
        kind = infer_kind(b)
    return values_equal(a, b, kind)


def _primitive_equal(a: Any, b: Any) -> bool:
    return bool(a == b)


def _instant_equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    try:
        return parse_instant(a) == parse_instant(b)
    except (TypeError, ValueError):
        return False


def _list_equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if not isinstance(a, Sequence) or not isinstance(b, Sequence):
        return False
    if len(a) != len(b):
        return False
    return all(_element_equal(x, y) for x, y in zip(a, b, strict=True))


def _map_equal(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if not isinstance(a, Mapping) or not isinstance(b, Mapping):
        return False
    if set(a) != set(b):
        return False
    return all(_element_equal(a[key], b[key]) for key in a)


_COMPARATORS: dict[ValueKind, Callable[[Any, Any], bool]] = {
    ValueKind.PRIMITIVE: _primitive_equal,
    ValueKind.INSTANT: _instant_equal,
    ValueKind.ORDERED_LIST: _list_equal,
    ValueKind.KEYED_MAP: _map_equal,
}
