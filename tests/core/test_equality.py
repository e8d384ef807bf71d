"""Tests for value-kind aware equality."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

from ledgersync.core.equality import infer_kind, values_equal
from ledgersync.core.types import ValueKind


class TestPrimitive:
    """Tests for primitive comparison."""

    def test_equal_strings(self) -> None:
        assert values_equal("a", "a")
        assert not values_equal("a", "b")

    def test_decimal_scale_ignored(self) -> None:
        """Decimal('1.0') and Decimal('1') are the same amount."""
        assert values_equal(Decimal("1.0"), Decimal("1"))

    def test_none(self) -> None:
        assert values_equal(None, None)
        assert not values_equal(None, "")


class TestInstant:
    """Tests for instant comparison."""

    def test_same_instant_different_offsets(self) -> None:
        """Instants compare by point in time, not by representation."""
        utc = datetime(2025, 3, 1, 10, 0, tzinfo=UTC)
        plus_two = datetime(2025, 3, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert values_equal(utc, plus_two, ValueKind.INSTANT)

    def test_naive_read_as_utc(self) -> None:
        """Naive datetimes and ISO strings are taken as UTC."""
        aware = datetime(2025, 3, 1, 10, 0, tzinfo=UTC)
        assert values_equal(datetime(2025, 3, 1, 10, 0), aware, ValueKind.INSTANT)
        assert values_equal("2025-03-01T10:00:00Z", aware, ValueKind.INSTANT)

    def test_different_instants(self) -> None:
        a = datetime(2025, 3, 1, 10, 0, tzinfo=UTC)
        assert not values_equal(a, a + timedelta(seconds=1), ValueKind.INSTANT)

    def test_none_only_equals_none(self) -> None:
        now = datetime(2025, 3, 1, tzinfo=UTC)
        assert values_equal(None, None, ValueKind.INSTANT)
        assert not values_equal(None, now, ValueKind.INSTANT)

    def test_unparseable_is_not_equal(self) -> None:
        now = datetime(2025, 3, 1, tzinfo=UTC)
        assert not values_equal("not a date", now, ValueKind.INSTANT)


class TestOrderedList:
    """Tests for ordered list comparison."""

    def test_same_elements_same_order(self) -> None:
        assert values_equal([1, 2, 3], [1, 2, 3], ValueKind.ORDERED_LIST)

    def test_order_matters(self) -> None:
        assert not values_equal([1, 2], [2, 1], ValueKind.ORDERED_LIST)

    def test_length_matters(self) -> None:
        assert not values_equal([1, 2], [1, 2, 3], ValueKind.ORDERED_LIST)

    def test_nested_maps_compared_deeply(self) -> None:
        """List elements that are maps are compared by content."""
        a = [{"currency": "EUR", "rate": Decimal("1.10")}]
        b = [{"rate": Decimal("1.1"), "currency": "EUR"}]
        assert values_equal(a, b, ValueKind.ORDERED_LIST)

    def test_nested_instants(self) -> None:
        a = [{"at": datetime(2025, 1, 1, tzinfo=UTC)}]
        b = [{"at": "2025-01-01T00:00:00+00:00"}]
        assert values_equal(a, b, ValueKind.ORDERED_LIST)

    def test_none_handling(self) -> None:
        assert values_equal(None, None, ValueKind.ORDERED_LIST)
        assert not values_equal(None, [], ValueKind.ORDERED_LIST)


class TestKeyedMap:
    """Tests for keyed map comparison."""

    def test_key_order_ignored(self) -> None:
        a = {"EUR": Decimal("1.1"), "GBP": Decimal("0.8")}
        b = {"GBP": Decimal("0.8"), "EUR": Decimal("1.1")}
        assert values_equal(a, b, ValueKind.KEYED_MAP)

    def test_missing_key(self) -> None:
        assert not values_equal({"EUR": 1}, {"EUR": 1, "GBP": 2}, ValueKind.KEYED_MAP)

    def test_different_value(self) -> None:
        assert not values_equal({"EUR": 1}, {"EUR": 2}, ValueKind.KEYED_MAP)

    def test_not_a_map(self) -> None:
        assert not values_equal({"EUR": 1}, [("EUR", 1)], ValueKind.KEYED_MAP)


class TestInferKind:
    """Tests for nested kind inference."""

    def test_inference(self) -> None:
        assert infer_kind(datetime(2025, 1, 1)) is ValueKind.INSTANT
        assert infer_kind({"a": 1}) is ValueKind.KEYED_MAP
        assert infer_kind([1]) is ValueKind.ORDERED_LIST
        assert infer_kind((1,)) is ValueKind.ORDERED_LIST
        assert infer_kind("text") is ValueKind.PRIMITIVE
        assert infer_kind(Decimal("1")) is ValueKind.PRIMITIVE
