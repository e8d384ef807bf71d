"""Versioned record model.

Every synchronized entity (ledger, transaction, category) is a frozen
dataclass derived from ``VersionedRecord``. Each kind declares:

- ``FIELDS``: the fixed, ordered list of mergeable fields. These are the
  only values a merge compares or copies.
- ``EXTRA_FIELDS``: domain fields that travel with the record but are
  never merged field by field (scope keys, audit details).

The envelope fields (id, version, last_synced_version, base, deleted_at,
timestamps) are managed by the sync algorithms and the helpers below.

``last_synced_version`` and ``base`` always describe the same thing: the
counterpart record as it was observed at the last successful merge,
respectively its version number and its mergeable values.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar, TypeVar

from ledgersync.core.instants import format_instant, parse_instant
from ledgersync.core.types import PaymentMode, RecordKind, ValueKind

R = TypeVar("R", bound="VersionedRecord")


class MalformedRecordError(ValueError):
    """A record is missing its identity or version, or has the wrong shape."""


def _identity(value: Any) -> Any:
    return value


def _encode_decimal(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _decode_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedRecordError(f"Not a decimal: {value!r}") from e


def _encode_rates(value: Mapping[str, Decimal] | None) -> dict[str, str]:
    return {code: str(rate) for code, rate in (value or {}).items()}


def _decode_rates(value: Mapping[str, Any] | None) -> dict[str, Decimal]:
    return {code: Decimal(str(rate)) for code, rate in (value or {}).items()}


def _encode_list(value: Iterable[Any] | None) -> list[Any]:
    return list(value or [])


def _encode_payment_mode(value: PaymentMode) -> str:
    return PaymentMode(value).value


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of a record field.

    Attributes:
        name: Attribute name on the record dataclass.
        kind: How values are compared during a merge.
        encode: Converts the value to a JSON-compatible form.
        decode: Converts a JSON-compatible form back to the value.
    """

    name: str
    kind: ValueKind = ValueKind.PRIMITIVE
    encode: Callable[[Any], Any] = _identity
    decode: Callable[[Any], Any] = _identity


DELETED_FIELD = FieldSpec("deleted")


def decimal_field(name: str) -> FieldSpec:
    """Spec for a Decimal field stored as a string."""
    return FieldSpec(name, ValueKind.PRIMITIVE, _encode_decimal, _decode_decimal)


def instant_field(name: str) -> FieldSpec:
    """Spec for a datetime field stored as ISO-8601."""
    return FieldSpec(name, ValueKind.INSTANT, format_instant, parse_instant)


@dataclass(frozen=True, kw_only=True)
class VersionedRecord:
    """Envelope shared by every synchronized record kind."""

    KIND: ClassVar[RecordKind]
    FIELDS: ClassVar[tuple[FieldSpec, ...]] = (DELETED_FIELD,)
    EXTRA_FIELDS: ClassVar[tuple[FieldSpec, ...]] = ()
    SCOPE_FIELD: ClassVar[str | None] = None

    id: str
    version: int = 1
    last_synced_version: int = 0
    base: Mapping[str, Any] | None = None
    deleted: bool = False
    deleted_at: datetime | None = None
    last_modified_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        """Names of the mergeable fields, in declaration order."""
        return tuple(spec.name for spec in cls.FIELDS)

    @classmethod
    def field_spec(cls, name: str) -> FieldSpec:
        """Look up a mergeable or extra field spec by name.

        Raises:
            KeyError: If the kind has no such field.
        """
        for spec in cls.FIELDS + cls.EXTRA_FIELDS:
            if spec.name == name:
                return spec
        raise KeyError(f"{cls.KIND.value} has no field {name!r}")

    @classmethod
    def create(
        cls: type[R],
        *,
        actor: str,
        now: datetime,
        id: str | None = None,
        **values: Any,
    ) -> R:
        """Create a brand new record at version 1.

        Args:
            actor: Replica creating the record.
            now: Creation time.
            id: Explicit id; a random one is generated when omitted.
            **values: Domain field values.
        """
        _check_domain_fields(cls, values)
        return cls(
            id=id or uuid.uuid4().hex,
            version=1,
            last_modified_by=actor,
            created_at=now,
            updated_at=now,
            **values,
        )

    @property
    def kind(self) -> RecordKind:
        """Kind of this record."""
        return self.KIND

    @property
    def scope(self) -> str | None:
        """Scope key the remote store groups this record under."""
        if self.SCOPE_FIELD is None:
            return None
        value: str | None = getattr(self, self.SCOPE_FIELD)
        return value

    @property
    def has_local_changes(self) -> bool:
        """True when this copy carries edits the counterpart has not seen."""
        return self.version > self.last_synced_version

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        data: dict[str, Any] = {
            "kind": self.KIND.value,
            "id": self.id,
            "version": self.version,
            "last_synced_version": self.last_synced_version,
            "base": encode_values(type(self), self.base) if self.base is not None else None,
            "deleted_at": format_instant(self.deleted_at),
            "last_modified_by": self.last_modified_by,
            "created_at": format_instant(self.created_at),
            "updated_at": format_instant(self.updated_at),
        }
        for spec in self.FIELDS + self.EXTRA_FIELDS:
            data[spec.name] = spec.encode(getattr(self, spec.name))
        return data

    @classmethod
    def from_dict(cls: type[R], data: Mapping[str, Any]) -> R:
        """Create a record from a dictionary produced by ``to_dict``.

        Raises:
            MalformedRecordError: If id or version is missing or invalid.
        """
        record_id = data.get("id")
        version = data.get("version")
        if not record_id or not isinstance(record_id, str):
            raise MalformedRecordError(f"{cls.KIND.value} record without id: {data!r}")
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise MalformedRecordError(
                f"{cls.KIND.value} {record_id} has invalid version {version!r}"
            )
        kind = data.get("kind")
        if kind is not None and kind != cls.KIND.value:
            raise MalformedRecordError(
                f"Expected {cls.KIND.value} record, got {kind!r} for {record_id}"
            )

        values: dict[str, Any] = {}
        for spec in cls.FIELDS + cls.EXTRA_FIELDS:
            if spec.name in data and data[spec.name] is not None:
                values[spec.name] = spec.decode(data[spec.name])
        values["deleted"] = bool(data.get("deleted", False))

        base = data.get("base")
        return cls(
            id=record_id,
            version=version,
            last_synced_version=int(data.get("last_synced_version") or 0),
            base=decode_values(cls, base) if base is not None else None,
            deleted_at=parse_instant(data.get("deleted_at")),
            last_modified_by=data.get("last_modified_by"),
            created_at=parse_instant(data.get("created_at")),
            updated_at=parse_instant(data.get("updated_at")),
            **values,
        )


@dataclass(frozen=True, kw_only=True)
class Ledger(VersionedRecord):
    """A ledger ("book") grouping transactions in one currency."""

    KIND: ClassVar[RecordKind] = RecordKind.LEDGER
    FIELDS: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("currency"),
        decimal_field("locked_exchange_rate"),
        FieldSpec("archived"),
        FieldSpec("currency_history", ValueKind.ORDERED_LIST, _encode_list, _encode_list),
        DELETED_FIELD,
    )
    EXTRA_FIELDS: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("target_currency"),
        instant_field("rate_locked_at"),
    )

    name: str = ""
    description: str = ""
    currency: str = "USD"
    locked_exchange_rate: Decimal | None = None
    archived: bool = False
    currency_history: list[dict[str, Any]] = field(default_factory=list)
    target_currency: str | None = None
    rate_locked_at: datetime | None = None


@dataclass(frozen=True, kw_only=True)
class Transaction(VersionedRecord):
    """A single transaction ("entry") inside a ledger."""

    KIND: ClassVar[RecordKind] = RecordKind.TRANSACTION
    FIELDS: ClassVar[tuple[FieldSpec, ...]] = (
        decimal_field("amount"),
        instant_field("date"),
        FieldSpec("counterparty"),
        FieldSpec("category"),
        FieldSpec("payment_mode", ValueKind.PRIMITIVE, _encode_payment_mode, PaymentMode),
        FieldSpec("remarks"),
        FieldSpec("historical_rates", ValueKind.KEYED_MAP, _encode_rates, _decode_rates),
        DELETED_FIELD,
    )
    EXTRA_FIELDS: ClassVar[tuple[FieldSpec, ...]] = (FieldSpec("ledger_id"),)
    SCOPE_FIELD: ClassVar[str | None] = "ledger_id"

    ledger_id: str = ""
    amount: Decimal = Decimal("0")
    date: datetime | None = None
    counterparty: str = ""
    category: str | None = None
    payment_mode: PaymentMode = PaymentMode.CASH
    remarks: str = ""
    historical_rates: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class Category(VersionedRecord):
    """A user-defined transaction category."""

    KIND: ClassVar[RecordKind] = RecordKind.CATEGORY
    FIELDS: ClassVar[tuple[FieldSpec, ...]] = (
        FieldSpec("name"),
        FieldSpec("description"),
        FieldSpec("color"),
        FieldSpec("icon"),
        DELETED_FIELD,
    )

    name: str = ""
    description: str = ""
    color: str = "#9e9e9e"
    icon: str = "tag"


RECORD_TYPES: dict[RecordKind, type[VersionedRecord]] = {
    RecordKind.LEDGER: Ledger,
    RecordKind.TRANSACTION: Transaction,
    RecordKind.CATEGORY: Category,
}

_ENVELOPE = frozenset(f.name for f in fields(VersionedRecord)) - {"deleted"}


def record_type(kind: RecordKind | str) -> type[VersionedRecord]:
    """Return the record class for a kind (or its string value).

    Raises:
        KeyError: If the kind is unknown.
    """
    try:
        return RECORD_TYPES[RecordKind(kind)]
    except ValueError as e:
        raise KeyError(f"Unknown record kind: {kind!r}") from e


def record_from_dict(data: Mapping[str, Any], kind: RecordKind | str | None = None) -> VersionedRecord:
    """Deserialize a record, taking the kind from the payload when not given."""
    kind = kind or data.get("kind")
    if kind is None:
        raise MalformedRecordError(f"Record without kind: {data!r}")
    return record_type(kind).from_dict(data)


def encode_values(cls: type[VersionedRecord], values: Mapping[str, Any]) -> dict[str, Any]:
    """Encode a mapping of mergeable values with the kind's codecs."""
    return {
        spec.name: spec.encode(values[spec.name]) for spec in cls.FIELDS if spec.name in values
    }


def decode_values(cls: type[VersionedRecord], values: Mapping[str, Any]) -> dict[str, Any]:
    """Decode a mapping of mergeable values with the kind's codecs."""
    decoded: dict[str, Any] = {}
    for spec in cls.FIELDS:
        if spec.name in values:
            raw = values[spec.name]
            decoded[spec.name] = spec.decode(raw) if raw is not None else None
    return decoded


def mergeable_values(record: VersionedRecord) -> dict[str, Any]:
    """Snapshot of a record's mergeable field values."""
    return {name: getattr(record, name) for name in record.field_names()}


def mutate(record: R, *, actor: str, now: datetime, **changes: Any) -> R:
    """Apply a local edit: set fields and bump the version by exactly one.

    Args:
        record: Record to edit.
        actor: Replica making the edit.
        now: Edit time.
        **changes: Domain field values (``deleted_at`` is also accepted).

    Raises:
        ValueError: If a change targets an envelope or unknown field.
    """
    deleted_at = changes.pop("deleted_at", record.deleted_at)
    _check_domain_fields(type(record), changes)
    return replace(
        record,
        version=record.version + 1,
        deleted_at=deleted_at,
        last_modified_by=actor,
        updated_at=now,
        **changes,
    )


def tombstone(record: R, *, actor: str, now: datetime) -> R:
    """Delete a record by flagging it; the record stays in the set."""
    return mutate(record, actor=actor, now=now, deleted=True, deleted_at=now)


def mark_synced(record: R) -> R:
    """Record that the counterpart now holds exactly this version."""
    return replace(
        record,
        last_synced_version=record.version,
        base=mergeable_values(record),
    )


def _check_domain_fields(cls: type[VersionedRecord], values: Mapping[str, Any]) -> None:
    domain = {spec.name for spec in cls.FIELDS + cls.EXTRA_FIELDS}
    for name in values:
        if name in _ENVELOPE or name not in domain:
            raise ValueError(f"Cannot set {name!r} on a {cls.KIND.value} record")
