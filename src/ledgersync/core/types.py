"""Shared types for ledgersync.

This module defines enums used by the client, the server and the CLI.
"""

from __future__ import annotations

from enum import Enum


class RecordKind(str, Enum):
    """Kinds of synchronized records.

    The declaration order is the order a sync pass reconciles them in:
    transactions reference ledgers and categories.
    """

    LEDGER = "ledger"
    TRANSACTION = "transaction"
    CATEGORY = "category"


class ValueKind(Enum):
    """How a mergeable field value is compared."""

    PRIMITIVE = "primitive"
    INSTANT = "instant"
    ORDERED_LIST = "ordered_list"
    KEYED_MAP = "keyed_map"


class PaymentMode(str, Enum):
    """How a transaction was paid."""

    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    NET_BANKING = "net_banking"
    CHEQUE = "cheque"
    OTHER = "other"


class SyncState(str, Enum):
    """Phase of the sync orchestrator.

    A pass moves IDLE -> PULLING -> MERGING -> PUSHING and settles on
    IDLE or CONFLICTS_PENDING. Losing the network mid-pass returns to IDLE
    with the error recorded on the status.
    """

    IDLE = "idle"
    PULLING = "pulling"
    MERGING = "merging"
    PUSHING = "pushing"
    CONFLICTS_PENDING = "conflicts_pending"


class StatusIndicator(str, Enum):
    """User-facing summary of the sync status."""

    SYNCING = "syncing"
    OFFLINE = "offline"
    ERROR = "error"
    CONFLICTS_PENDING = "conflicts_pending"
    UP_TO_DATE = "up_to_date"
