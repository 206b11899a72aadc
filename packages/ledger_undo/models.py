"""Data models for the ``ledger_undo`` package.

Two families live here:

- Pydantic models for everything that is persisted in the local history file
  (:class:`Action`, the :data:`Snapshot` union and :class:`HistoryFile`).
  Snapshots are a tagged union discriminated by ``collection`` so a
  deserialized action always carries an explicit, typed previous state.
- Frozen dataclasses for in-process results (:class:`ValidationResult`,
  :class:`UndoResult`, :class:`UndoOutcome`, :class:`UndoStats`).

Snapshot field names are identical to the backing-store column names so a
snapshot can be written back without any mapping table.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ActionKind(str, Enum):
    """Semantics of the reversal, not the storage shape."""

    UPDATE_RECORD = "update_record"
    UPDATE_PROJECTED_RECORD = "update_projected_record"
    DELETE_RECORD = "delete_record"
    QUICK_CLASSIFY = "quick_classify"


class Collection(str, Enum):
    """The two backing collections an action can target."""

    TRANSACTIONS = "transactions"
    FUTURE_TRANSACTIONS = "future_transactions"


class UndoErrorKind(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    INVALID_PREVIOUS_STATE = "invalid_previous_state"
    STALE = "stale"
    NOT_FOUND = "not_found"
    DUPLICATE_ON_RESTORE = "duplicate_on_restore"
    STORE_ERROR = "store_error"
    # Raised at the controller boundary only
    NOTHING_TO_UNDO = "nothing_to_undo"
    BUSY = "busy"


# A backing-store row as a plain mapping of column name -> value.
type Record = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Snapshots (previous-state captures)
# ---------------------------------------------------------------------------


class _SnapshotBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _mark_tag_set(self):
        # The discriminator must survive exclude_unset dumps
        self.__pydantic_fields_set__.add("collection")
        return self


class TransactionSnapshot(_SnapshotBase):
    """Previous state of a posted transaction."""

    collection: Literal["transactions"] = "transactions"
    id: str

    # Classification fields
    account: str | None = None
    category: str | None = None
    subtype: str | None = None
    description: str | None = None
    realized: Literal["s", "p"] | None = None

    # Record fields
    month: str | None = None
    date: dt.date | None = None
    source_description: str | None = None
    amount: Decimal | None = None
    origin: str | None = None
    cost_center: str | None = None

    # Reconciliation linkage
    linked_future_group: str | None = None
    is_from_reconciliation: bool | None = None
    future_subscription_id: str | None = None
    reconciliation_metadata: dict[str, Any] | None = None


class FutureTransactionSnapshot(_SnapshotBase):
    """Previous state of a projected (future) transaction."""

    collection: Literal["future_transactions"] = "future_transactions"
    id: str

    # Classification fields
    category: str | None = None
    subtype: str | None = None
    description: str | None = None
    status: Literal["projected", "confirmed", "paid"] | None = None
    account: str | None = None

    # Record and installment fields
    original_transaction_id: str | None = None
    due_month: str | None = None
    due_date: dt.date | None = None
    source_description: str | None = None
    amount: Decimal | None = None
    origin: str | None = None
    cost_center: str | None = None
    installment_current: int | None = None
    installment_total: int | None = None
    establishment: str | None = None

    # Reconciliation linkage
    subscription_fingerprint: str | None = None
    original_future_id: str | None = None
    reconciliation_group: str | None = None
    is_reconciled: bool | None = None
    closed_bill_id: str | None = None
    original_amount: Decimal | None = None
    reconciled_at: dt.datetime | None = None
    reconciled_with_transaction_id: str | None = None


Snapshot = Annotated[
    TransactionSnapshot | FutureTransactionSnapshot, Field(discriminator="collection")
]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class ActionDraft(BaseModel):
    """An action as submitted by callers, before id/timestamp are assigned."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ActionKind
    target_id: str
    collection: Collection
    previous_state: Snapshot
    description: str


class Action(ActionDraft):
    """One recorded, reversible mutation."""

    id: str
    timestamp: dt.datetime

    @field_validator("timestamp")
    @classmethod
    def _require_aware(cls, v: dt.datetime) -> dt.datetime:
        if v.tzinfo is None:
            raise ValueError("timestamp must be timezone-aware")
        return v


class HistoryFile(BaseModel):
    """Top-level schema of the persisted history slot."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int
    key: str
    actions: list[Action]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    reason: str | None = None
    error: UndoErrorKind | None = None


@dataclass(frozen=True, slots=True)
class UndoResult:
    """Outcome of replaying one action against the backing store."""

    success: bool
    error: str | None = None
    error_kind: UndoErrorKind | None = None
    restored_item: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class UndoOutcome:
    """What the controller reports back to the caller for one undo request."""

    success: bool
    message: str
    error_kind: UndoErrorKind | None = None
    restored_item: dict[str, Any] | None = None
    action: Action | None = None


@dataclass(frozen=True, slots=True)
class UndoStats:
    has_actions: bool
    total_actions: int
    last_action_description: str | None
    last_action_time: str | None
    can_execute_undo: bool


__all__ = [
    "Action",
    "ActionDraft",
    "ActionKind",
    "Collection",
    "FutureTransactionSnapshot",
    "HistoryFile",
    "Record",
    "Snapshot",
    "TransactionSnapshot",
    "UndoErrorKind",
    "UndoOutcome",
    "UndoResult",
    "UndoStats",
    "ValidationResult",
]
