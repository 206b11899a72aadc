"""Previous-state capture for undoable mutations.

Everything here is a pure function of its inputs: no I/O, no logging.

- ``extract``: build a typed snapshot from a backing-store record.
- ``changed``: compare a record against a snapshot on the classification
  fields, so callers can skip recording no-op edits.
- ``describe``: human-readable summary of an action.
- ``is_valid_previous_state``: per-kind check that a snapshot carries what
  the reversal needs.
- ``restorable_fields``: the column set written back when reversing an update.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .models import (
    ActionKind,
    Collection,
    FutureTransactionSnapshot,
    Record,
    Snapshot,
    TransactionSnapshot,
)

_SNAPSHOT_MODELS: dict[Collection, type[TransactionSnapshot] | type[FutureTransactionSnapshot]] = {
    Collection.TRANSACTIONS: TransactionSnapshot,
    Collection.FUTURE_TRANSACTIONS: FutureTransactionSnapshot,
}

# Fields whose change makes an edit worth recording
_CLASSIFICATION_FIELDS: dict[Collection, tuple[str, ...]] = {
    Collection.TRANSACTIONS: ("account", "category", "subtype", "description", "realized"),
    Collection.FUTURE_TRANSACTIONS: ("category", "subtype", "description", "status"),
}

# Minimum fields (by presence) each kind needs to be reversible
_REQUIRED_FIELDS: dict[ActionKind, tuple[str, ...]] = {
    ActionKind.UPDATE_RECORD: ("id", "account", "category", "subtype"),
    ActionKind.UPDATE_PROJECTED_RECORD: ("id", "category", "subtype"),
    ActionKind.DELETE_RECORD: ("id",),
    ActionKind.QUICK_CLASSIFY: ("id", "account", "category"),
}

# Linkage columns reset when absent from a snapshot being restored
_LINKAGE_DEFAULTS: dict[Collection, dict[str, Any]] = {
    Collection.TRANSACTIONS: {
        "linked_future_group": None,
        "is_from_reconciliation": False,
        "future_subscription_id": None,
        "reconciliation_metadata": None,
    },
    Collection.FUTURE_TRANSACTIONS: {
        "original_transaction_id": None,
        "subscription_fingerprint": None,
        "original_future_id": None,
        "reconciliation_group": None,
        "is_reconciled": False,
        "closed_bill_id": None,
        "original_amount": None,
        "reconciled_at": None,
        "reconciled_with_transaction_id": None,
    },
}

_GENERIC_DESCRIPTIONS: dict[ActionKind, str] = {
    ActionKind.UPDATE_RECORD: "Transaction edit",
    ActionKind.UPDATE_PROJECTED_RECORD: "Projected transaction edit",
    ActionKind.DELETE_RECORD: "Transaction deletion",
    ActionKind.QUICK_CLASSIFY: "Quick classification",
}

# en-US grouping ("1,234.56") -> pt-BR grouping ("1.234,56")
_PT_BR_SEPARATORS = str.maketrans({",": ".", ".": ","})


def collection_for(kind: ActionKind) -> Collection:
    """Return the collection an action of ``kind`` targets."""

    if kind is ActionKind.UPDATE_PROJECTED_RECORD:
        return Collection.FUTURE_TRANSACTIONS
    return Collection.TRANSACTIONS


def _norm_id(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None


def extract(record: Record, kind: ActionKind) -> Snapshot:
    """Capture the mutable fields of ``record`` before a ``kind`` mutation.

    Every snapshot field is set explicitly (missing record keys become
    ``None``) so the snapshot carries the full field set for its collection.
    Raises ``ValueError`` when the record has no primary key.
    """

    record_id = _norm_id(record.get("id"))
    if record_id is None:
        raise ValueError("cannot snapshot a record without a primary key")

    model = _SNAPSHOT_MODELS[collection_for(kind)]
    values = {
        name: record.get(name)
        for name in model.model_fields
        if name not in ("collection", "id")
    }
    return model(id=record_id, **values)


def changed(current: Record, previous: Snapshot) -> bool:
    """Return True when ``current`` differs from ``previous`` on classification fields."""

    fields = _CLASSIFICATION_FIELDS[Collection(previous.collection)]
    return any(current.get(name) != getattr(previous, name) for name in fields)


def format_brl(amount: Any) -> str:
    """Format an absolute monetary amount as ``R$ 1.234,56``."""

    try:
        value = abs(Decimal(str(amount)))
    except (InvalidOperation, ValueError):
        return "R$ 0,00"
    value = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return "R$ " + f"{value:,.2f}".translate(_PT_BR_SEPARATORS)


def describe(
    kind: ActionKind,
    *,
    account: str | None = None,
    category: str | None = None,
    establishment: str | None = None,
    amount: Any = None,
) -> str:
    """Build the human-readable description of an action.

    Falls back to a generic phrase per ``kind`` when the relevant details are
    missing.
    """

    if kind is ActionKind.UPDATE_RECORD and account and category:
        return f"Classification as {account} > {category}"
    if kind is ActionKind.UPDATE_PROJECTED_RECORD and category and establishment:
        return f"Classification of {establishment} as {category}"
    if kind is ActionKind.DELETE_RECORD and amount:
        return f"Transaction deletion ({format_brl(amount)})"
    if kind is ActionKind.QUICK_CLASSIFY and account and category:
        return f"Quick classification: {account} > {category}"
    return _GENERIC_DESCRIPTIONS[kind]


def is_valid_previous_state(
    snapshot: Snapshot | None,
    kind: ActionKind,
    *,
    collection: Collection | None = None,
    target_id: str | None = None,
) -> bool:
    """Return True when ``snapshot`` can drive the reversal of ``kind``.

    Checks, in order: the snapshot variant matches the collection ``kind``
    targets (and ``collection`` when given), its id matches ``target_id``
    when given, and every field ``kind`` requires was captured.
    """

    if snapshot is None:
        return False

    expected = collection_for(kind)
    if Collection(snapshot.collection) is not expected:
        return False
    if collection is not None and Collection(collection) is not expected:
        return False
    if target_id is not None and snapshot.id != target_id:
        return False

    present = snapshot.model_fields_set | {"id"}
    return all(name in present for name in _REQUIRED_FIELDS[kind])


def restorable_fields(snapshot: Snapshot) -> dict[str, Any]:
    """Return the column values to write back when reversing an update."""

    fields = snapshot.model_dump(
        include=set(snapshot.model_fields_set), exclude={"id", "collection"}
    )
    for name, default in _LINKAGE_DEFAULTS[Collection(snapshot.collection)].items():
        if fields.get(name) is None:
            fields[name] = default
    return fields


def insertable_fields(snapshot: Snapshot) -> dict[str, Any]:
    """Return the full column set used to recreate a deleted record."""

    return snapshot.model_dump(exclude={"collection"})


__all__ = [
    "changed",
    "collection_for",
    "describe",
    "extract",
    "format_brl",
    "insertable_fields",
    "is_valid_previous_state",
    "restorable_fields",
]
