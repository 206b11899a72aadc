"""Validate and replay the reversal of one recorded action.

``validate`` decides whether the newest action can still be undone (snapshot
shape, age, owner, target existence). ``execute`` performs exactly one store
write per action kind and reports the outcome as an :class:`UndoResult`;
expected failures never raise.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from . import snapshots
from .history import STALE_AFTER
from .logging_setup import get_logger
from .models import (
    Action,
    ActionKind,
    Collection,
    UndoErrorKind,
    UndoResult,
    ValidationResult,
)
from .store import Err, RecordStore, StoreErrorKind

REASON_INVALID_STATE = "Invalid previous state for this operation"
REASON_STALE = "Action is too old (more than 24 hours)"
REASON_NOT_AUTHENTICATED = "User not authenticated"
REASON_NOT_FOUND = "Item not found (it may have been deleted)"
REASON_DUPLICATE = "Transaction was already restored or still exists"

_logger = get_logger("ledger_undo.executor")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UndoExecutor:
    """Replays reversals against a :class:`RecordStore`."""

    def __init__(self, store: RecordStore, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def _state_ok(self, action: Action) -> bool:
        return snapshots.is_valid_previous_state(
            action.previous_state,
            action.kind,
            collection=action.collection,
            target_id=action.target_id,
        )

    def validate(self, action: Action) -> ValidationResult:
        if not self._state_ok(action):
            return ValidationResult(
                False, REASON_INVALID_STATE, UndoErrorKind.INVALID_PREVIOUS_STATE
            )

        if self._clock() - action.timestamp > STALE_AFTER:
            return ValidationResult(False, REASON_STALE, UndoErrorKind.STALE)

        owner = self._store.current_owner()
        if not owner:
            return ValidationResult(
                False, REASON_NOT_AUTHENTICATED, UndoErrorKind.NOT_AUTHENTICATED
            )

        # A deleted record is expected to be gone; nothing to look up
        if action.kind is ActionKind.DELETE_RECORD:
            return ValidationResult(True)

        found = self._store.select(Collection(action.collection), action.target_id, owner)
        if isinstance(found, Err):
            return ValidationResult(False, found.message, UndoErrorKind.STORE_ERROR)
        if found.record is None:
            return ValidationResult(False, REASON_NOT_FOUND, UndoErrorKind.NOT_FOUND)
        return ValidationResult(True)

    def execute(self, action: Action) -> UndoResult:
        """Apply the reversal of ``action``. Does not touch the history."""

        _logger.info(
            "undo:execute kind=%s target_id=%s description=%s",
            action.kind.value,
            action.target_id,
            action.description,
        )

        if not self._state_ok(action):
            return UndoResult(False, REASON_INVALID_STATE, UndoErrorKind.INVALID_PREVIOUS_STATE)

        owner = self._store.current_owner()
        if not owner:
            return UndoResult(False, REASON_NOT_AUTHENTICATED, UndoErrorKind.NOT_AUTHENTICATED)

        match action.kind:
            case (
                ActionKind.UPDATE_RECORD
                | ActionKind.QUICK_CLASSIFY
                | ActionKind.UPDATE_PROJECTED_RECORD
            ):
                return self._restore_update(action, owner)
            case ActionKind.DELETE_RECORD:
                return self._restore_delete(action, owner)

    def _restore_update(self, action: Action, owner: str) -> UndoResult:
        collection = snapshots.collection_for(action.kind)
        result = self._store.update(
            collection,
            action.target_id,
            owner,
            snapshots.restorable_fields(action.previous_state),
        )
        if isinstance(result, Err):
            if result.kind is StoreErrorKind.NOT_FOUND:
                return UndoResult(False, REASON_NOT_FOUND, UndoErrorKind.NOT_FOUND)
            return UndoResult(
                False, f"Failed to undo update: {result.message}", UndoErrorKind.STORE_ERROR
            )
        return UndoResult(True, restored_item=result.record)

    def _restore_delete(self, action: Action, owner: str) -> UndoResult:
        fields = snapshots.insertable_fields(action.previous_state)
        fields["user_id"] = owner
        result = self._store.insert(Collection.TRANSACTIONS, fields)
        if isinstance(result, Err):
            if result.kind is StoreErrorKind.DUPLICATE_KEY:
                return UndoResult(False, REASON_DUPLICATE, UndoErrorKind.DUPLICATE_ON_RESTORE)
            return UndoResult(
                False, f"Failed to restore transaction: {result.message}", UndoErrorKind.STORE_ERROR
            )
        return UndoResult(True, restored_item=result.record)


__all__ = [
    "REASON_DUPLICATE",
    "REASON_INVALID_STATE",
    "REASON_NOT_AUTHENTICATED",
    "REASON_NOT_FOUND",
    "REASON_STALE",
    "UndoExecutor",
]
