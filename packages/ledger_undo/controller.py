"""Undo façade: record snapshots before mutations and undo the newest one.

Callers record *before* they mutate::

    controller.record_transaction_update(current_row)
    store.update(...)

and later call :meth:`UndoController.undo`, which validates, replays and pops
the newest action. The façade never raises under normal operation; every
outcome is an :class:`UndoOutcome`.
"""

from __future__ import annotations

from . import snapshots
from .executor import UndoExecutor
from .history import HistoryManager
from .logging_setup import get_logger
from .models import (
    Action,
    ActionDraft,
    ActionKind,
    Record,
    UndoErrorKind,
    UndoOutcome,
    UndoStats,
)

MSG_NOTHING_TO_UNDO = "Nothing to undo"
MSG_BUSY = "Cannot undo right now"

_logger = get_logger("ledger_undo.controller")


class UndoController:
    def __init__(self, history: HistoryManager, executor: UndoExecutor) -> None:
        self.history = history
        self.executor = executor

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_change(self, record: Record, kind: ActionKind) -> Action | None:
        """Snapshot ``record`` (its pre-mutation state) as an action of ``kind``.

        Returns ``None`` when nothing was recorded (an undo is in progress).
        """

        snapshot = snapshots.extract(record, kind)
        description = snapshots.describe(
            kind,
            account=record.get("account"),
            category=record.get("category"),
            establishment=record.get("establishment"),
            amount=record.get("amount"),
        )
        draft = ActionDraft(
            kind=kind,
            target_id=snapshot.id,
            collection=snapshots.collection_for(kind),
            previous_state=snapshot,
            description=description,
        )
        return self.history.push(draft)

    def record_transaction_update(
        self, record: Record, *, quick_classify: bool = False
    ) -> Action | None:
        kind = ActionKind.QUICK_CLASSIFY if quick_classify else ActionKind.UPDATE_RECORD
        return self.record_change(record, kind)

    def record_future_transaction_update(self, record: Record) -> Action | None:
        return self.record_change(record, ActionKind.UPDATE_PROJECTED_RECORD)

    def record_transaction_delete(self, record: Record) -> Action | None:
        return self.record_change(record, ActionKind.DELETE_RECORD)

    def should_record_transaction_change(self, current: Record, original: Record) -> bool:
        return snapshots.changed(current, snapshots.extract(original, ActionKind.UPDATE_RECORD))

    def should_record_future_change(self, current: Record, original: Record) -> bool:
        return snapshots.changed(
            current, snapshots.extract(original, ActionKind.UPDATE_PROJECTED_RECORD)
        )

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def undo(self) -> UndoOutcome:
        """Undo the newest recorded action.

        The action is popped only when the reversal succeeded; any failure
        leaves the history untouched so the user can retry.
        """

        action = self.history.begin_undo()
        if action is None:
            newest = self.history.peek()
            if newest is None:
                return UndoOutcome(False, MSG_NOTHING_TO_UNDO, UndoErrorKind.NOTHING_TO_UNDO)
            return UndoOutcome(False, MSG_BUSY, UndoErrorKind.BUSY, action=newest)

        try:
            validation = self.executor.validate(action)
            if not validation.valid:
                _logger.warning(
                    "undo:rejected kind=%s target_id=%s reason=%s",
                    action.kind.value,
                    action.target_id,
                    validation.reason,
                )
                return UndoOutcome(
                    False,
                    validation.reason or "Action cannot be undone",
                    validation.error,
                    action=action,
                )

            result = self.executor.execute(action)
            if not result.success:
                _logger.warning(
                    "undo:failed kind=%s target_id=%s error=%s",
                    action.kind.value,
                    action.target_id,
                    result.error,
                )
                return UndoOutcome(
                    False,
                    result.error or "Failed to undo operation",
                    result.error_kind,
                    action=action,
                )

            if self.history.pop(action.id) is None:
                _logger.warning(
                    "undo:history_changed action_id=%s target_id=%s",
                    action.id,
                    action.target_id,
                )
            _logger.info("undo:done kind=%s target_id=%s", action.kind.value, action.target_id)
            return UndoOutcome(
                True,
                f"{action.description} was undone",
                restored_item=result.restored_item,
                action=action,
            )
        except Exception as exc:
            _logger.error("undo:unexpected_error target_id=%s", action.target_id, exc_info=True)
            return UndoOutcome(
                False, str(exc) or "Unexpected error", UndoErrorKind.STORE_ERROR, action=action
            )
        finally:
            self.history.set_in_progress(False)

    def can_undo(self) -> bool:
        return self.history.can_undo()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def last_action_description(self) -> str | None:
        action = self.history.peek()
        if action is None:
            return None
        return f"{action.description} ({self.history.format_age(action.timestamp)})"

    def stats(self) -> UndoStats:
        action = self.history.peek()
        can = self.history.can_undo()
        return UndoStats(
            has_actions=can,
            total_actions=self.history.size,
            last_action_description=action.description if action else None,
            last_action_time=self.history.format_age(action.timestamp) if action else None,
            can_execute_undo=can,
        )

    def clear_history(self) -> None:
        self.history.clear()
        _logger.info("history:cleared")

    def log_history(self) -> None:
        action = self.history.peek()
        _logger.debug(
            "history:debug can_undo=%s total=%d last=%s",
            self.history.can_undo(),
            self.history.size,
            action.description if action else "none",
        )
        if action is not None:
            _logger.debug(
                "history:debug_last kind=%s target_id=%s timestamp=%s collection=%s",
                action.kind.value,
                action.target_id,
                action.timestamp.isoformat(),
                action.collection.value,
            )


__all__ = ["MSG_BUSY", "MSG_NOTHING_TO_UNDO", "UndoController"]
