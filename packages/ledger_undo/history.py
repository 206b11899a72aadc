"""Bounded LIFO of undoable actions with an in-progress guard.

The manager owns the in-memory list (oldest first) and persists it through a
:class:`HistoryStore` after every mutation. While an undo is running no new
action is recorded, so the reverse mutation never records itself.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from .history_store import HistoryStore
from .logging_setup import get_logger
from .models import Action, ActionDraft

MAX_HISTORY_SIZE: int = 10
STALE_AFTER = timedelta(hours=24)

_logger = get_logger("ledger_undo.history")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_action_id() -> str:
    return f"undo_{uuid.uuid4().hex}"


def format_age(timestamp: datetime | str, *, now: datetime | None = None) -> str:
    """Render how long ago ``timestamp`` happened.

    "now" under a minute, then minutes, then hours; anything a day or older is
    shown as its ``dd/mm/YYYY`` date. Unparsable strings give "invalid time".
    """

    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp)
        except ValueError:
            return "invalid time"
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)

    now = now or _utcnow()
    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    return timestamp.strftime("%d/%m/%Y")


class HistoryManager:
    """Ordered, capped action history.

    Parameters
    ----------
    store:
        Durable slot; defaults to a :class:`HistoryStore` under the state root.
    clock:
        Returns the current aware UTC time. Injected by tests.
    """

    def __init__(
        self,
        store: HistoryStore | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store or HistoryStore()
        self._clock = clock
        self._lock = threading.RLock()
        self._in_progress = False
        self._actions: list[Action] = self._store.load()[-MAX_HISTORY_SIZE:]

    # -- queries ----------------------------------------------------------

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._actions)

    @property
    def in_progress(self) -> bool:
        with self._lock:
            return self._in_progress

    def actions(self) -> list[Action]:
        """Return a copy of the history, oldest first."""

        with self._lock:
            return list(self._actions)

    def peek(self) -> Action | None:
        with self._lock:
            return self._actions[-1] if self._actions else None

    def can_undo(self) -> bool:
        with self._lock:
            return bool(self._actions) and not self._in_progress

    def summary(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {
                    "description": a.description,
                    "kind": a.kind.value,
                    "timestamp": a.timestamp.isoformat(),
                    "target_id": a.target_id,
                }
                for a in self._actions
            ]

    def format_age(self, timestamp: datetime | str) -> str:
        return format_age(timestamp, now=self._clock())

    # -- mutations --------------------------------------------------------

    def push(self, draft: ActionDraft) -> Action | None:
        """Record ``draft`` as the newest action.

        Returns the stored action, or ``None`` when an undo is in progress.
        """

        with self._lock:
            if self._in_progress:
                _logger.debug(
                    "history:push_skipped undo_in_progress kind=%s target_id=%s",
                    draft.kind.value,
                    draft.target_id,
                )
                return None

            action = Action(
                id=_new_action_id(),
                timestamp=self._clock(),
                kind=draft.kind,
                target_id=draft.target_id,
                collection=draft.collection,
                previous_state=draft.previous_state,
                description=draft.description,
            )
            self._actions.append(action)
            del self._actions[:-MAX_HISTORY_SIZE]
            self._store.save(self._actions)

        _logger.info(
            "history:recorded kind=%s target_id=%s description=%s",
            action.kind.value,
            action.target_id,
            action.description,
        )
        return action

    def pop(self, expected_id: str | None = None) -> Action | None:
        """Remove and return the newest action.

        With ``expected_id``, nothing is removed unless the newest action has
        that id.
        """

        with self._lock:
            if not self._actions:
                return None
            if expected_id is not None and self._actions[-1].id != expected_id:
                return None
            action = self._actions.pop()
            self._store.save(self._actions)
            return action

    def clear(self) -> None:
        with self._lock:
            self._actions.clear()
            self._store.clear()

    def set_in_progress(self, flag: bool) -> None:
        with self._lock:
            self._in_progress = flag

    def begin_undo(self) -> Action | None:
        """Atomically claim the undo slot and return the action to reverse.

        Returns ``None`` when the history is empty or an undo is already running.
        """

        with self._lock:
            if not self._actions or self._in_progress:
                return None
            self._in_progress = True
            return self._actions[-1]

    def prune_stale(self) -> int:
        """Drop actions older than 24 hours and return how many were removed."""

        with self._lock:
            cutoff = self._clock() - STALE_AFTER
            kept = [a for a in self._actions if a.timestamp >= cutoff]
            removed = len(self._actions) - len(kept)
            if removed:
                self._actions = kept
                self._store.save(self._actions)
        if removed:
            _logger.info("history:pruned stale=%d remaining=%d", removed, len(kept))
        return removed

    def flush(self) -> bool:
        with self._lock:
            return self._store.save(self._actions)


__all__ = ["MAX_HISTORY_SIZE", "STALE_AFTER", "HistoryManager", "format_age"]
