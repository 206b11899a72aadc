"""Composition root and record-then-mutate helpers.

``undo_session`` wires a :class:`HistoryManager`, an :class:`UndoExecutor` and
an :class:`UndoController` around one record store, loading the persisted
history on entry and flushing it on exit.

The ``update_*``/``delete_*`` helpers are the canonical way to mutate a record
undoably: load the current row, record its snapshot (skipped for no-op edits),
then apply the mutation. When the mutation itself fails the just-recorded
action is dropped again so the history only holds mutations that happened.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .controller import UndoController
from .executor import REASON_NOT_AUTHENTICATED, REASON_NOT_FOUND, UndoExecutor
from .history import HistoryManager
from .history_store import HistoryStore
from .logging_setup import get_logger
from .models import Action, Collection
from .store import Err, RecordStore, SqlRecordStore

_logger = get_logger("ledger_undo.api")


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Outcome of one undoable mutation. ``action`` is ``None`` when nothing was recorded."""

    ok: bool
    record: dict[str, Any] | None = None
    action: Action | None = None
    error: str | None = None


@contextmanager
def undo_session(
    *,
    store: RecordStore | None = None,
    database_url: str | None = None,
    owner_id: str | None = None,
    state_dir: Path | str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Iterator[UndoController]:
    """Yield an :class:`UndoController` bound to ``store``.

    When ``store`` is omitted a :class:`SqlRecordStore` is built from
    ``database_url``/``owner_id`` (each falling back to its env var).
    """

    store = store or SqlRecordStore(database_url=database_url, owner_id=owner_id)
    clock_kw: dict[str, Any] = {"clock": clock} if clock is not None else {}
    history = HistoryManager(HistoryStore(state_dir), **clock_kw)
    controller = UndoController(history, UndoExecutor(store, **clock_kw))
    try:
        yield controller
    finally:
        history.flush()


def _load_current(
    store: RecordStore, collection: Collection, record_id: str
) -> tuple[str, dict[str, Any]] | str:
    """Return ``(owner, record)`` or an error message."""

    owner = store.current_owner()
    if not owner:
        return REASON_NOT_AUTHENTICATED
    found = store.select(collection, record_id, owner)
    if isinstance(found, Err):
        return found.message
    if found.record is None:
        return REASON_NOT_FOUND
    return owner, found.record


def _discard_if_newest(controller: UndoController, action: Action | None) -> None:
    if action is None:
        return
    if controller.history.pop(action.id) is not None:
        _logger.info("history:discarded_unapplied target_id=%s", action.target_id)


def _update(
    controller: UndoController,
    store: RecordStore,
    collection: Collection,
    record_id: str,
    changes: Mapping[str, Any],
    record: Callable[[dict[str, Any]], Action | None],
    should_record: Callable[[dict[str, Any], dict[str, Any]], bool],
) -> MutationResult:
    loaded = _load_current(store, collection, record_id)
    if isinstance(loaded, str):
        return MutationResult(False, error=loaded)
    owner, current = loaded

    proposed = {**current, **changes}
    action = record(current) if should_record(proposed, current) else None

    result = store.update(collection, record_id, owner, changes)
    if isinstance(result, Err):
        _discard_if_newest(controller, action)
        return MutationResult(False, error=result.message)
    return MutationResult(True, record=result.record, action=action)


def update_transaction(
    controller: UndoController,
    store: RecordStore,
    record_id: str,
    changes: Mapping[str, Any],
    *,
    quick_classify: bool = False,
) -> MutationResult:
    """Undoably apply ``changes`` to a posted transaction."""

    return _update(
        controller,
        store,
        Collection.TRANSACTIONS,
        record_id,
        changes,
        lambda current: controller.record_transaction_update(
            current, quick_classify=quick_classify
        ),
        controller.should_record_transaction_change,
    )


def update_future_transaction(
    controller: UndoController,
    store: RecordStore,
    record_id: str,
    changes: Mapping[str, Any],
) -> MutationResult:
    """Undoably apply ``changes`` to a projected transaction."""

    return _update(
        controller,
        store,
        Collection.FUTURE_TRANSACTIONS,
        record_id,
        changes,
        controller.record_future_transaction_update,
        controller.should_record_future_change,
    )


def delete_transaction(
    controller: UndoController, store: RecordStore, record_id: str
) -> MutationResult:
    """Undoably delete a posted transaction; ``record`` is the deleted row."""

    loaded = _load_current(store, Collection.TRANSACTIONS, record_id)
    if isinstance(loaded, str):
        return MutationResult(False, error=loaded)
    owner, current = loaded

    action = controller.record_transaction_delete(current)
    result = store.delete(Collection.TRANSACTIONS, record_id, owner)
    if isinstance(result, Err):
        _discard_if_newest(controller, action)
        return MutationResult(False, error=result.message)
    return MutationResult(True, record=result.record, action=action)


__all__ = [
    "MutationResult",
    "delete_transaction",
    "undo_session",
    "update_future_transaction",
    "update_transaction",
]
