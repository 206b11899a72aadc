from __future__ import annotations

from datetime import timedelta

import pytest

from ledger_undo import executor as executor_mod
from ledger_undo.executor import UndoExecutor
from ledger_undo.history import HistoryManager
from ledger_undo.history_store import HistoryStore
from ledger_undo.models import Action, ActionKind, Collection, TransactionSnapshot, UndoErrorKind
from ledger_undo.store import Err, StoreErrorKind

from tests.helpers.factories import FakeClock, draft, future_row, tx_row
from tests.helpers.store_stub import MemoryStore


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def history(tmp_path, clock) -> HistoryManager:
    return HistoryManager(HistoryStore(tmp_path), clock=clock)


@pytest.fixture
def ex(store, clock) -> UndoExecutor:
    return UndoExecutor(store, clock=clock)


def _record(history: HistoryManager, row, kind=ActionKind.UPDATE_RECORD) -> Action:
    action = history.push(draft(row, kind))
    assert action is not None
    return action


# ---- validate ----------------------------------------------------------------


def test_validate_accepts_fresh_update_of_existing_record(store, history, ex, clock):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))

    clock.advance(hours=23)
    result = ex.validate(action)

    assert result.valid
    assert result.reason is None


def test_validate_rejects_stale_action(store, history, ex, clock):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))

    clock.advance(hours=25)
    result = ex.validate(action)

    assert not result.valid
    assert result.error is UndoErrorKind.STALE
    assert result.reason == "Action is too old (more than 24 hours)"


def test_validate_rejects_invalid_previous_state(history, ex, clock):
    action = Action(
        id="undo_x",
        timestamp=clock(),
        kind=ActionKind.UPDATE_RECORD,
        target_id="T1",
        collection=Collection.TRANSACTIONS,
        previous_state=TransactionSnapshot(id="T1", account="Household"),
        description="partial",
    )

    result = ex.validate(action)

    assert not result.valid
    assert result.error is UndoErrorKind.INVALID_PREVIOUS_STATE


def test_validate_requires_owner(history, clock):
    store = MemoryStore(owner=None)
    action = _record(history, tx_row("T1"))

    result = UndoExecutor(store, clock=clock).validate(action)

    assert result.error is UndoErrorKind.NOT_AUTHENTICATED
    assert store.calls == []


def test_validate_reports_missing_target(history, ex):
    action = _record(history, tx_row("GONE"))

    result = ex.validate(action)

    assert not result.valid
    assert result.error is UndoErrorKind.NOT_FOUND
    assert result.reason == "Item not found (it may have been deleted)"


def test_validate_checks_existence_in_owners_scope(store, history, ex):
    store.put(Collection.TRANSACTIONS, {**tx_row("T1"), "user_id": "someone-else"})
    action = _record(history, tx_row("T1"))

    assert ex.validate(action).error is UndoErrorKind.NOT_FOUND


def test_validate_maps_store_failure(store, history, ex):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))
    store.fail_next["select"] = Err(StoreErrorKind.UNAVAILABLE, "connection refused")

    result = ex.validate(action)

    assert result.error is UndoErrorKind.STORE_ERROR
    assert result.reason == "connection refused"


def test_validate_delete_skips_existence_check(store, history, ex):
    action = _record(history, tx_row("T1"), ActionKind.DELETE_RECORD)

    assert ex.validate(action).valid
    assert store.calls == []


def test_validate_projected_looks_in_future_collection(store, history, ex):
    store.put(Collection.FUTURE_TRANSACTIONS, future_row("F1"))
    action = _record(history, future_row("F1"), ActionKind.UPDATE_PROJECTED_RECORD)

    assert ex.validate(action).valid
    assert store.calls == [("select", Collection.FUTURE_TRANSACTIONS, "F1")]


# ---- execute -----------------------------------------------------------------


def test_execute_update_restores_previous_classification(store, history, ex):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))
    store.rows[Collection.TRANSACTIONS]["T1"]["category"] = "Transport"

    result = ex.execute(action)

    assert result.success
    assert result.restored_item["category"] == "Food"
    assert store.get(Collection.TRANSACTIONS, "T1")["category"] == "Food"
    assert store.writes() == [("update", Collection.TRANSACTIONS, "T1")]


def test_execute_quick_classify_updates_transactions(store, history, ex):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"), ActionKind.QUICK_CLASSIFY)
    store.rows[Collection.TRANSACTIONS]["T1"].update(account="Work", category="Travel")

    assert ex.execute(action).success
    row = store.get(Collection.TRANSACTIONS, "T1")
    assert (row["account"], row["category"]) == ("Household", "Food")


def test_execute_projected_update_writes_future_collection(store, history, ex):
    store.put(Collection.FUTURE_TRANSACTIONS, future_row("F1"))
    action = _record(history, future_row("F1"), ActionKind.UPDATE_PROJECTED_RECORD)
    store.rows[Collection.FUTURE_TRANSACTIONS]["F1"]["status"] = "paid"

    result = ex.execute(action)

    assert result.success
    assert store.get(Collection.FUTURE_TRANSACTIONS, "F1")["status"] == "projected"
    assert store.writes() == [("update", Collection.FUTURE_TRANSACTIONS, "F1")]


def test_execute_delete_reinserts_with_owner(store, history, ex):
    action = _record(history, tx_row("T1"), ActionKind.DELETE_RECORD)

    result = ex.execute(action)

    assert result.success
    row = store.get(Collection.TRANSACTIONS, "T1")
    assert row["user_id"] == "user-1"
    assert row["category"] == "Food"
    assert store.writes() == [("insert", Collection.TRANSACTIONS, "T1")]


def test_execute_delete_twice_reports_duplicate(store, history, ex):
    action = _record(history, tx_row("T1"), ActionKind.DELETE_RECORD)

    assert ex.execute(action).success
    again = ex.execute(action)

    assert not again.success
    assert again.error_kind is UndoErrorKind.DUPLICATE_ON_RESTORE
    assert again.error == executor_mod.REASON_DUPLICATE
    assert len(store.rows[Collection.TRANSACTIONS]) == 1


def test_execute_update_of_vanished_record_reports_not_found(history, ex):
    action = _record(history, tx_row("T1"))

    result = ex.execute(action)

    assert result.error_kind is UndoErrorKind.NOT_FOUND


def test_execute_maps_store_failures(store, history, ex):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))
    store.fail_next["update"] = Err(StoreErrorKind.UNAVAILABLE, "timeout")

    result = ex.execute(action)

    assert not result.success
    assert result.error_kind is UndoErrorKind.STORE_ERROR
    assert "timeout" in result.error


def test_execute_does_not_touch_history(store, history, ex):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))

    ex.execute(action)

    assert history.size == 1
    assert history.peek().id == action.id


def test_staleness_boundary_uses_timestamp(store, history, ex, clock):
    store.put(Collection.TRANSACTIONS, tx_row("T1"))
    action = _record(history, tx_row("T1"))

    clock.advance(hours=24)
    assert ex.validate(action).valid
    clock.advance(seconds=1)
    assert not ex.validate(action).valid
    assert clock() - action.timestamp > timedelta(hours=24)
