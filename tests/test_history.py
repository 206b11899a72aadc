from __future__ import annotations

import threading
from datetime import timedelta

from ledger_undo.history import MAX_HISTORY_SIZE, HistoryManager, format_age
from ledger_undo.history_store import HistoryStore
from ledger_undo.models import ActionKind

from tests.helpers.factories import T0, FakeClock, draft, tx_row


def _manager(tmp_path, clock=None) -> HistoryManager:
    return HistoryManager(HistoryStore(tmp_path / "state"), clock=clock or FakeClock())


def test_push_assigns_id_and_timestamp(tmp_path):
    clock = FakeClock()
    history = _manager(tmp_path, clock)

    action = history.push(draft(tx_row("T1")))

    assert action is not None
    assert action.id.startswith("undo_")
    assert action.timestamp == T0
    assert action.target_id == "T1"
    assert history.size == 1


def test_ids_are_unique(tmp_path):
    history = _manager(tmp_path)
    ids = {history.push(draft(tx_row(f"T{i}"))).id for i in range(5)}
    assert len(ids) == 5


def test_lifo_order(tmp_path):
    history = _manager(tmp_path)
    history.push(draft(tx_row("A")))
    history.push(draft(tx_row("B")))

    assert history.peek().target_id == "B"
    assert history.pop().target_id == "B"
    assert history.peek().target_id == "A"
    assert history.pop().target_id == "A"
    assert history.pop() is None
    assert history.peek() is None


def test_capacity_keeps_most_recent_ten(tmp_path):
    history = _manager(tmp_path)
    for i in range(15):
        history.push(draft(tx_row(f"T{i}")))

    assert history.size == MAX_HISTORY_SIZE == 10
    assert [a.target_id for a in history.actions()] == [f"T{i}" for i in range(5, 15)]


def test_no_recording_while_undo_in_progress(tmp_path):
    history = _manager(tmp_path)
    history.push(draft(tx_row("A")))

    history.set_in_progress(True)
    assert history.push(draft(tx_row("B"))) is None
    assert history.size == 1

    history.set_in_progress(False)
    assert history.push(draft(tx_row("C"))) is not None
    assert history.size == 2


def test_can_undo_and_begin_undo(tmp_path):
    history = _manager(tmp_path)
    assert not history.can_undo()
    assert history.begin_undo() is None

    pushed = history.push(draft())
    assert history.can_undo()
    assert history.begin_undo() == pushed
    assert history.in_progress
    assert not history.can_undo()
    assert history.begin_undo() is None

    history.set_in_progress(False)
    assert history.can_undo()


def test_begin_undo_is_atomic_across_threads(tmp_path):
    history = _manager(tmp_path)
    history.push(draft())

    barrier = threading.Barrier(8)
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        ok = history.begin_undo() is not None
        with lock:
            results.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1


def test_history_survives_restart(tmp_path):
    clock = FakeClock()
    first = _manager(tmp_path, clock)
    pushed = first.push(draft(tx_row("T1"), ActionKind.DELETE_RECORD, "Transaction deletion"))

    second = _manager(tmp_path, clock)
    loaded = second.peek()

    assert loaded is not None
    assert loaded.model_dump() == pushed.model_dump()
    assert second.size == 1


def test_clear_empties_memory_and_disk(tmp_path):
    store = HistoryStore(tmp_path / "state")
    history = HistoryManager(store, clock=FakeClock())
    history.push(draft())
    assert store.path.exists()

    history.clear()

    assert history.size == 0
    assert not store.path.exists()
    assert HistoryManager(store).size == 0


def test_prune_stale_removes_only_old_actions(tmp_path):
    clock = FakeClock()
    history = _manager(tmp_path, clock)
    history.push(draft(tx_row("OLD")))
    clock.advance(hours=25)
    history.push(draft(tx_row("NEW")))

    assert history.prune_stale() == 1
    assert [a.target_id for a in history.actions()] == ["NEW"]
    assert history.prune_stale() == 0


def test_summary_lists_oldest_first(tmp_path):
    history = _manager(tmp_path)
    history.push(draft(tx_row("A"), description="first"))
    history.push(draft(tx_row("B"), ActionKind.QUICK_CLASSIFY, "second"))

    summary = history.summary()

    assert [s["description"] for s in summary] == ["first", "second"]
    assert summary[1]["kind"] == "quick_classify"
    assert summary[1]["target_id"] == "B"
    assert summary[0]["timestamp"] == T0.isoformat()


def test_format_age():
    assert format_age(T0 - timedelta(seconds=30), now=T0) == "now"
    assert format_age(T0 - timedelta(minutes=1), now=T0) == "1 minute ago"
    assert format_age(T0 - timedelta(minutes=5), now=T0) == "5 minutes ago"
    assert format_age(T0 - timedelta(minutes=61), now=T0) == "1 hour ago"
    assert format_age(T0 - timedelta(hours=3), now=T0) == "3 hours ago"
    assert format_age(T0 - timedelta(hours=25), now=T0) == "18/10/2026"
    assert format_age((T0 - timedelta(minutes=2)).isoformat(), now=T0) == "2 minutes ago"
    assert format_age("not a timestamp", now=T0) == "invalid time"


def test_pop_with_expected_id_only_removes_that_action(tmp_path):
    history = _manager(tmp_path)
    first = history.push(draft(tx_row("A")))
    second = history.push(draft(tx_row("B")))

    assert history.pop(first.id) is None
    assert history.size == 2

    assert history.pop(second.id) == second
    assert history.pop(first.id) == first
    assert history.size == 0
