from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from ledger_undo.models import Collection
from ledger_undo.store import Err, Ok, SqlRecordStore, StoreErrorKind

from tests.helpers.db import bootstrap_sqlite_db, seed_future_transaction, seed_transaction


@pytest.fixture
def db_url(tmp_path) -> str:
    url = bootstrap_sqlite_db(tmp_path / "ledger.db")
    seed_transaction(database_url=url, user_id="user-1")
    seed_future_transaction(database_url=url, user_id="user-1")
    return url


@pytest.fixture
def store(db_url) -> SqlRecordStore:
    return SqlRecordStore(database_url=db_url, owner_id="user-1")


def test_current_owner_falls_back_to_env(monkeypatch):
    assert SqlRecordStore(owner_id="explicit").current_owner() == "explicit"
    assert SqlRecordStore().current_owner() is None
    monkeypatch.setenv("LEDGER_UNDO_OWNER_ID", " from-env ")
    assert SqlRecordStore().current_owner() == "from-env"


def test_select_returns_plain_dict(store):
    result = store.select(Collection.TRANSACTIONS, "T1", "user-1")

    assert isinstance(result, Ok)
    assert result.record["category"] == "Food"
    assert result.record["amount"] == Decimal("-42.50")
    assert result.record["date"] == date(2026, 10, 3)
    assert result.record["is_from_reconciliation"] is False


def test_select_is_scoped_by_owner(store):
    assert store.select(Collection.TRANSACTIONS, "T1", "intruder") == Ok(None)
    assert store.select(Collection.TRANSACTIONS, "missing", "user-1") == Ok(None)


def test_update_writes_fields(store):
    result = store.update(Collection.TRANSACTIONS, "T1", "user-1", {"category": "Transport"})

    assert isinstance(result, Ok)
    assert result.record["category"] == "Transport"
    again = store.select(Collection.TRANSACTIONS, "T1", "user-1")
    assert again.record["category"] == "Transport"


def test_update_projected_record(store):
    result = store.update(Collection.FUTURE_TRANSACTIONS, "F1", "user-1", {"status": "confirmed"})

    assert isinstance(result, Ok)
    assert result.record["status"] == "confirmed"


def test_update_missing_or_foreign_row_is_not_found(store):
    missing = store.update(Collection.TRANSACTIONS, "nope", "user-1", {"category": "X"})
    foreign = store.update(Collection.TRANSACTIONS, "T1", "intruder", {"category": "X"})

    assert isinstance(missing, Err) and missing.kind is StoreErrorKind.NOT_FOUND
    assert isinstance(foreign, Err) and foreign.kind is StoreErrorKind.NOT_FOUND


def test_update_rejects_unknown_and_protected_fields(store):
    unknown = store.update(Collection.TRANSACTIONS, "T1", "user-1", {"colour": "red"})
    protected = store.update(Collection.TRANSACTIONS, "T1", "user-1", {"user_id": "someone"})

    assert unknown.kind is StoreErrorKind.INVALID_FIELDS
    assert protected.kind is StoreErrorKind.INVALID_FIELDS


def test_update_violating_check_constraint(store):
    result = store.update(Collection.TRANSACTIONS, "T1", "user-1", {"realized": "x"})

    assert isinstance(result, Err)
    assert result.kind is StoreErrorKind.CONSTRAINT
    # Row is untouched after the rollback
    assert store.select(Collection.TRANSACTIONS, "T1", "user-1").record["realized"] == "s"


def test_insert_and_duplicate_key(store):
    fields = {
        "id": "T2",
        "user_id": "user-1",
        "amount": Decimal("10.00"),
        "category": "Gifts",
        "is_from_reconciliation": None,
    }

    created = store.insert(Collection.TRANSACTIONS, fields)
    duplicate = store.insert(Collection.TRANSACTIONS, fields)

    assert isinstance(created, Ok)
    assert created.record["is_from_reconciliation"] is False
    assert isinstance(duplicate, Err)
    assert duplicate.kind is StoreErrorKind.DUPLICATE_KEY


def test_insert_requires_identity(store):
    result = store.insert(Collection.TRANSACTIONS, {"id": "T3"})
    assert result.kind is StoreErrorKind.INVALID_FIELDS


def test_delete(store):
    deleted = store.delete(Collection.TRANSACTIONS, "T1", "user-1")
    again = store.delete(Collection.TRANSACTIONS, "T1", "user-1")

    assert isinstance(deleted, Ok)
    assert deleted.record["id"] == "T1"
    assert again.kind is StoreErrorKind.NOT_FOUND
    assert store.select(Collection.TRANSACTIONS, "T1", "user-1") == Ok(None)


def test_unreachable_database_is_unavailable(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'missing-dir' / 'nested' / 'ledger.db'}"
    store = SqlRecordStore(database_url=url, owner_id="user-1")

    result = store.select(Collection.TRANSACTIONS, "T1", "user-1")

    assert isinstance(result, Err)
    assert result.kind is StoreErrorKind.UNAVAILABLE
