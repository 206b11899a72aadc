"""Backing record store: protocol, result types and the SQLAlchemy implementation.

Store operations never raise for expected failures. They return ``Ok`` with
the affected row as a plain dict, or ``Err`` carrying a :class:`StoreErrorKind`
and a message. Every query is scoped by owner (the ``user_id`` column).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from db.client import session_scope
from db.models.ledger import Base, FutureTransaction, Transaction
from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .logging_setup import get_logger
from .models import Collection

_logger = get_logger("ledger_undo.store")


class StoreErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DUPLICATE_KEY = "duplicate_key"
    CONSTRAINT = "constraint"
    INVALID_FIELDS = "invalid_fields"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class Ok:
    """Successful store call. ``record`` is ``None`` when a select found nothing."""

    record: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class Err:
    kind: StoreErrorKind
    message: str


type StoreResult = Ok | Err


class RecordStore(Protocol):
    """Transactional record store reachable by primary key, scoped by owner."""

    def current_owner(self) -> str | None: ...

    def select(self, collection: Collection, record_id: str, owner_id: str) -> StoreResult: ...

    def update(
        self,
        collection: Collection,
        record_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> StoreResult: ...

    def insert(self, collection: Collection, fields: Mapping[str, Any]) -> StoreResult: ...

    def delete(self, collection: Collection, record_id: str, owner_id: str) -> StoreResult: ...


# ----------------------------------------------------------------------------
# SQLAlchemy implementation
# ----------------------------------------------------------------------------

_MODELS: dict[Collection, type[Transaction] | type[FutureTransaction]] = {
    Collection.TRANSACTIONS: Transaction,
    Collection.FUTURE_TRANSACTIONS: FutureTransaction,
}

# Columns callers may never write directly
_PROTECTED_COLUMNS = frozenset({"id", "user_id", "created_at", "updated_at"})

_SQLITE_DUPLICATE_NAMES = frozenset({"SQLITE_CONSTRAINT_PRIMARYKEY", "SQLITE_CONSTRAINT_UNIQUE"})


def _row_to_dict(row: Base) -> dict[str, Any]:
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


def _is_duplicate_key(exc: IntegrityError) -> bool:
    """Return True when ``exc`` reports a primary-key/unique collision."""

    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == "23505":
        return True
    if getattr(orig, "sqlite_errorname", None) in _SQLITE_DUPLICATE_NAMES:
        return True
    msg = str(orig)
    return "UNIQUE constraint failed" in msg or "duplicate key" in msg


def _unknown_fields(model: type[Base], fields: Mapping[str, Any]) -> list[str]:
    columns = {c.name for c in model.__table__.columns}
    return sorted(k for k in fields if k not in columns)


class SqlRecordStore:
    """``RecordStore`` over the shared ``db`` library.

    ``database_url`` defaults to ``DATABASE_URL``; ``owner_id`` defaults to
    ``LEDGER_UNDO_OWNER_ID``.
    """

    def __init__(self, *, database_url: str | None = None, owner_id: str | None = None) -> None:
        self._database_url = database_url
        self._owner_id = owner_id

    def current_owner(self) -> str | None:
        owner = self._owner_id or os.getenv("LEDGER_UNDO_OWNER_ID")
        if owner and owner.strip():
            return owner.strip()
        return None

    def _fail(self, op: str, collection: Collection, exc: SQLAlchemyError) -> Err:
        if isinstance(exc, IntegrityError):
            duplicate = _is_duplicate_key(exc)
            kind = StoreErrorKind.DUPLICATE_KEY if duplicate else StoreErrorKind.CONSTRAINT
            message = str(exc.orig)
        else:
            kind = StoreErrorKind.UNAVAILABLE
            message = str(exc)
        _logger.warning(
            "store:%s_failed collection=%s kind=%s error=%s",
            op,
            collection.value,
            kind.value,
            message,
        )
        return Err(kind, message)

    def select(self, collection: Collection, record_id: str, owner_id: str) -> StoreResult:
        model = _MODELS[collection]
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.scalars(
                    sa_select(model).where(model.id == record_id, model.user_id == owner_id)
                ).one_or_none()
                return Ok(_row_to_dict(row) if row is not None else None)
        except SQLAlchemyError as exc:
            return self._fail("select", collection, exc)

    def update(
        self,
        collection: Collection,
        record_id: str,
        owner_id: str,
        fields: Mapping[str, Any],
    ) -> StoreResult:
        model = _MODELS[collection]
        unknown = _unknown_fields(model, fields)
        protected = sorted(k for k in fields if k in _PROTECTED_COLUMNS)
        if unknown or protected:
            return Err(
                StoreErrorKind.INVALID_FIELDS,
                f"Cannot update fields on {collection.value}: {', '.join(unknown + protected)}",
            )

        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.scalars(
                    sa_select(model).where(model.id == record_id, model.user_id == owner_id)
                ).one_or_none()
                if row is None:
                    return Err(
                        StoreErrorKind.NOT_FOUND,
                        f"No {collection.value} row {record_id!r} for this owner",
                    )
                for name, value in fields.items():
                    setattr(row, name, value)
                row.updated_at = datetime.now(UTC)
                session.flush()
                return Ok(_row_to_dict(row))
        except SQLAlchemyError as exc:
            return self._fail("update", collection, exc)

    def insert(self, collection: Collection, fields: Mapping[str, Any]) -> StoreResult:
        model = _MODELS[collection]
        unknown = _unknown_fields(model, fields)
        if unknown:
            return Err(
                StoreErrorKind.INVALID_FIELDS,
                f"Unknown fields for {collection.value}: {', '.join(unknown)}",
            )
        if not fields.get("id") or not fields.get("user_id"):
            return Err(StoreErrorKind.INVALID_FIELDS, "Insert requires both id and user_id")

        now = datetime.now(UTC)
        values = {"created_at": now, "updated_at": now, **fields}
        # NOT NULL flags with ORM defaults; explicit None would bypass them
        for name in ("is_from_reconciliation", "is_reconciled", "status"):
            if name in values and values[name] is None:
                del values[name]

        try:
            with session_scope(database_url=self._database_url) as session:
                row = model(**values)
                session.add(row)
                session.flush()
                return Ok(_row_to_dict(row))
        except SQLAlchemyError as exc:
            return self._fail("insert", collection, exc)

    def delete(self, collection: Collection, record_id: str, owner_id: str) -> StoreResult:
        model = _MODELS[collection]
        try:
            with session_scope(database_url=self._database_url) as session:
                row = session.scalars(
                    sa_select(model).where(model.id == record_id, model.user_id == owner_id)
                ).one_or_none()
                if row is None:
                    return Err(
                        StoreErrorKind.NOT_FOUND,
                        f"No {collection.value} row {record_id!r} for this owner",
                    )
                deleted = _row_to_dict(row)
                session.delete(row)
                session.flush()
                return Ok(deleted)
        except SQLAlchemyError as exc:
            return self._fail("delete", collection, exc)


__all__ = [
    "Err",
    "Ok",
    "RecordStore",
    "SqlRecordStore",
    "StoreErrorKind",
    "StoreResult",
]
