"""Public interface for the ``ledger_undo`` package.

This module exposes the undo façade, its composition root and the public
models/types as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .api import (
    MutationResult,
    delete_transaction,
    undo_session,
    update_future_transaction,
    update_transaction,
)
from .controller import UndoController
from .executor import UndoExecutor
from .history import MAX_HISTORY_SIZE, HistoryManager, format_age
from .history_store import HistoryStore
from .models import (
    Action,
    ActionDraft,
    ActionKind,
    Collection,
    FutureTransactionSnapshot,
    Snapshot,
    TransactionSnapshot,
    UndoErrorKind,
    UndoOutcome,
    UndoResult,
    UndoStats,
    ValidationResult,
)
from .store import Err, Ok, RecordStore, SqlRecordStore, StoreErrorKind

__all__ = [
    # API
    "undo_session",
    "update_transaction",
    "update_future_transaction",
    "delete_transaction",
    "MutationResult",
    # Components
    "UndoController",
    "UndoExecutor",
    "HistoryManager",
    "HistoryStore",
    "MAX_HISTORY_SIZE",
    "format_age",
    # Store
    "RecordStore",
    "SqlRecordStore",
    "Ok",
    "Err",
    "StoreErrorKind",
    # Models / types
    "Action",
    "ActionDraft",
    "ActionKind",
    "Collection",
    "Snapshot",
    "TransactionSnapshot",
    "FutureTransactionSnapshot",
    "UndoErrorKind",
    "UndoOutcome",
    "UndoResult",
    "UndoStats",
    "ValidationResult",
]
