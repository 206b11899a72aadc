"""SQLAlchemy models for the ledger database.

Two record collections: posted ``transactions`` and projected
``future_transactions`` (installment plans awaiting reconciliation).
"""

from .ledger import Base, FutureTransaction, Transaction

__all__ = [
    "Base",
    "FutureTransaction",
    "Transaction",
]
