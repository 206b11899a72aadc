from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Posted: transactions
# ---------------------------


class Transaction(Base):
    __tablename__ = "transactions"

    # Primary keys are client-generated strings so a deleted row can be
    # re-inserted under its original id.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # Statement month as "YYYY-MM"
    month: Mapped[str | None] = mapped_column(String, nullable=True)
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    source_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    origin: Mapped[str | None] = mapped_column(String, nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String, nullable=True)

    # Classification hierarchy: account > category > subtype
    account: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    subtype: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 's' = realized (posted), 'p' = pending
    realized: Mapped[str | None] = mapped_column(String(1), nullable=True)

    # Reconciliation linkage with projected transactions
    is_from_reconciliation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    linked_future_group: Mapped[str | None] = mapped_column(String, nullable=True)
    future_subscription_id: Mapped[str | None] = mapped_column(String, nullable=True)
    reconciliation_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "realized IS NULL OR realized in ('s','p')",
            name="ck_transactions_realized",
        ),
    )


# ---------------------------
# Projected: future_transactions
# ---------------------------


class FutureTransaction(Base):
    __tablename__ = "future_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    original_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True)
    due_month: Mapped[str | None] = mapped_column(String, nullable=True)
    due_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    source_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    origin: Mapped[str | None] = mapped_column(String, nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String, nullable=True)

    # Installment plan: "installment_current of installment_total"
    installment_current: Mapped[int | None] = mapped_column(Integer, nullable=True)
    installment_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    establishment: Mapped[str | None] = mapped_column(Text, nullable=True)

    account: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    subtype: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'projected'"), default="projected"
    )

    subscription_fingerprint: Mapped[str | None] = mapped_column(String, nullable=True)
    original_future_id: Mapped[str | None] = mapped_column(String, nullable=True)
    reconciliation_group: Mapped[str | None] = mapped_column(String, nullable=True)
    is_reconciled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    closed_bill_id: Mapped[str | None] = mapped_column(String, nullable=True)
    original_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    reconciled_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reconciled_with_transaction_id: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('projected','confirmed','paid')",
            name="ck_future_transactions_status",
        ),
    )


__all__ = [
    "Base",
    "FutureTransaction",
    "Transaction",
]
