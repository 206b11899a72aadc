# ruff: noqa: I001
"""Ledger core tables: posted and projected transactions.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("month", sa.String(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("source_description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("origin", sa.String(), nullable=True),
        sa.Column("cost_center", sa.String(), nullable=True),
        sa.Column("account", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("subtype", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("realized", sa.String(length=1), nullable=True),
        sa.Column(
            "is_from_reconciliation",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("linked_future_group", sa.String(), nullable=True),
        sa.Column("future_subscription_id", sa.String(), nullable=True),
        sa.Column("reconciliation_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "realized IS NULL OR realized in ('s','p')",
            name="ck_transactions_realized",
        ),
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])

    op.create_table(
        "future_transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("original_transaction_id", sa.String(), nullable=True),
        sa.Column("due_month", sa.String(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("source_description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("origin", sa.String(), nullable=True),
        sa.Column("cost_center", sa.String(), nullable=True),
        sa.Column("installment_current", sa.Integer(), nullable=True),
        sa.Column("installment_total", sa.Integer(), nullable=True),
        sa.Column("establishment", sa.Text(), nullable=True),
        sa.Column("account", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("subtype", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.String(),
            nullable=False,
            server_default=sa.text("'projected'"),
        ),
        sa.Column("subscription_fingerprint", sa.String(), nullable=True),
        sa.Column("original_future_id", sa.String(), nullable=True),
        sa.Column("reconciliation_group", sa.String(), nullable=True),
        sa.Column(
            "is_reconciled",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("closed_bill_id", sa.String(), nullable=True),
        sa.Column("original_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("reconciled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reconciled_with_transaction_id", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status in ('projected','confirmed','paid')",
            name="ck_future_transactions_status",
        ),
    )
    op.create_index("ix_future_transactions_user_id", "future_transactions", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_future_transactions_user_id", table_name="future_transactions")
    op.drop_table("future_transactions")
    op.drop_index("ix_transactions_user_id", table_name="transactions")
    op.drop_table("transactions")
