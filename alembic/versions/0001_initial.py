"""ledger and tax engine tables

Revision ID: 0001_initial
Revises:
Create Date: 2025-07-01
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

# Money columns hold integer cents, rates are percentages
RATE = sa.Numeric(12, 6)


def upgrade() -> None:
    if not _table_exists("property"):
        op.create_table(
            "property",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("currency", sa.String(length=3), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_property_user_id", "property", ["user_id"])

    if not _table_exists("ledger_transaction"):
        op.create_table(
            "ledger_transaction",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("property.id", ondelete="SET NULL"), nullable=True),
            sa.Column(
                "parent_transaction_id",
                sa.Integer(),
                sa.ForeignKey("ledger_transaction.id", ondelete="CASCADE"),
                nullable=True,
            ),
            sa.Column("type", sa.String(length=20), nullable=False),
            sa.Column("category", sa.String(length=50), nullable=False),
            sa.Column("amount", sa.BigInteger(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("supplier", sa.String(length=200), nullable=True),
            sa.Column("reference_month", sa.String(length=7), nullable=True),
            sa.Column("is_composite_parent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_ledger_transaction_user_id", "ledger_transaction", ["user_id"])
        op.create_index("ix_ledger_transaction_property_id", "ledger_transaction", ["property_id"])
        op.create_index("ix_ledger_transaction_parent_transaction_id", "ledger_transaction", ["parent_transaction_id"])
        op.create_index("ix_ledger_transaction_category", "ledger_transaction", ["category"])
        op.create_index("ix_ledger_transaction_user_date", "ledger_transaction", ["user_id", "date"])

    if not _table_exists("tax_setting"):
        op.create_table(
            "tax_setting",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("tax_type", sa.String(length=10), nullable=False),
            sa.Column("rate", RATE, nullable=False),
            sa.Column("base_rate", RATE, nullable=True),
            sa.Column("additional_rate", RATE, nullable=True),
            sa.Column("additional_threshold", sa.BigInteger(), nullable=True),
            sa.Column("payment_frequency", sa.String(length=20), nullable=False, server_default="monthly"),
            sa.Column("due_day", sa.Integer(), nullable=False, server_default="25"),
            sa.Column("installment_allowed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("installment_threshold", sa.BigInteger(), nullable=True),
            sa.Column("installment_count", sa.Integer(), nullable=True),
            sa.Column("effective_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_tax_setting_id", "tax_setting", ["id"])
        op.create_index("ix_tax_setting_user_id", "tax_setting", ["user_id"])
        op.create_index(
            "ix_tax_setting_user_type_effective", "tax_setting", ["user_id", "tax_type", "effective_date"]
        )

    if not _table_exists("tax_projection"):
        op.create_table(
            "tax_projection",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("tax_type", sa.String(length=10), nullable=False),
            sa.Column("reference_month", sa.String(length=7), nullable=False),
            sa.Column("due_date", sa.Date(), nullable=False),
            sa.Column("base_amount", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("tax_amount", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("additional_amount", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("total_amount", sa.BigInteger(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="projected"),
            sa.Column("is_installment", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("installment_number", sa.Integer(), nullable=True),
            sa.Column("installment_total", sa.Integer(), nullable=True),
            sa.Column(
                "parent_projection_id",
                sa.Integer(),
                sa.ForeignKey("tax_projection.id", ondelete="CASCADE"),
                nullable=True,
            ),
            sa.Column("manual_override", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("original_amount", sa.BigInteger(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("description", sa.String(length=200), nullable=True),
            sa.Column("property_distribution", sa.JSON(), nullable=True),
            sa.Column(
                "transaction_id",
                sa.Integer(),
                sa.ForeignKey("ledger_transaction.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_tax_projection_id", "tax_projection", ["id"])
        op.create_index("ix_tax_projection_user_id", "tax_projection", ["user_id"])
        op.create_index("ix_tax_projection_tax_type", "tax_projection", ["tax_type"])
        op.create_index("ix_tax_projection_due_date", "tax_projection", ["due_date"])
        op.create_index("ix_tax_projection_status", "tax_projection", ["status"])
        op.create_index("ix_tax_projection_parent_projection_id", "tax_projection", ["parent_projection_id"])
        op.create_index("ix_tax_projection_user_month", "tax_projection", ["user_id", "reference_month"])


def downgrade() -> None:
    for table in ("tax_projection", "tax_setting", "ledger_transaction", "property"):
        if _table_exists(table):
            op.drop_table(table)


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()
