"""Initial schema: households, connections, accounts, categories, rules,
budgets, transactions and sync jobs.

Revision ID: 5f2a9c1e7b30
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5f2a9c1e7b30"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _household_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["household_id"],
        ["households.id"],
        name=f"fk_{table}_household_id_households",
        ondelete="CASCADE",
    )


def upgrade() -> None:
    op.create_table(
        "households",
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("base_currency", sa.String(length=3), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_households"),
    )

    op.create_table(
        "bank_connections",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("provider", sa.String(length=30), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("encrypted_creds", sa.Text(), nullable=False),
        sa.Column("long_term_token", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_status", sa.String(length=20), nullable=True),
        sa.Column("account_mappings", sa.JSON(), nullable=False),
        *_base_columns(),
        _household_fk("bank_connections"),
        sa.PrimaryKeyConstraint("id", name="pk_bank_connections"),
    )
    op.create_index(
        "ix_bank_connections_household_id", "bank_connections", ["household_id"]
    )

    op.create_table(
        "accounts",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("connection_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=30), nullable=False),
        sa.Column("external_account_id", sa.String(length=100), nullable=True),
        *_base_columns(),
        _household_fk("accounts"),
        sa.ForeignKeyConstraint(
            ["connection_id"],
            ["bank_connections.id"],
            name="fk_accounts_connection_id_bank_connections",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_accounts"),
    )
    op.create_index("ix_accounts_household_id", "accounts", ["household_id"])
    op.create_index(
        "ix_accounts_household_external", "accounts", ["household_id", "external_account_id"]
    )

    op.create_table(
        "categories",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=10), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("icon", sa.String(length=50), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        *_base_columns(),
        _household_fk("categories"),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["categories.id"],
            name="fk_categories_parent_id_categories",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
    )
    op.create_index("ix_categories_household_id", "categories", ["household_id"])

    op.create_table(
        "category_rules",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("pattern", sa.String(length=255), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_from", sa.String(length=30), nullable=False),
        *_base_columns(),
        _household_fk("category_rules"),
        # Deleting a category leaves its rules behind as broken
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_category_rules_category_id_categories",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_category_rules"),
    )
    op.create_index(
        "ix_category_rules_household_priority", "category_rules", ["household_id", "priority"]
    )

    op.create_table(
        "budgets",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("planned_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("limit_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("limit_type", sa.String(length=10), nullable=True),
        sa.Column("alert_threshold_pct", sa.Numeric(4, 2), nullable=False),
        *_base_columns(),
        _household_fk("budgets"),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_budgets_category_id_categories",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_budgets"),
        sa.UniqueConstraint(
            "household_id", "category_id", "month", name="uq_budget_household_category_month"
        ),
    )
    op.create_index("ix_budgets_household_id", "budgets", ["household_id"])

    op.create_table(
        "transactions",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("merchant", sa.String(length=255), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("direction", sa.String(length=10), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("external_category", sa.String(length=100), nullable=True),
        sa.Column("dedup_hash", sa.String(length=16), nullable=True),
        sa.Column("category_id", sa.Uuid(), nullable=True),
        sa.Column("categorization_source", sa.String(length=30), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("is_ignored", sa.Boolean(), nullable=False),
        *_base_columns(),
        _household_fk("transactions"),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_transactions_account_id_accounts",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["categories.id"],
            name="fk_transactions_category_id_categories",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        # Backstop for concurrent writers racing past the external-id lookup
        sa.UniqueConstraint(
            "household_id", "external_id", name="uq_transactions_household_external_id"
        ),
    )
    op.create_index("ix_transactions_household_id", "transactions", ["household_id"])
    op.create_index("ix_transactions_account_id", "transactions", ["account_id"])
    op.create_index("ix_transactions_date", "transactions", ["date"])
    op.create_index("ix_transactions_category_id", "transactions", ["category_id"])
    op.create_index(
        "ix_transactions_household_dedup_hash", "transactions", ["household_id", "dedup_hash"]
    )

    op.create_table(
        "sync_jobs",
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("connection_id", sa.Uuid(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transactions_found", sa.Integer(), nullable=False),
        sa.Column("transactions_new", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_base_columns(),
        _household_fk("sync_jobs"),
        sa.ForeignKeyConstraint(
            ["connection_id"],
            ["bank_connections.id"],
            name="fk_sync_jobs_connection_id_bank_connections",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_sync_jobs"),
    )
    op.create_index("ix_sync_jobs_household_id", "sync_jobs", ["household_id"])
    op.create_index("ix_sync_jobs_connection_id", "sync_jobs", ["connection_id"])


def downgrade() -> None:
    op.drop_table("sync_jobs")
    op.drop_table("transactions")
    op.drop_table("budgets")
    op.drop_table("category_rules")
    op.drop_table("categories")
    op.drop_table("accounts")
    op.drop_table("bank_connections")
    op.drop_table("households")
