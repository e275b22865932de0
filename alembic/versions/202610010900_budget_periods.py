"""budget periods, categories, transactions, income and savings goals

Revision ID: 202610010900
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202610010900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "budget_periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("total_budget_cents", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_period_user_month"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_period_month_range"),
    )
    op.create_index(
        "ix_period_user_created", "budget_periods", ["user_id", "created_at"]
    )
    # Single active period per user.
    op.create_index(
        "uq_period_user_active",
        "budget_periods",
        ["user_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "budget_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "period_id",
            sa.Integer(),
            sa.ForeignKey("budget_periods.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("allocated_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spent_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("color", sa.String(length=9)),
        sa.Column("icon", sa.String(length=16)),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("period_id", "category", name="uq_category_period_name"),
        sa.CheckConstraint(
            "allocated_cents >= 0", name="ck_category_allocated_positive"
        ),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "period_id",
            sa.Integer(),
            sa.ForeignKey("budget_periods.id"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=100)),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("merchant", sa.String(length=200)),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_transactions_period_category", "transactions", ["period_id", "category"]
    )
    op.create_index(
        "ix_transactions_user_date", "transactions", ["user_id", "transaction_date"]
    )

    op.create_table(
        "income_sources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "frequency",
            sa.Enum(
                "weekly",
                "bi-weekly",
                "monthly",
                "quarterly",
                "yearly",
                "one-time",
                name="incomefrequency",
            ),
            nullable=False,
        ),
        sa.Column(
            "kind",
            sa.Enum(
                "salary",
                "freelance",
                "investments",
                "business",
                "other",
                name="incomekind",
            ),
        ),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_income_amount_positive"),
    )
    op.create_index("ix_income_user_active", "income_sources", ["user_id", "is_active"])

    op.create_table(
        "savings_goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_cents", sa.Integer(), nullable=False),
        sa.Column("current_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deadline", sa.Date()),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("auto_contribution_cents", sa.Integer()),
        sa.Column(
            "category",
            sa.Enum(
                "emergency-fund",
                "vacation",
                "major-purchase",
                "retirement",
                "custom",
                name="savingsgoalcategory",
            ),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("target_cents >= 0", name="ck_goal_target_positive"),
        sa.CheckConstraint("current_cents >= 0", name="ck_goal_current_positive"),
    )
    op.create_index("ix_goal_user_active", "savings_goals", ["user_id", "is_active"])


def downgrade() -> None:
    op.drop_index("ix_goal_user_active", table_name="savings_goals")
    op.drop_table("savings_goals")
    op.drop_index("ix_income_user_active", table_name="income_sources")
    op.drop_table("income_sources")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_index("ix_transactions_period_category", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("budget_categories")
    op.drop_index("uq_period_user_active", table_name="budget_periods")
    op.drop_index("ix_period_user_created", table_name="budget_periods")
    op.drop_table("budget_periods")
