"""initial finance schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


TRANSACTION_TYPE = sa.Enum("income", "expense", "transfer", name="transactiontype")
EXPENSE_GROUP = sa.Enum("fundamentals", "fun", "future-you", name="expensegroup")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("username", sa.String(length=80), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("avatar", sa.String(length=255)),
        *_timestamps(),
    )

    op.create_table(
        "savings_pots",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "current_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "icon", sa.String(length=40), nullable=False, server_default="piggy-bank"
        ),
        sa.Column("color", sa.String(length=20), nullable=False, server_default="green"),
        sa.Column("category", sa.String(length=50)),
        sa.Column("deadline", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_savings_pot_current_positive"
        ),
        sa.CheckConstraint(
            "target_amount_cents >= 0", name="ck_savings_pot_target_positive"
        ),
    )
    op.create_index(
        "ix_savings_pots_user_created", "savings_pots", ["user_id", "created_at"]
    )

    op.create_table(
        "recurring_expenses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("expense_group", EXPENSE_GROUP, nullable=False),
        sa.Column("day_of_month", sa.Integer(), nullable=False),
        sa.Column(
            "is_shared_expense", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_recurring_amount_positive"),
        sa.CheckConstraint(
            "day_of_month BETWEEN 1 AND 31", name="ck_recurring_day_of_month"
        ),
    )
    op.create_index(
        "ix_recurring_user_active", "recurring_expenses", ["user_id", "is_active"]
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("expense_group", EXPENSE_GROUP),
        sa.Column("is_shared_expense", sa.Boolean()),
        sa.Column(
            "recurring_expense_id",
            sa.String(length=36),
            sa.ForeignKey("recurring_expenses.id", ondelete="SET NULL"),
        ),
        sa.Column(
            "savings_pot_id",
            sa.String(length=36),
            sa.ForeignKey("savings_pots.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date", "transactions", ["user_id", "type", "date"]
    )
    op.create_index(
        "ix_transactions_recurring_date",
        "transactions",
        ["recurring_expense_id", "date"],
    )

    op.create_table(
        "debts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "category",
            sa.String(length=50),
            nullable=False,
            server_default="credit-cards",
        ),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("remaining_amount_cents", sa.Integer(), nullable=False),
        sa.Column("interest_rate_bps", sa.Integer()),
        sa.Column("minimum_payment_cents", sa.Integer()),
        sa.Column("due_date", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("total_amount_cents >= 0", name="ck_debt_total_positive"),
        sa.CheckConstraint(
            "remaining_amount_cents >= 0", name="ck_debt_remaining_positive"
        ),
    )

    op.create_table(
        "investments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "stocks",
                "bonds",
                "crypto",
                "real_estate",
                "other",
                name="investmenttype",
            ),
            nullable=False,
        ),
        sa.Column("current_value_cents", sa.Integer(), nullable=False),
        sa.Column("purchase_price_cents", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 4)),
        sa.Column("symbol", sa.String(length=20)),
        *_timestamps(),
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("budget_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "spent_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_budget_month_range"),
        sa.CheckConstraint(
            "budget_amount_cents >= 0", name="ck_budget_amount_positive"
        ),
    )
    op.create_index("ix_budgets_user_month", "budgets", ["user_id", "year", "month"])

    op.create_table(
        "financial_goals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "current_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("target_date", sa.DateTime()),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", name="goalpriority"),
            nullable=False,
            server_default="medium",
        ),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("financial_goals")
    op.drop_index("ix_budgets_user_month", table_name="budgets")
    op.drop_table("budgets")
    op.drop_table("investments")
    op.drop_table("debts")
    op.drop_index("ix_transactions_recurring_date", table_name="transactions")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_recurring_user_active", table_name="recurring_expenses")
    op.drop_table("recurring_expenses")
    op.drop_index("ix_savings_pots_user_created", table_name="savings_pots")
    op.drop_table("savings_pots")
    op.drop_table("users")
