import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class ExpenseGroup(str, Enum):
    fundamentals = "fundamentals"
    fun = "fun"
    future_you = "future-you"


class InvestmentType(str, Enum):
    stocks = "stocks"
    bonds = "bonds"
    crypto = "crypto"
    real_estate = "real_estate"
    other = "other"


class GoalPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


def _value_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


TRANSACTION_TYPE_ENUM = _value_enum(TransactionType, "transactiontype")
EXPENSE_GROUP_ENUM = _value_enum(ExpenseGroup, "expensegroup")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(255))


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expense_group: Mapped[Optional[ExpenseGroup]] = mapped_column(EXPENSE_GROUP_ENUM)
    is_shared_expense: Mapped[Optional[bool]] = mapped_column(Boolean)
    recurring_expense_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("recurring_expenses.id", ondelete="SET NULL")
    )
    savings_pot_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("savings_pots.id", ondelete="SET NULL")
    )

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_date", "user_id", "type", "date"),
        Index("ix_transactions_recurring_date", "recurring_expense_id", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )


class SavingsPot(Base, TimestampMixin):
    __tablename__ = "savings_pots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    icon: Mapped[str] = mapped_column(String(40), nullable=False, default="piggy-bank")
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="green")
    category: Mapped[Optional[str]] = mapped_column(String(50))
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_savings_pots_user_created", "user_id", "created_at"),
        CheckConstraint(
            "current_amount_cents >= 0", name="ck_savings_pot_current_positive"
        ),
        CheckConstraint(
            "target_amount_cents >= 0", name="ck_savings_pot_target_positive"
        ),
    )


class Debt(Base, TimestampMixin):
    __tablename__ = "debts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), nullable=False, default="credit-cards"
    )
    total_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    interest_rate_bps: Mapped[Optional[int]] = mapped_column(Integer)
    minimum_payment_cents: Mapped[Optional[int]] = mapped_column(Integer)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("total_amount_cents >= 0", name="ck_debt_total_positive"),
        CheckConstraint(
            "remaining_amount_cents >= 0", name="ck_debt_remaining_positive"
        ),
    )


class Investment(Base, TimestampMixin):
    __tablename__ = "investments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[InvestmentType] = mapped_column(
        _value_enum(InvestmentType, "investmenttype"), nullable=False
    )
    current_value_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4))
    symbol: Mapped[Optional[str]] = mapped_column(String(20))


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    budget_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    spent_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_budget_month_range"),
        CheckConstraint("budget_amount_cents >= 0", name="ck_budget_amount_positive"),
        Index("ix_budgets_user_month", "user_id", "year", "month"),
    )


class FinancialGoal(Base, TimestampMixin):
    __tablename__ = "financial_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    target_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[GoalPriority] = mapped_column(
        _value_enum(GoalPriority, "goalpriority"),
        nullable=False,
        default=GoalPriority.medium,
    )


class RecurringExpense(Base, TimestampMixin):
    __tablename__ = "recurring_expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    expense_group: Mapped[ExpenseGroup] = mapped_column(
        EXPENSE_GROUP_ENUM, nullable=False
    )
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    is_shared_expense: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_recurring_amount_positive"),
        CheckConstraint(
            "day_of_month BETWEEN 1 AND 31", name="ck_recurring_day_of_month"
        ),
        Index("ix_recurring_user_active", "user_id", "is_active"),
    )
