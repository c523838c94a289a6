from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from categories import DEBT_CATEGORY
from config import get_settings
from models import (
    Budget,
    Debt,
    ExpenseGroup,
    FinancialGoal,
    GoalPriority,
    Investment,
    InvestmentType,
    RecurringExpense,
    SavingsPot,
    Transaction,
    TransactionType,
)
from money import format_cents, parse_amount


def parse_instant(value: Any) -> Any:
    """Accept ISO dates or datetimes as naive wall-clock time.

    Offset-aware values are converted to the configured time zone first, so a
    moment lands in the same calendar month the dashboard uses for "today".
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError("Invalid date") from exc
    else:
        raise ValueError("Invalid date")
    if moment.tzinfo is not None:
        local_zone = ZoneInfo(get_settings().timezone)
        moment = moment.astimezone(local_zone).replace(tzinfo=None)
    return moment


def _balance(value: Any) -> Decimal:
    return parse_amount(value, allow_zero=True)


Amount = Annotated[Decimal, BeforeValidator(parse_amount)]
Balance = Annotated[Decimal, BeforeValidator(_balance)]
Instant = Annotated[datetime, BeforeValidator(parse_instant)]
OptionalInstant = Annotated[Optional[datetime], BeforeValidator(parse_instant)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionIn(ApiModel):
    type: TransactionType
    amount: Amount
    category: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=200)
    date: Instant
    expense_group: Optional[ExpenseGroup] = None
    is_shared_expense: Optional[bool] = None
    recurring_expense_id: Optional[str] = None
    savings_pot_id: Optional[str] = None

    @field_validator("category", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Must not be blank")
        return value.strip()


class TransactionPatch(ApiModel):
    type: Optional[TransactionType] = None
    amount: Optional[Amount] = None
    category: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    date: Optional[Instant] = None
    expense_group: Optional[ExpenseGroup] = None
    is_shared_expense: Optional[bool] = None
    recurring_expense_id: Optional[str] = None
    savings_pot_id: Optional[str] = None


class SavingsPotIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: Balance
    current_amount: Balance = Decimal("0.00")
    icon: str = Field(default="piggy-bank", max_length=40)
    color: str = Field(default="green", max_length=20)
    category: Optional[str] = Field(default=None, max_length=50)
    deadline: OptionalInstant = None


class SavingsPotPatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    target_amount: Optional[Balance] = None
    current_amount: Optional[Balance] = None
    icon: Optional[str] = Field(default=None, max_length=40)
    color: Optional[str] = Field(default=None, max_length=20)
    category: Optional[str] = Field(default=None, max_length=50)
    deadline: OptionalInstant = None


class DebtIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: str = Field(default=DEBT_CATEGORY, min_length=1, max_length=50)
    total_amount: Balance
    remaining_amount: Balance
    interest_rate: Optional[Balance] = None
    minimum_payment: Optional[Balance] = None
    due_date: OptionalInstant = None


class DebtPatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    total_amount: Optional[Balance] = None
    remaining_amount: Optional[Balance] = None
    interest_rate: Optional[Balance] = None
    minimum_payment: Optional[Balance] = None
    due_date: OptionalInstant = None


class InvestmentIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    type: InvestmentType
    current_value: Balance
    purchase_price: Balance
    quantity: Optional[Decimal] = Field(default=None, ge=0, decimal_places=4)
    symbol: Optional[str] = Field(default=None, max_length=20)


class InvestmentPatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    type: Optional[InvestmentType] = None
    current_value: Optional[Balance] = None
    purchase_price: Optional[Balance] = None
    quantity: Optional[Decimal] = Field(default=None, ge=0, decimal_places=4)
    symbol: Optional[str] = Field(default=None, max_length=20)


class BudgetIn(ApiModel):
    category: str = Field(..., min_length=1, max_length=50)
    budget_amount: Balance
    spent_amount: Balance = Decimal("0.00")
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1970, le=3000)


class BudgetPatch(ApiModel):
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    budget_amount: Optional[Balance] = None
    spent_amount: Optional[Balance] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=1970, le=3000)


class FinancialGoalIn(ApiModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: Balance
    current_amount: Balance = Decimal("0.00")
    target_date: OptionalInstant = None
    category: str = Field(..., min_length=1, max_length=50)
    priority: GoalPriority = GoalPriority.medium


class FinancialGoalPatch(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    target_amount: Optional[Balance] = None
    current_amount: Optional[Balance] = None
    target_date: OptionalInstant = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    priority: Optional[GoalPriority] = None


class RecurringExpenseIn(ApiModel):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Amount
    category: str = Field(..., min_length=1, max_length=50)
    expense_group: ExpenseGroup
    day_of_month: int = Field(..., ge=1, le=31)
    is_shared_expense: bool = False
    is_active: bool = True

    @field_validator("description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Must not be blank")
        return value.strip()


class RecurringExpensePatch(ApiModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=200)
    amount: Optional[Amount] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    expense_group: Optional[ExpenseGroup] = None
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    is_shared_expense: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("description")
    @classmethod
    def _not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("Must not be blank")
        return value.strip() if value is not None else None


class GenerateRecurringIn(ApiModel):
    month: Optional[int] = None
    year: Optional[int] = None


class UserIn(ApiModel):
    id: Optional[str] = Field(default=None, max_length=36)
    username: str = Field(..., min_length=1, max_length=80)
    name: str = Field(..., min_length=1, max_length=120)
    avatar: Optional[str] = Field(default=None, max_length=255)


def _optional_cents(cents: Optional[int]) -> Optional[str]:
    return format_cents(cents) if cents is not None else None


class TransactionOut(ApiModel):
    id: str
    user_id: str
    type: TransactionType
    amount: str
    category: str
    description: str
    date: datetime
    expense_group: Optional[ExpenseGroup]
    is_shared_expense: Optional[bool]
    recurring_expense_id: Optional[str]
    savings_pot_id: Optional[str]
    created_at: datetime

    @classmethod
    def from_model(cls, txn: Transaction) -> "TransactionOut":
        return cls(
            id=txn.id,
            user_id=txn.user_id,
            type=txn.type,
            amount=format_cents(txn.amount_cents),
            category=txn.category,
            description=txn.description,
            date=txn.date,
            expense_group=txn.expense_group,
            is_shared_expense=txn.is_shared_expense,
            recurring_expense_id=txn.recurring_expense_id,
            savings_pot_id=txn.savings_pot_id,
            created_at=txn.created_at,
        )


class SavingsPotOut(ApiModel):
    id: str
    user_id: str
    name: str
    target_amount: str
    current_amount: str
    icon: str
    color: str
    category: Optional[str]
    deadline: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, pot: SavingsPot) -> "SavingsPotOut":
        return cls(
            id=pot.id,
            user_id=pot.user_id,
            name=pot.name,
            target_amount=format_cents(pot.target_amount_cents),
            current_amount=format_cents(pot.current_amount_cents),
            icon=pot.icon,
            color=pot.color,
            category=pot.category,
            deadline=pot.deadline,
            created_at=pot.created_at,
        )


class DebtOut(ApiModel):
    id: str
    user_id: str
    name: str
    category: str
    total_amount: str
    remaining_amount: str
    interest_rate: Optional[str]
    minimum_payment: Optional[str]
    due_date: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_model(cls, debt: Debt) -> "DebtOut":
        return cls(
            id=debt.id,
            user_id=debt.user_id,
            name=debt.name,
            category=debt.category,
            total_amount=format_cents(debt.total_amount_cents),
            remaining_amount=format_cents(debt.remaining_amount_cents),
            interest_rate=_optional_cents(debt.interest_rate_bps),
            minimum_payment=_optional_cents(debt.minimum_payment_cents),
            due_date=debt.due_date,
            created_at=debt.created_at,
        )


class InvestmentOut(ApiModel):
    id: str
    user_id: str
    name: str
    type: InvestmentType
    current_value: str
    purchase_price: str
    quantity: Optional[str]
    symbol: Optional[str]
    created_at: datetime

    @classmethod
    def from_model(cls, investment: Investment) -> "InvestmentOut":
        quantity = investment.quantity
        return cls(
            id=investment.id,
            user_id=investment.user_id,
            name=investment.name,
            type=investment.type,
            current_value=format_cents(investment.current_value_cents),
            purchase_price=format_cents(investment.purchase_price_cents),
            quantity=(
                f"{Decimal(quantity).quantize(Decimal('0.0001'))}"
                if quantity is not None
                else None
            ),
            symbol=investment.symbol,
            created_at=investment.created_at,
        )


class BudgetOut(ApiModel):
    id: str
    user_id: str
    category: str
    budget_amount: str
    spent_amount: str
    month: int
    year: int
    created_at: datetime

    @classmethod
    def from_model(cls, budget: Budget) -> "BudgetOut":
        return cls(
            id=budget.id,
            user_id=budget.user_id,
            category=budget.category,
            budget_amount=format_cents(budget.budget_amount_cents),
            spent_amount=format_cents(budget.spent_amount_cents),
            month=budget.month,
            year=budget.year,
            created_at=budget.created_at,
        )


class FinancialGoalOut(ApiModel):
    id: str
    user_id: str
    name: str
    target_amount: str
    current_amount: str
    target_date: Optional[datetime]
    category: str
    priority: GoalPriority
    created_at: datetime

    @classmethod
    def from_model(cls, goal: FinancialGoal) -> "FinancialGoalOut":
        return cls(
            id=goal.id,
            user_id=goal.user_id,
            name=goal.name,
            target_amount=format_cents(goal.target_amount_cents),
            current_amount=format_cents(goal.current_amount_cents),
            target_date=goal.target_date,
            category=goal.category,
            priority=goal.priority,
            created_at=goal.created_at,
        )


class RecurringExpenseOut(ApiModel):
    id: str
    user_id: str
    description: str
    amount: str
    category: str
    expense_group: ExpenseGroup
    day_of_month: int
    is_shared_expense: bool
    is_active: bool
    created_at: datetime

    @classmethod
    def from_model(cls, expense: RecurringExpense) -> "RecurringExpenseOut":
        return cls(
            id=expense.id,
            user_id=expense.user_id,
            description=expense.description,
            amount=format_cents(expense.amount_cents),
            category=expense.category,
            expense_group=expense.expense_group,
            day_of_month=expense.day_of_month,
            is_shared_expense=expense.is_shared_expense,
            is_active=expense.is_active,
            created_at=expense.created_at,
        )


class ForecastOut(ApiModel):
    next_month_income: float
    next_month_expenses: float
    next_month_net: float
    source: Literal["transactions", "projection"]


class DashboardSummaryOut(ApiModel):
    month: int
    year: int
    total_balance: float
    monthly_income: float
    monthly_expenses: float
    total_savings: float
    recent_transactions: list[TransactionOut]
    forecast: ForecastOut


class GroupTotalOut(ApiModel):
    total: float
    percentage: float


class FundamentalsOut(GroupTotalOut):
    shared: float
    individual: float


class UngroupedOut(ApiModel):
    total: float
    count: int


class ExpenseGroupSummaryOut(ApiModel):
    month: int
    year: int
    fundamentals: FundamentalsOut
    fun: GroupTotalOut
    future_you: GroupTotalOut
    total_expenses: float
    ungrouped: UngroupedOut
