from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import case, func, select

from categories import (
    SAVINGS_CATEGORY,
    CategoryAmbiguous,
    CategoryNotFound,
    resolve_category,
)
from config import get_settings
from errors import NotFoundError, PersistenceError, ValidationError
from models import (
    Budget,
    Debt,
    ExpenseGroup,
    FinancialGoal,
    Investment,
    RecurringExpense,
    SavingsPot,
    Transaction,
    TransactionType,
    User,
)
from money import to_cents
from periods import Month, resolve_month
from schemas import (
    BudgetIn,
    BudgetPatch,
    DebtIn,
    DebtPatch,
    FinancialGoalIn,
    FinancialGoalPatch,
    InvestmentIn,
    InvestmentPatch,
    RecurringExpenseIn,
    RecurringExpensePatch,
    SavingsPotIn,
    SavingsPotPatch,
    TransactionIn,
    TransactionPatch,
    UserIn,
)
from store import RecordStore

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS_LIMIT = 5
INCOME_LOOKBACK_MONTHS = 3


def _to_columns(data: dict[str, Any], money: dict[str, str]) -> dict[str, Any]:
    """Rename decimal amount fields to their integer-cent columns."""
    columns: dict[str, Any] = {}
    for field, value in data.items():
        if field in money:
            columns[money[field]] = to_cents(value) if value is not None else None
        else:
            columns[field] = value
    return columns


def _category_error(txn_type: TransactionType, raw: Optional[str]) -> tuple[str, str]:
    try:
        return resolve_category(txn_type, raw), ""
    except (CategoryNotFound, CategoryAmbiguous) as exc:
        return "", str(exc)


def _reject_nulls(patch: dict[str, Any], required: Iterable[str], message: str) -> None:
    errors = {
        field.replace("_cents", ""): "Field is required"
        for field in required
        if field in patch and patch[field] is None
    }
    if errors:
        raise ValidationError(message, errors)


TRANSACTION_MONEY = {"amount": "amount_cents"}
POT_MONEY = {
    "target_amount": "target_amount_cents",
    "current_amount": "current_amount_cents",
}
DEBT_MONEY = {
    "total_amount": "total_amount_cents",
    "remaining_amount": "remaining_amount_cents",
    "interest_rate": "interest_rate_bps",
    "minimum_payment": "minimum_payment_cents",
}
INVESTMENT_MONEY = {
    "current_value": "current_value_cents",
    "purchase_price": "purchase_price_cents",
}
BUDGET_MONEY = {
    "budget_amount": "budget_amount_cents",
    "spent_amount": "spent_amount_cents",
}
GOAL_MONEY = {
    "target_amount": "target_amount_cents",
    "current_amount": "current_amount_cents",
}


@dataclass(frozen=True)
class PotLink:
    """The fields of a transaction that decide its savings pot effect."""

    type: TransactionType
    category: str
    description: str
    amount_cents: int
    savings_pot_id: Optional[str]

    @classmethod
    def of(cls, txn: Transaction) -> PotLink:
        return cls(
            type=txn.type,
            category=txn.category,
            description=txn.description,
            amount_cents=txn.amount_cents,
            savings_pot_id=txn.savings_pot_id,
        )

    @property
    def is_savings_expense(self) -> bool:
        return (
            self.type == TransactionType.expense and self.category == SAVINGS_CATEGORY
        )


def names_match(pot_name: str, description: str) -> bool:
    name = pot_name.strip().lower()
    text = description.strip().lower()
    if not name or not text:
        return False
    return name in text or text in name


class SavingsReconciler:
    """Keeps ``SavingsPot.current_amount_cents`` in step with savings expenses.

    A transaction links to a pot through ``savings_pot_id``. Without one, and
    only while name matching is enabled, the first pot by creation order whose
    name and the description contain one another is used.

    Adjustments are committed separately from the transaction write. A failed
    adjustment is logged and leaves the pot stale.
    """

    def __init__(self, store: RecordStore, name_matching: Optional[bool] = None) -> None:
        self.store = store
        if name_matching is None:
            name_matching = get_settings().pot_name_matching
        self.name_matching = name_matching

    def linked_pot(self, link: PotLink) -> Optional[SavingsPot]:
        if link.savings_pot_id:
            return self.store.find(SavingsPot, link.savings_pot_id)
        if not self.name_matching:
            return None
        pots = self.store.list(
            SavingsPot, order_by=(SavingsPot.created_at.asc(), SavingsPot.id.asc())
        )
        for pot in pots:
            if names_match(pot.name, link.description):
                return pot
        return None

    def apply(self, link: PotLink) -> Optional[SavingsPot]:
        return self._adjust(link, link.amount_cents)

    def reverse(self, link: PotLink) -> Optional[SavingsPot]:
        return self._adjust(link, -link.amount_cents)

    def _adjust(self, link: PotLink, delta_cents: int) -> Optional[SavingsPot]:
        if not link.is_savings_expense:
            return None
        try:
            pot = self.linked_pot(link)
            if pot is None:
                logger.info(f"pot_reconcile: no pot matches '{link.description}'")
                return None
            previous = pot.current_amount_cents
            pot.current_amount_cents = max(0, previous + delta_cents)
            self.store.save(pot)
        except PersistenceError:
            logger.exception(
                f"pot_reconcile_failed: pot_id={link.savings_pot_id} delta={delta_cents}"
            )
            return None
        logger.info(
            f"pot_reconcile: pot={pot.id} {previous} -> {pot.current_amount_cents}"
        )
        return pot


class TransactionService:
    REQUIRED = ("type", "amount_cents", "category", "description", "date")

    def __init__(
        self, store: RecordStore, *, pot_name_matching: Optional[bool] = None
    ) -> None:
        self.store = store
        self.reconciler = SavingsReconciler(store, pot_name_matching)

    def _validated(self, values: dict[str, Any]) -> dict[str, Any]:
        errors: dict[str, str] = {}
        for field in self.REQUIRED:
            if values.get(field) is None:
                errors[field.replace("_cents", "")] = "Field is required"
        txn_type = values.get("type")
        if txn_type is not None:
            category, message = _category_error(txn_type, values.get("category"))
            if message:
                errors["category"] = message
            else:
                values["category"] = category
            if values.get("expense_group") and txn_type != TransactionType.expense:
                errors["expenseGroup"] = "Only expenses belong to an expense group"
        amount = values.get("amount_cents")
        if amount is not None and amount <= 0:
            errors["amount"] = "Amount must be positive"
        description = values.get("description")
        if description is not None:
            if not description.strip():
                errors["description"] = "Description is required"
            values["description"] = description.strip()
        pot_id = values.get("savings_pot_id")
        if pot_id and self.store.find(SavingsPot, pot_id) is None:
            errors["savingsPotId"] = "Savings pot not found"
        recurring_id = values.get("recurring_expense_id")
        if recurring_id and self.store.find(RecurringExpense, recurring_id) is None:
            errors["recurringExpenseId"] = "Recurring expense not found"
        if errors:
            raise ValidationError("Invalid transaction data", errors)
        return values

    def create(self, data: TransactionIn) -> Transaction:
        values = self._validated(_to_columns(data.model_dump(), TRANSACTION_MONEY))
        txn = self.store.create(Transaction, **values)
        self.reconciler.apply(PotLink.of(txn))
        return txn

    def get(self, transaction_id: str) -> Transaction:
        return self.store.get(Transaction, transaction_id)

    def update(self, transaction_id: str, data: TransactionPatch) -> Transaction:
        txn = self.get(transaction_id)
        before = PotLink.of(txn)
        patch = _to_columns(data.model_dump(exclude_unset=True), TRANSACTION_MONEY)
        merged = {
            "type": txn.type,
            "amount_cents": txn.amount_cents,
            "category": txn.category,
            "description": txn.description,
            "date": txn.date,
            "expense_group": txn.expense_group,
            "savings_pot_id": txn.savings_pot_id,
            "recurring_expense_id": txn.recurring_expense_id,
        }
        merged.update(patch)
        values = self._validated(merged)
        changes = {field: values[field] for field in patch}
        txn = self.store.update(Transaction, transaction_id, changes)
        self.reconciler.reverse(before)
        self.reconciler.apply(PotLink.of(txn))
        return txn

    def delete(self, transaction_id: str) -> None:
        txn = self.get(transaction_id)
        before = PotLink.of(txn)
        self.store.delete(Transaction, transaction_id)
        self.reconciler.reverse(before)

    def list(self) -> list[Transaction]:
        return self.store.list(
            Transaction, order_by=(Transaction.date.asc(), Transaction.created_at.asc())
        )

    def in_month(self, month: Month) -> list[Transaction]:
        return self.store.list(
            Transaction,
            Transaction.date >= month.start,
            Transaction.date < month.end,
            order_by=(Transaction.date.asc(), Transaction.created_at.asc()),
        )

    def recent(self, limit: int = RECENT_TRANSACTIONS_LIMIT) -> list[Transaction]:
        return self.store.list(
            Transaction,
            order_by=(Transaction.date.desc(), Transaction.created_at.desc()),
            limit=limit,
        )


class SavingsPotService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(self) -> list[SavingsPot]:
        return self.store.list(
            SavingsPot, order_by=(SavingsPot.created_at.asc(), SavingsPot.id.asc())
        )

    def get(self, pot_id: str) -> SavingsPot:
        return self.store.get(SavingsPot, pot_id)

    def create(self, data: SavingsPotIn) -> SavingsPot:
        return self.store.create(SavingsPot, **_to_columns(data.model_dump(), POT_MONEY))

    def update(self, pot_id: str, data: SavingsPotPatch) -> SavingsPot:
        patch = _to_columns(data.model_dump(exclude_unset=True), POT_MONEY)
        _reject_nulls(
            patch,
            ("name", "target_amount_cents", "current_amount_cents"),
            "Invalid savings pot data",
        )
        return self.store.update(SavingsPot, pot_id, patch)

    def delete(self, pot_id: str) -> None:
        if not self.store.delete(SavingsPot, pot_id):
            raise NotFoundError("Savings pot not found")

    def total_cents(self) -> int:
        return sum(pot.current_amount_cents for pot in self.list())


class DebtService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(self) -> list[Debt]:
        return self.store.list(Debt, order_by=(Debt.created_at.asc(),))

    def get(self, debt_id: str) -> Debt:
        return self.store.get(Debt, debt_id)

    def create(self, data: DebtIn) -> Debt:
        return self.store.create(Debt, **_to_columns(data.model_dump(), DEBT_MONEY))

    def update(self, debt_id: str, data: DebtPatch) -> Debt:
        patch = _to_columns(data.model_dump(exclude_unset=True), DEBT_MONEY)
        _reject_nulls(
            patch,
            ("name", "category", "total_amount_cents", "remaining_amount_cents"),
            "Invalid debt data",
        )
        return self.store.update(Debt, debt_id, patch)

    def delete(self, debt_id: str) -> None:
        if not self.store.delete(Debt, debt_id):
            raise NotFoundError("Debt not found")

    def related_transactions(self, debt_id: str) -> list[Transaction]:
        # Read-time projection by category; nothing links the rows in storage.
        debt = self.get(debt_id)
        return self.store.list(
            Transaction,
            Transaction.type == TransactionType.expense,
            Transaction.category == debt.category,
            order_by=(Transaction.date.desc(), Transaction.created_at.desc()),
        )


class InvestmentService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(self) -> list[Investment]:
        return self.store.list(Investment, order_by=(Investment.created_at.asc(),))

    def get(self, investment_id: str) -> Investment:
        return self.store.get(Investment, investment_id)

    def create(self, data: InvestmentIn) -> Investment:
        return self.store.create(
            Investment, **_to_columns(data.model_dump(), INVESTMENT_MONEY)
        )

    def update(self, investment_id: str, data: InvestmentPatch) -> Investment:
        patch = _to_columns(data.model_dump(exclude_unset=True), INVESTMENT_MONEY)
        _reject_nulls(
            patch,
            ("name", "type", "current_value_cents", "purchase_price_cents"),
            "Invalid investment data",
        )
        return self.store.update(Investment, investment_id, patch)

    def delete(self, investment_id: str) -> None:
        if not self.store.delete(Investment, investment_id):
            raise NotFoundError("Investment not found")


class BudgetService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(
        self, month: Optional[int] = None, year: Optional[int] = None
    ) -> list[Budget]:
        criteria = []
        if month and year:
            criteria = [Budget.month == month, Budget.year == year]
        return self.store.list(
            Budget, *criteria, order_by=(Budget.year, Budget.month, Budget.category)
        )

    def get(self, budget_id: str) -> Budget:
        return self.store.get(Budget, budget_id)

    def create(self, data: BudgetIn) -> Budget:
        values = _to_columns(data.model_dump(), BUDGET_MONEY)
        category, message = _category_error(TransactionType.expense, values["category"])
        if message:
            raise ValidationError("Invalid budget data", {"category": message})
        values["category"] = category
        return self.store.create(Budget, **values)

    def update(self, budget_id: str, data: BudgetPatch) -> Budget:
        patch = _to_columns(data.model_dump(exclude_unset=True), BUDGET_MONEY)
        _reject_nulls(
            patch,
            ("category", "budget_amount_cents", "spent_amount_cents", "month", "year"),
            "Invalid budget data",
        )
        if "category" in patch:
            category, message = _category_error(
                TransactionType.expense, patch["category"]
            )
            if message:
                raise ValidationError("Invalid budget data", {"category": message})
            patch["category"] = category
        return self.store.update(Budget, budget_id, patch)

    def delete(self, budget_id: str) -> None:
        if not self.store.delete(Budget, budget_id):
            raise NotFoundError("Budget not found")


class FinancialGoalService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def list(self) -> list[FinancialGoal]:
        return self.store.list(
            FinancialGoal, order_by=(FinancialGoal.created_at.asc(),)
        )

    def get(self, goal_id: str) -> FinancialGoal:
        return self.store.get(FinancialGoal, goal_id)

    def create(self, data: FinancialGoalIn) -> FinancialGoal:
        return self.store.create(
            FinancialGoal, **_to_columns(data.model_dump(), GOAL_MONEY)
        )

    def update(self, goal_id: str, data: FinancialGoalPatch) -> FinancialGoal:
        patch = _to_columns(data.model_dump(exclude_unset=True), GOAL_MONEY)
        _reject_nulls(
            patch,
            ("name", "target_amount_cents", "current_amount_cents", "category", "priority"),
            "Invalid financial goal data",
        )
        return self.store.update(FinancialGoal, goal_id, patch)

    def delete(self, goal_id: str) -> None:
        if not self.store.delete(FinancialGoal, goal_id):
            raise NotFoundError("Financial goal not found")


class RecurringExpenseService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _category(self, raw: Optional[str]) -> str:
        category, message = _category_error(TransactionType.expense, raw)
        if message:
            raise ValidationError("Invalid recurring expense data", {"category": message})
        return category

    def list(self) -> list[RecurringExpense]:
        return self.store.list(
            RecurringExpense,
            order_by=(RecurringExpense.day_of_month.asc(), RecurringExpense.created_at.asc()),
        )

    def active(self) -> list[RecurringExpense]:
        return self.store.list(
            RecurringExpense,
            RecurringExpense.is_active.is_(True),
            order_by=(RecurringExpense.created_at.asc(), RecurringExpense.id.asc()),
        )

    def get(self, expense_id: str) -> RecurringExpense:
        return self.store.get(RecurringExpense, expense_id)

    def create(self, data: RecurringExpenseIn) -> RecurringExpense:
        values = _to_columns(data.model_dump(), TRANSACTION_MONEY)
        values["category"] = self._category(values["category"])
        values["description"] = values["description"].strip()
        return self.store.create(RecurringExpense, **values)

    def update(self, expense_id: str, data: RecurringExpensePatch) -> RecurringExpense:
        patch = _to_columns(data.model_dump(exclude_unset=True), TRANSACTION_MONEY)
        errors = {
            field.replace("_cents", ""): "Field is required"
            for field, value in patch.items()
            if value is None
        }
        if errors:
            raise ValidationError("Invalid recurring expense data", errors)
        if "category" in patch:
            patch["category"] = self._category(patch["category"])
        return self.store.update(RecurringExpense, expense_id, patch)

    def delete(self, expense_id: str) -> None:
        if not self.store.delete(RecurringExpense, expense_id):
            raise NotFoundError("Recurring expense not found")

    def monthly_total_cents(self) -> int:
        return sum(expense.amount_cents for expense in self.active())

    def generate(
        self, month: Optional[int] = None, year: Optional[int] = None
    ) -> list[Transaction]:
        from recurrence import RecurringExpenseGenerator

        period = resolve_month(month, year)
        return RecurringExpenseGenerator(self.store).generate(period.month, period.year)


class UserService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get(self, user_id: str) -> User:
        return self.store.get(User, user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        users = self.store.list(User, User.username == username, limit=1)
        return users[0] if users else None

    def create(self, data: UserIn) -> User:
        values = data.model_dump(exclude_none=True)
        if self.get_by_username(data.username):
            raise ValidationError(
                "Invalid user data", {"username": "Username already exists"}
            )
        return self.store.create(User, **values)

    def ensure_default(self) -> User:
        existing = self.store.find(User, self.store.user_id)
        if existing:
            return existing
        logger.info(f"seeding default user: id={self.store.user_id}")
        return self.create(
            UserIn(
                id=self.store.user_id,
                username=self.store.user_id,
                name="Default User",
            )
        )


@dataclass(frozen=True)
class Forecast:
    income_cents: int
    expense_cents: int
    source: str

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents


@dataclass(frozen=True)
class DashboardSummary:
    month: Month
    income_cents: int
    expense_cents: int
    savings_cents: int
    recent_transactions: tuple[Transaction, ...]
    forecast: Forecast

    @property
    def balance_cents(self) -> int:
        # Month net only; pots and earlier months are not carried over.
        return self.income_cents - self.expense_cents


class DashboardService:
    """Read-only monthly totals and next-month forecast for the store's user."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _totals(self, month: Month) -> tuple[int, int, int]:
        stmt = select(
            func.coalesce(
                func.sum(
                    case(
                        (
                            Transaction.type == TransactionType.income,
                            Transaction.amount_cents,
                        ),
                        else_=0,
                    )
                ),
                0,
            ).label("income"),
            func.coalesce(
                func.sum(
                    case(
                        (
                            Transaction.type == TransactionType.expense,
                            Transaction.amount_cents,
                        ),
                        else_=0,
                    )
                ),
                0,
            ).label("expenses"),
            func.count(Transaction.id).label("count"),
        ).where(
            Transaction.user_id == self.store.user_id,
            Transaction.date >= month.start,
            Transaction.date < month.end,
        )
        row = self.store.session.execute(stmt).one()
        return int(row.income), int(row.expenses), int(row.count)

    def trailing_income_cents(self, month: Month) -> int:
        incomes = []
        for offset in range(1, INCOME_LOOKBACK_MONTHS + 1):
            income, _expenses, _count = self._totals(month.shift(-offset))
            if income:
                incomes.append(income)
        if not incomes:
            return 0
        average = Decimal(sum(incomes)) / len(incomes)
        return int(average.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def forecast(self, month: Month, current_income_cents: int) -> Forecast:
        next_month = month.shift(1)
        income, expenses, count = self._totals(next_month)
        if count:
            return Forecast(income, expenses, "transactions")
        projected_expenses = RecurringExpenseService(self.store).monthly_total_cents()
        projected_income = current_income_cents or self.trailing_income_cents(month)
        return Forecast(projected_income, projected_expenses, "projection")

    def summarize(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> DashboardSummary:
        period = resolve_month(month, year, today=today)
        income, expenses, _count = self._totals(period)
        return DashboardSummary(
            month=period,
            income_cents=income,
            expense_cents=expenses,
            savings_cents=SavingsPotService(self.store).total_cents(),
            recent_transactions=tuple(TransactionService(self.store).recent()),
            forecast=self.forecast(period, income),
        )


@dataclass(frozen=True)
class ExpenseGroupSummary:
    month: Month
    fundamentals_shared_cents: int = 0
    fundamentals_individual_cents: int = 0
    fun_cents: int = 0
    future_you_cents: int = 0
    ungrouped_cents: int = 0
    ungrouped_count: int = 0

    @property
    def fundamentals_cents(self) -> int:
        return self.fundamentals_shared_cents + self.fundamentals_individual_cents

    @property
    def total_cents(self) -> int:
        return self.fundamentals_cents + self.fun_cents + self.future_you_cents

    def percentage(self, group: ExpenseGroup) -> float:
        total = self.total_cents
        if total == 0:
            return 0.0
        amount = {
            ExpenseGroup.fundamentals: self.fundamentals_cents,
            ExpenseGroup.fun: self.fun_cents,
            ExpenseGroup.future_you: self.future_you_cents,
        }[group]
        return round(amount / total * 100, 2)


def aggregate_expense_groups(
    transactions: Iterable[Transaction], month: int, year: int
) -> ExpenseGroupSummary:
    """Bucket one month's expenses into fundamentals, fun and future-you.

    Expenses without a recognised group are counted under ``ungrouped`` and
    left out of ``total_cents``.
    """
    period = resolve_month(month, year)
    totals = {
        "fundamentals_shared_cents": 0,
        "fundamentals_individual_cents": 0,
        "fun_cents": 0,
        "future_you_cents": 0,
        "ungrouped_cents": 0,
        "ungrouped_count": 0,
    }
    for txn in transactions:
        if txn.type != TransactionType.expense or not period.contains(txn.date):
            continue
        try:
            group = ExpenseGroup(txn.expense_group) if txn.expense_group else None
        except ValueError:
            group = None
        if group == ExpenseGroup.fundamentals:
            key = (
                "fundamentals_shared_cents"
                if txn.is_shared_expense
                else "fundamentals_individual_cents"
            )
        elif group == ExpenseGroup.fun:
            key = "fun_cents"
        elif group == ExpenseGroup.future_you:
            key = "future_you_cents"
        else:
            totals["ungrouped_cents"] += txn.amount_cents
            totals["ungrouped_count"] += 1
            continue
        totals[key] += txn.amount_cents
    return ExpenseGroupSummary(month=period, **totals)


class ExpenseGroupService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def summary(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> ExpenseGroupSummary:
        period = resolve_month(month, year, today=today)
        transactions = TransactionService(self.store).in_month(period)
        return aggregate_expense_groups(transactions, period.month, period.year)
