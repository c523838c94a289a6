import pytest
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from errors import NotFoundError, PersistenceError, ValidationError
from models import GoalPriority, SavingsPot, Transaction, TransactionType
from schemas import (
    BudgetIn,
    BudgetPatch,
    FinancialGoalIn,
    FinancialGoalPatch,
    InvestmentIn,
    InvestmentPatch,
)
from services import (
    BudgetService,
    FinancialGoalService,
    InvestmentService,
    UserService,
)
from store import RecordStore


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def test_create_assigns_user_and_id() -> None:
    store = RecordStore(make_session(), "alice")
    pot = store.create(SavingsPot, name="Vacation", target_amount_cents=100_000)

    assert pot.id
    assert pot.user_id == "alice"
    assert pot.current_amount_cents == 0
    assert pot.icon == "piggy-bank"
    assert pot.color == "green"
    assert pot.created_at is not None


def test_records_are_scoped_to_the_store_user() -> None:
    session = make_session()
    alice = RecordStore(session, "alice")
    bob = RecordStore(session, "bob")
    pot = alice.create(SavingsPot, name="Vacation", target_amount_cents=100_000)

    assert bob.find(SavingsPot, pot.id) is None
    assert bob.list(SavingsPot) == []
    assert bob.delete(SavingsPot, pot.id) is False
    with pytest.raises(NotFoundError, match="Savings pot not found"):
        bob.get(SavingsPot, pot.id)

    assert alice.get(SavingsPot, pot.id).name == "Vacation"


def test_update_and_delete() -> None:
    store = RecordStore(make_session(), "alice")
    pot = store.create(SavingsPot, name="Car", target_amount_cents=500_000)

    updated = store.update(SavingsPot, pot.id, {"current_amount_cents": 12_345})
    assert updated.current_amount_cents == 12_345

    assert store.delete(SavingsPot, pot.id) is True
    assert store.find(SavingsPot, pot.id) is None
    with pytest.raises(NotFoundError, match="Transaction not found"):
        store.update(Transaction, "missing", {"amount_cents": 1})


def test_list_filters_orders_and_limits() -> None:
    store = RecordStore(make_session(), "alice")
    for day in (3, 1, 2):
        store.create(
            Transaction,
            type=TransactionType.expense,
            amount_cents=day * 100,
            category="food",
            description=f"Day {day}",
            date=datetime(2024, 3, day),
        )

    ordered = store.list(Transaction, order_by=(Transaction.date.asc(),))
    assert [t.description for t in ordered] == ["Day 1", "Day 2", "Day 3"]

    latest = store.list(Transaction, order_by=(Transaction.date.desc(),), limit=1)
    assert [t.description for t in latest] == ["Day 3"]

    big = store.list(Transaction, Transaction.amount_cents >= 200)
    assert {t.description for t in big} == {"Day 2", "Day 3"}


def test_failed_commit_raises_persistence_error_and_rolls_back() -> None:
    store = RecordStore(make_session(), "alice")
    with pytest.raises(PersistenceError):
        store.create(
            Transaction,
            type=TransactionType.expense,
            amount_cents=0,
            category="food",
            description="Free lunch",
            date=datetime(2024, 3, 1),
        )

    # The session stays usable after the rollback.
    pot = store.create(SavingsPot, name="Vacation", target_amount_cents=1_000)
    assert store.get(SavingsPot, pot.id).name == "Vacation"


def test_ensure_default_user_is_idempotent() -> None:
    store = RecordStore(make_session(), "default-user")
    users = UserService(store)

    first = users.ensure_default()
    second = users.ensure_default()

    assert first.id == second.id == "default-user"
    assert users.get_by_username("default-user") is not None


def test_service_layer_get_and_delete() -> None:
    store = RecordStore(make_session(), "alice")
    investments = InvestmentService(store)
    goals = FinancialGoalService(store)
    budgets = BudgetService(store)

    etf = investments.create(
        InvestmentIn(
            name="ETF", type="stocks", current_value="110.00", purchase_price="100.00"
        )
    )
    goal = goals.create(
        FinancialGoalIn(name="House", target_amount="50000.00", category="housing")
    )
    budget = budgets.create(
        BudgetIn(category="fod", budget_amount="300.00", month=5, year=2024)
    )

    assert investments.get(etf.id).current_value_cents == 11_000
    assert goals.get(goal.id).priority == GoalPriority.medium
    assert budget.category == "food"

    investments.delete(etf.id)
    goals.delete(goal.id)
    budgets.delete(budget.id)
    assert investments.list() == []
    assert goals.list() == []
    assert budgets.list() == []
    with pytest.raises(NotFoundError, match="Budget not found"):
        budgets.delete(budget.id)


def test_investment_budget_and_goal_updates() -> None:
    store = RecordStore(make_session(), "alice")
    investments = InvestmentService(store)
    goals = FinancialGoalService(store)
    budgets = BudgetService(store)
    etf = investments.create(
        InvestmentIn(
            name="ETF", type="stocks", current_value="110.00", purchase_price="100.00"
        )
    )
    goal = goals.create(
        FinancialGoalIn(name="House", target_amount="50000.00", category="housing")
    )
    budget = budgets.create(
        BudgetIn(category="food", budget_amount="300.00", month=5, year=2024)
    )

    etf = investments.update(
        etf.id, InvestmentPatch(current_value="125.50", symbol="VWCE")
    )
    assert etf.current_value_cents == 12_550
    assert etf.purchase_price_cents == 10_000
    assert etf.symbol == "VWCE"

    goal = goals.update(
        goal.id, FinancialGoalPatch(current_amount="1000.00", priority="high")
    )
    assert goal.current_amount_cents == 100_000
    assert goal.priority == GoalPriority.high
    assert goal.name == "House"

    budgets.update(budget.id, BudgetPatch(spent_amount="120.00", category="Transprt"))
    budget = budgets.get(budget.id)
    assert budget.spent_amount_cents == 12_000
    assert budget.category == "transport"
    assert budget.budget_amount_cents == 30_000

    with pytest.raises(ValidationError) as excinfo:
        budgets.update(budget.id, BudgetPatch(category="salary"))
    assert "category" in excinfo.value.errors
    with pytest.raises(ValidationError) as excinfo:
        investments.update(etf.id, InvestmentPatch(current_value=None))
    assert excinfo.value.errors == {"current_value": "Field is required"}
    with pytest.raises(NotFoundError, match="Financial goal not found"):
        goals.update("missing", FinancialGoalPatch(name="Car"))
    with pytest.raises(NotFoundError, match="Budget not found"):
        budgets.get("missing")
