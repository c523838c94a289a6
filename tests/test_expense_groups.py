from datetime import date, datetime
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import ExpenseGroup, Transaction, TransactionType
from schemas import TransactionIn
from services import ExpenseGroupService, TransactionService, aggregate_expense_groups
from store import RecordStore


def make_store() -> RecordStore:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return RecordStore(SessionLocal(), "default-user")


def _txn(
    cents: int,
    group: Optional[ExpenseGroup],
    shared: Optional[bool] = None,
    txn_type: TransactionType = TransactionType.expense,
    on: datetime = datetime(2024, 3, 10),
) -> Transaction:
    return Transaction(
        user_id="default-user",
        type=txn_type,
        amount_cents=cents,
        category="other",
        description="Entry",
        date=on,
        expense_group=group,
        is_shared_expense=shared,
    )


def test_buckets_and_percentages() -> None:
    transactions = [
        _txn(30_000, ExpenseGroup.fundamentals, shared=True),
        _txn(20_000, ExpenseGroup.fundamentals, shared=False),
        _txn(10_000, ExpenseGroup.fun),
        _txn(40_000, ExpenseGroup.future_you),
        _txn(5_000, None),
        _txn(70_000, None, txn_type=TransactionType.income),
        _txn(99_000, ExpenseGroup.fun, on=datetime(2024, 4, 1)),
    ]

    summary = aggregate_expense_groups(transactions, 3, 2024)

    assert summary.fundamentals_shared_cents == 30_000
    assert summary.fundamentals_individual_cents == 20_000
    assert summary.fundamentals_cents == 50_000
    assert summary.fun_cents == 10_000
    assert summary.future_you_cents == 40_000
    assert summary.total_cents == 100_000
    assert summary.ungrouped_cents == 5_000
    assert summary.ungrouped_count == 1
    assert summary.percentage(ExpenseGroup.fundamentals) == 50.0
    assert summary.percentage(ExpenseGroup.fun) == 10.0
    assert summary.percentage(ExpenseGroup.future_you) == 40.0


def test_unflagged_fundamentals_count_as_individual() -> None:
    summary = aggregate_expense_groups(
        [_txn(1_000, ExpenseGroup.fundamentals, shared=None)], 3, 2024
    )

    assert summary.fundamentals_individual_cents == 1_000
    assert summary.fundamentals_shared_cents == 0


def test_percentages_round_to_two_places() -> None:
    summary = aggregate_expense_groups(
        [
            _txn(100, ExpenseGroup.fundamentals),
            _txn(100, ExpenseGroup.fun),
            _txn(100, ExpenseGroup.future_you),
        ],
        3,
        2024,
    )

    assert summary.percentage(ExpenseGroup.fun) == 33.33


def test_zero_total_gives_zero_percentages() -> None:
    summary = aggregate_expense_groups([_txn(2_500, None)], 3, 2024)

    assert summary.total_cents == 0
    assert summary.ungrouped_count == 1
    for group in ExpenseGroup:
        assert summary.percentage(group) == 0.0


def test_service_reads_only_the_requested_month() -> None:
    store = make_store()
    service = TransactionService(store)
    for on, amount in ((date(2024, 3, 31), "10.00"), (date(2024, 4, 1), "20.00")):
        service.create(
            TransactionIn(
                type=TransactionType.expense,
                amount=amount,
                category="food",
                description="Groceries",
                date=on,
                expense_group=ExpenseGroup.fun,
            )
        )

    summary = ExpenseGroupService(store).summary(3, 2024)

    assert summary.fun_cents == 1_000
    assert summary.total_cents == 1_000
    assert summary.percentage(ExpenseGroup.fun) == 100.0
