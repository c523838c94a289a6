import logging
from datetime import datetime, time

import pydantic
from sqlalchemy import select

from errors import PersistenceError, ValidationError
from models import RecurringExpense, Transaction, TransactionType
from money import format_cents
from periods import Month, resolve_month
from schemas import TransactionIn
from store import RecordStore

logger = logging.getLogger(__name__)


def occurrence_date(expense: RecurringExpense, month: Month) -> datetime:
    return datetime.combine(month.day(expense.day_of_month), time.min)


class RecurringExpenseGenerator:
    """Materializes active recurring expenses as transactions for one month.

    At most one transaction exists per recurring expense and month, so running
    the generator again for the same month creates nothing.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def already_generated(self, expense: RecurringExpense, month: Month) -> bool:
        stmt = (
            select(Transaction.id)
            .where(
                Transaction.user_id == self.store.user_id,
                Transaction.recurring_expense_id == expense.id,
                Transaction.date >= month.start,
                Transaction.date < month.end,
            )
            .limit(1)
        )
        return self.store.session.execute(stmt).scalar_one_or_none() is not None

    def generate(self, month: int, year: int) -> list[Transaction]:
        from services import RecurringExpenseService, TransactionService

        period = resolve_month(month, year)
        writer = TransactionService(self.store)
        created: list[Transaction] = []
        for expense in RecurringExpenseService(self.store).active():
            if self.already_generated(expense, period):
                continue
            try:
                txn = writer.create(
                    TransactionIn(
                        type=TransactionType.expense,
                        amount=format_cents(expense.amount_cents),
                        category=expense.category,
                        description=expense.description,
                        date=occurrence_date(expense, period),
                        expense_group=expense.expense_group,
                        is_shared_expense=expense.is_shared_expense,
                        recurring_expense_id=expense.id,
                    )
                )
            except (PersistenceError, ValidationError, pydantic.ValidationError):
                logger.exception(
                    f"recurring_generate_failed: expense={expense.id} "
                    f"month={period.year}-{period.month:02d}"
                )
                continue
            created.append(txn)
        logger.info(
            f"recurring_generate: month={period.year}-{period.month:02d} "
            f"created={len(created)}"
        )
        return created
