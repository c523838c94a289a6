import logging
from typing import Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, run_migrations, session_scope
from errors import NotFoundError, PersistenceError, ValidationError
from models import ExpenseGroup
from money import cents_to_number
from schemas import (
    BudgetIn,
    BudgetOut,
    DashboardSummaryOut,
    DebtIn,
    DebtOut,
    DebtPatch,
    ExpenseGroupSummaryOut,
    FinancialGoalIn,
    FinancialGoalOut,
    ForecastOut,
    FundamentalsOut,
    GenerateRecurringIn,
    GroupTotalOut,
    InvestmentIn,
    InvestmentOut,
    RecurringExpenseIn,
    RecurringExpenseOut,
    RecurringExpensePatch,
    SavingsPotIn,
    SavingsPotOut,
    SavingsPotPatch,
    TransactionIn,
    TransactionOut,
    TransactionPatch,
    UngroupedOut,
)
from services import (
    BudgetService,
    DashboardService,
    DashboardSummary,
    DebtService,
    ExpenseGroupService,
    ExpenseGroupSummary,
    FinancialGoalService,
    InvestmentService,
    RecurringExpenseService,
    SavingsPotService,
    TransactionService,
    UserService,
)
from store import RecordStore

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Dashboard")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


@app.on_event("startup")
def startup_event():
    run_migrations()
    try:
        with session_scope() as session:
            UserService(RecordStore(session)).ensure_default()
    except (SQLAlchemyError, PersistenceError):
        logger.exception("Failed to initialize default user")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=400, content={"message": "Invalid request data", "errors": errors}
    )


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400, content={"message": exc.message, "errors": exc.errors}
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"message": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_handler(request: Request, exc: PersistenceError):
    logger.error(f"persistence_error: path={request.url.path} error={exc}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def summary_payload(summary: DashboardSummary) -> DashboardSummaryOut:
    forecast = summary.forecast
    return DashboardSummaryOut(
        month=summary.month.month,
        year=summary.month.year,
        total_balance=cents_to_number(summary.balance_cents),
        monthly_income=cents_to_number(summary.income_cents),
        monthly_expenses=cents_to_number(summary.expense_cents),
        total_savings=cents_to_number(summary.savings_cents),
        recent_transactions=[
            TransactionOut.from_model(txn) for txn in summary.recent_transactions
        ],
        forecast=ForecastOut(
            next_month_income=cents_to_number(forecast.income_cents),
            next_month_expenses=cents_to_number(forecast.expense_cents),
            next_month_net=cents_to_number(forecast.net_cents),
            source=forecast.source,
        ),
    )


def groups_payload(summary: ExpenseGroupSummary) -> ExpenseGroupSummaryOut:
    return ExpenseGroupSummaryOut(
        month=summary.month.month,
        year=summary.month.year,
        fundamentals=FundamentalsOut(
            total=cents_to_number(summary.fundamentals_cents),
            shared=cents_to_number(summary.fundamentals_shared_cents),
            individual=cents_to_number(summary.fundamentals_individual_cents),
            percentage=summary.percentage(ExpenseGroup.fundamentals),
        ),
        fun=GroupTotalOut(
            total=cents_to_number(summary.fun_cents),
            percentage=summary.percentage(ExpenseGroup.fun),
        ),
        future_you=GroupTotalOut(
            total=cents_to_number(summary.future_you_cents),
            percentage=summary.percentage(ExpenseGroup.future_you),
        ),
        total_expenses=cents_to_number(summary.total_cents),
        ungrouped=UngroupedOut(
            total=cents_to_number(summary.ungrouped_cents),
            count=summary.ungrouped_count,
        ),
    )


@app.get("/api/transactions", response_model=list[TransactionOut])
def list_transactions(store: RecordStore = Depends(get_store)):
    return [TransactionOut.from_model(t) for t in TransactionService(store).list()]


@app.post("/api/transactions", response_model=TransactionOut)
def create_transaction(data: TransactionIn, store: RecordStore = Depends(get_store)):
    return TransactionOut.from_model(TransactionService(store).create(data))


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(transaction_id: str, store: RecordStore = Depends(get_store)):
    return TransactionOut.from_model(TransactionService(store).get(transaction_id))


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: str,
    data: TransactionPatch,
    store: RecordStore = Depends(get_store),
):
    txn = TransactionService(store).update(transaction_id, data)
    return TransactionOut.from_model(txn)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: str, store: RecordStore = Depends(get_store)):
    TransactionService(store).delete(transaction_id)
    return {"message": "Transaction deleted successfully"}


@app.get("/api/savings-pots", response_model=list[SavingsPotOut])
def list_savings_pots(store: RecordStore = Depends(get_store)):
    return [SavingsPotOut.from_model(p) for p in SavingsPotService(store).list()]


@app.post("/api/savings-pots", response_model=SavingsPotOut)
def create_savings_pot(data: SavingsPotIn, store: RecordStore = Depends(get_store)):
    return SavingsPotOut.from_model(SavingsPotService(store).create(data))


@app.get("/api/savings-pots/{pot_id}", response_model=SavingsPotOut)
def get_savings_pot(pot_id: str, store: RecordStore = Depends(get_store)):
    return SavingsPotOut.from_model(SavingsPotService(store).get(pot_id))


@app.put("/api/savings-pots/{pot_id}", response_model=SavingsPotOut)
def update_savings_pot(
    pot_id: str, data: SavingsPotPatch, store: RecordStore = Depends(get_store)
):
    return SavingsPotOut.from_model(SavingsPotService(store).update(pot_id, data))


@app.delete("/api/savings-pots/{pot_id}")
def delete_savings_pot(pot_id: str, store: RecordStore = Depends(get_store)):
    SavingsPotService(store).delete(pot_id)
    return {"message": "Savings pot deleted successfully"}


@app.get("/api/debts", response_model=list[DebtOut])
def list_debts(store: RecordStore = Depends(get_store)):
    return [DebtOut.from_model(d) for d in DebtService(store).list()]


@app.post("/api/debts", response_model=DebtOut)
def create_debt(data: DebtIn, store: RecordStore = Depends(get_store)):
    return DebtOut.from_model(DebtService(store).create(data))


@app.get("/api/debts/{debt_id}", response_model=DebtOut)
def get_debt(debt_id: str, store: RecordStore = Depends(get_store)):
    return DebtOut.from_model(DebtService(store).get(debt_id))


@app.put("/api/debts/{debt_id}", response_model=DebtOut)
def update_debt(debt_id: str, data: DebtPatch, store: RecordStore = Depends(get_store)):
    return DebtOut.from_model(DebtService(store).update(debt_id, data))


@app.delete("/api/debts/{debt_id}")
def delete_debt(debt_id: str, store: RecordStore = Depends(get_store)):
    DebtService(store).delete(debt_id)
    return {"message": "Debt deleted successfully"}


@app.get("/api/debts/{debt_id}/transactions", response_model=list[TransactionOut])
def debt_transactions(debt_id: str, store: RecordStore = Depends(get_store)):
    txns = DebtService(store).related_transactions(debt_id)
    return [TransactionOut.from_model(t) for t in txns]


@app.get("/api/investments", response_model=list[InvestmentOut])
def list_investments(store: RecordStore = Depends(get_store)):
    return [InvestmentOut.from_model(i) for i in InvestmentService(store).list()]


@app.post("/api/investments", response_model=InvestmentOut)
def create_investment(data: InvestmentIn, store: RecordStore = Depends(get_store)):
    return InvestmentOut.from_model(InvestmentService(store).create(data))


@app.get("/api/budgets", response_model=list[BudgetOut])
def list_budgets(
    month: Optional[int] = None,
    year: Optional[int] = None,
    store: RecordStore = Depends(get_store),
):
    return [BudgetOut.from_model(b) for b in BudgetService(store).list(month, year)]


@app.post("/api/budgets", response_model=BudgetOut)
def create_budget(data: BudgetIn, store: RecordStore = Depends(get_store)):
    return BudgetOut.from_model(BudgetService(store).create(data))


@app.get("/api/financial-goals", response_model=list[FinancialGoalOut])
def list_financial_goals(store: RecordStore = Depends(get_store)):
    return [FinancialGoalOut.from_model(g) for g in FinancialGoalService(store).list()]


@app.post("/api/financial-goals", response_model=FinancialGoalOut)
def create_financial_goal(
    data: FinancialGoalIn, store: RecordStore = Depends(get_store)
):
    return FinancialGoalOut.from_model(FinancialGoalService(store).create(data))


@app.get("/api/recurring-expenses", response_model=list[RecurringExpenseOut])
def list_recurring_expenses(store: RecordStore = Depends(get_store)):
    expenses = RecurringExpenseService(store).list()
    return [RecurringExpenseOut.from_model(e) for e in expenses]


@app.post("/api/recurring-expenses", response_model=RecurringExpenseOut)
def create_recurring_expense(
    data: RecurringExpenseIn, store: RecordStore = Depends(get_store)
):
    return RecurringExpenseOut.from_model(RecurringExpenseService(store).create(data))


@app.post("/api/recurring-expenses/generate", response_model=list[TransactionOut])
def generate_recurring_expenses(
    data: Optional[GenerateRecurringIn] = Body(default=None),
    store: RecordStore = Depends(get_store),
):
    data = data or GenerateRecurringIn()
    created = RecurringExpenseService(store).generate(data.month, data.year)
    return [TransactionOut.from_model(t) for t in created]


@app.get("/api/recurring-expenses/{expense_id}", response_model=RecurringExpenseOut)
def get_recurring_expense(expense_id: str, store: RecordStore = Depends(get_store)):
    return RecurringExpenseOut.from_model(RecurringExpenseService(store).get(expense_id))


@app.put("/api/recurring-expenses/{expense_id}", response_model=RecurringExpenseOut)
def update_recurring_expense(
    expense_id: str,
    data: RecurringExpensePatch,
    store: RecordStore = Depends(get_store),
):
    expense = RecurringExpenseService(store).update(expense_id, data)
    return RecurringExpenseOut.from_model(expense)


@app.delete("/api/recurring-expenses/{expense_id}")
def delete_recurring_expense(expense_id: str, store: RecordStore = Depends(get_store)):
    RecurringExpenseService(store).delete(expense_id)
    return {"message": "Recurring expense deleted successfully"}


@app.get("/api/dashboard/summary", response_model=DashboardSummaryOut)
def dashboard_summary(
    month: Optional[int] = None,
    year: Optional[int] = None,
    store: RecordStore = Depends(get_store),
):
    return summary_payload(DashboardService(store).summarize(month, year))


@app.get("/api/expense-groups/summary", response_model=ExpenseGroupSummaryOut)
def expense_group_summary(
    month: Optional[int] = None,
    year: Optional[int] = None,
    store: RecordStore = Depends(get_store),
):
    return groups_payload(ExpenseGroupService(store).summary(month, year))
