import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from main import app, get_db


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _transaction(**overrides) -> dict:
    payload = {
        "type": "expense",
        "amount": "50.00",
        "category": "food",
        "description": "Lunch",
        "date": "2024-03-10",
        "expenseGroup": "fun",
    }
    payload.update(overrides)
    return payload


def test_transaction_crud_uses_camel_case(client) -> None:
    res = client.post("/api/transactions", json=_transaction())
    assert res.status_code == 200
    body = res.json()
    assert body["amount"] == "50.00"
    assert body["expenseGroup"] == "fun"
    assert body["userId"] == "default-user"
    assert body["savingsPotId"] is None
    txn_id = body["id"]

    res = client.put(f"/api/transactions/{txn_id}", json={"amount": "80.00"})
    assert res.status_code == 200
    assert res.json()["amount"] == "80.00"
    assert res.json()["description"] == "Lunch"

    assert [t["id"] for t in client.get("/api/transactions").json()] == [txn_id]
    assert client.get(f"/api/transactions/{txn_id}").json()["amount"] == "80.00"

    res = client.delete(f"/api/transactions/{txn_id}")
    assert res.json() == {"message": "Transaction deleted successfully"}
    res = client.delete(f"/api/transactions/{txn_id}")
    assert res.status_code == 404
    assert res.json() == {"message": "Transaction not found"}


def test_invalid_payloads_return_400_with_field_errors(client) -> None:
    res = client.post("/api/transactions", json=_transaction(amount="abc"))
    assert res.status_code == 400
    body = res.json()
    assert body["message"] == "Invalid request data"
    assert "amount" in body["errors"]

    res = client.post("/api/transactions", json=_transaction(category="groceries"))
    assert res.status_code == 400
    assert "category" in res.json()["errors"]

    res = client.post(
        "/api/transactions",
        json=_transaction(type="income", category="salary", expenseGroup="fun"),
    )
    assert res.status_code == 400
    assert "expenseGroup" in res.json()["errors"]

    assert client.get("/api/transactions").json() == []


def test_savings_pot_follows_savings_expenses(client) -> None:
    pot = client.post(
        "/api/savings-pots",
        json={"name": "Vacation", "targetAmount": "1000.00", "currentAmount": "100.00"},
    ).json()
    assert pot["icon"] == "piggy-bank"

    txn = client.post(
        "/api/transactions",
        json=_transaction(category="savings", description="Vacation", expenseGroup="future-you"),
    ).json()
    assert client.get(f"/api/savings-pots/{pot['id']}").json()["currentAmount"] == "150.00"

    client.delete(f"/api/transactions/{txn['id']}")
    assert client.get(f"/api/savings-pots/{pot['id']}").json()["currentAmount"] == "100.00"

    res = client.put(f"/api/savings-pots/{pot['id']}", json={"name": "Holiday"})
    assert res.json()["name"] == "Holiday"
    assert client.delete(f"/api/savings-pots/{pot['id']}").status_code == 200
    assert client.get(f"/api/savings-pots/{pot['id']}").status_code == 404


def test_dashboard_summary(client) -> None:
    client.post(
        "/api/transactions",
        json=_transaction(
            type="income",
            amount="3000.00",
            category="salary",
            description="Salary",
            date="2024-03-01",
            expenseGroup=None,
        ),
    )
    client.post(
        "/api/transactions",
        json=_transaction(amount="1200.00", category="housing", description="Rent"),
    )

    res = client.get("/api/dashboard/summary", params={"month": 3, "year": 2024})
    assert res.status_code == 200
    body = res.json()
    assert body["monthlyIncome"] == 3000.0
    assert body["monthlyExpenses"] == 1200.0
    assert body["totalBalance"] == 1800.0
    assert body["totalSavings"] == 0.0
    assert len(body["recentTransactions"]) == 2
    assert body["forecast"] == {
        "nextMonthIncome": 3000.0,
        "nextMonthExpenses": 0.0,
        "nextMonthNet": 3000.0,
        "source": "projection",
    }


def test_summary_rejects_bad_month(client) -> None:
    res = client.get("/api/dashboard/summary", params={"month": 13, "year": 2024})
    assert res.status_code == 400
    assert "month" in res.json()["errors"]

    res = client.get("/api/dashboard/summary", params={"month": "march"})
    assert res.status_code == 400
    assert "query.month" in res.json()["errors"]


def test_expense_group_summary(client) -> None:
    client.post("/api/transactions", json=_transaction(amount="25.00"))
    client.post(
        "/api/transactions",
        json=_transaction(amount="75.00", expenseGroup="fundamentals", isSharedExpense=True),
    )
    client.post("/api/transactions", json=_transaction(amount="10.00", expenseGroup=None))

    body = client.get(
        "/api/expense-groups/summary", params={"month": 3, "year": 2024}
    ).json()

    assert body["totalExpenses"] == 100.0
    assert body["fundamentals"] == {
        "total": 75.0,
        "percentage": 75.0,
        "shared": 75.0,
        "individual": 0.0,
    }
    assert body["fun"] == {"total": 25.0, "percentage": 25.0}
    assert body["futureYou"] == {"total": 0.0, "percentage": 0.0}
    assert body["ungrouped"] == {"total": 10.0, "count": 1}


def test_recurring_generation_endpoint(client) -> None:
    res = client.post(
        "/api/recurring-expenses",
        json={
            "description": "Rent",
            "amount": "1200.00",
            "category": "housing",
            "expenseGroup": "fundamentals",
            "dayOfMonth": 31,
        },
    )
    assert res.status_code == 200
    expense = res.json()
    assert expense["isActive"] is True

    res = client.post(
        "/api/recurring-expenses/generate", json={"month": 2, "year": 2024}
    )
    created = res.json()
    assert len(created) == 1
    assert created[0]["date"].startswith("2024-02-29")
    assert created[0]["recurringExpenseId"] == expense["id"]

    res = client.post(
        "/api/recurring-expenses/generate", json={"month": 2, "year": 2024}
    )
    assert res.json() == []

    res = client.post("/api/recurring-expenses", json={"description": "Gym"})
    assert res.status_code == 400

    res = client.put(
        f"/api/recurring-expenses/{expense['id']}", json={"description": "   "}
    )
    assert res.status_code == 400
    assert "description" in res.json()["errors"]


def test_debts_and_related_transactions(client) -> None:
    debt = client.post(
        "/api/debts",
        json={
            "name": "Visa",
            "totalAmount": "2000.00",
            "remainingAmount": "1500.00",
            "interestRate": "19.99",
        },
    ).json()
    assert debt["category"] == "credit-cards"
    assert debt["interestRate"] == "19.99"

    client.post(
        "/api/transactions",
        json=_transaction(category="credit-cards", description="Visa payment"),
    )
    client.post("/api/transactions", json=_transaction())

    related = client.get(f"/api/debts/{debt['id']}/transactions").json()
    assert [t["description"] for t in related] == ["Visa payment"]

    res = client.put(f"/api/debts/{debt['id']}", json={"remainingAmount": "1400.00"})
    assert res.json()["remainingAmount"] == "1400.00"
    assert client.get("/api/debts/missing").status_code == 404


def test_budgets_goals_and_investments(client) -> None:
    client.post(
        "/api/budgets",
        json={"category": "Food", "budgetAmount": "400.00", "month": 3, "year": 2024},
    )
    client.post(
        "/api/budgets",
        json={"category": "transport", "budgetAmount": "80.00", "month": 4, "year": 2024},
    )
    march = client.get("/api/budgets", params={"month": 3, "year": 2024}).json()
    assert [(b["category"], b["budgetAmount"]) for b in march] == [("food", "400.00")]
    assert len(client.get("/api/budgets").json()) == 2

    res = client.post(
        "/api/financial-goals",
        json={"name": "House", "targetAmount": "50000.00", "category": "housing"},
    )
    assert res.json()["priority"] == "medium"
    assert len(client.get("/api/financial-goals").json()) == 1

    res = client.post(
        "/api/investments",
        json={
            "name": "World ETF",
            "type": "stocks",
            "currentValue": "1050.00",
            "purchasePrice": "1000.00",
            "quantity": "12.5",
        },
    )
    assert res.json()["quantity"] == "12.5000"
    assert len(client.get("/api/investments").json()) == 1
