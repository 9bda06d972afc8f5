import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import SESSION_COOKIE_NAME, hash_password
from database import Base
from main import app, get_db
from models import Account, User
from services import TransactionService


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with factory() as session:
        password_hash = hash_password("secret", iterations=1_000)
        ana = User(email="ana@example.com", name="Ana", password_hash=password_hash)
        ben = User(email="ben@example.com", name="Ben", password_hash=password_hash)
        session.add_all([ana, ben])
        session.flush()
        session.add_all(
            [
                Account(
                    user_id=ana.id,
                    name="Wallet",
                    type="cash",
                    opening_balance_cents=100_000,
                ),
                Account(
                    user_id=ana.id,
                    name="Bank",
                    type="bank",
                    institution="First Bank",
                    account_number="001-2",
                    opening_balance_cents=50_000,
                ),
                Account(user_id=ben.id, name="Cash", type="cash"),
            ]
        )
        session.commit()
    return factory


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login(client: TestClient, email: str = "ana@example.com") -> None:
    response = client.post("/api/login", json={"email": email, "password": "secret"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == email


def account_ids(client: TestClient) -> dict[str, int]:
    return {a["name"]: a["id"] for a in client.get("/api/accounts").json()}


def payload(account_id, **overrides) -> dict[str, object]:
    data = {
        "type": "expense",
        "category": "Food",
        "amount": 12.5,
        "description": "Lunch",
        "date": "2025-01-05",
        "accountId": account_id,
    }
    data.update(overrides)
    return data


def test_ledger_routes_require_a_session(client) -> None:
    for method, path in [
        ("get", "/api/transactions"),
        ("post", "/api/transactions"),
        ("put", "/api/transactions/1"),
        ("delete", "/api/transactions/1"),
        ("get", "/api/accounts"),
        ("get", "/api/summary"),
    ]:
        response = client.request(method.upper(), path, json={})
        assert response.status_code == 401, path
        assert response.json()["detail"]["kind"] == "unauthorized"


def test_tampered_cookie_is_rejected(client) -> None:
    client.cookies.set(SESSION_COOKIE_NAME, "forged.token.value")

    assert client.get("/api/transactions").status_code == 401
    assert client.get("/api/me").json() == {"user": None}


def test_login_me_logout(client) -> None:
    assert client.post("/api/login", json={"email": "", "password": ""}).status_code == 400
    wrong = client.post(
        "/api/login", json={"email": "ana@example.com", "password": "nope"}
    )
    assert wrong.status_code == 401

    login(client)
    me = client.get("/api/me")
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Ana"

    client.post("/api/logout")
    assert client.get("/api/me").status_code == 401


def test_accounts_are_listed_by_name(client) -> None:
    login(client)

    response = client.get("/api/accounts")

    assert response.status_code == 200
    body = response.json()
    assert [a["name"] for a in body] == ["Bank", "Wallet"]
    assert body[0]["institution"] == "First Bank"
    assert body[0]["accountNumber"] == "001-2"
    assert body[0]["openingBalance"] == 500.0
    assert body[1]["openingBalance"] == 1000.0


def test_transaction_lifecycle(client) -> None:
    login(client)
    ids = account_ids(client)

    created = client.post("/api/transactions", json=payload(ids["Wallet"]))
    assert created.status_code == 201
    body = created.json()
    assert body["category"] == "Food"
    assert body["amount"] == 12.5
    assert body["date"] == "2025-01-05"
    assert body["accountId"] == ids["Wallet"]
    assert body["accountName"] == "Wallet"
    txn_id = body["id"]

    listed = client.get("/api/transactions").json()
    assert [t["id"] for t in listed] == [txn_id]

    updated = client.put(
        f"/api/transactions/{txn_id}",
        json=payload(str(ids["Bank"]), type="income", category="Refund", amount="30"),
    )
    assert updated.status_code == 200
    assert updated.json()["type"] == "income"
    assert updated.json()["accountName"] == "Bank"
    assert updated.json()["amount"] == 30.0

    deleted = client.delete(f"/api/transactions/{txn_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"id": txn_id}

    again = client.delete(f"/api/transactions/{txn_id}")
    assert again.status_code == 404
    assert again.json()["detail"]["kind"] == "not_found"
    assert client.get("/api/transactions").json() == []


def test_validation_failures_are_reported(client) -> None:
    login(client)
    ids = account_ids(client)

    bad_type = client.post("/api/transactions", json=payload(ids["Wallet"], type="x"))
    assert bad_type.status_code == 400
    assert bad_type.json()["detail"]["kind"] == "invalid_type"

    no_account = client.post("/api/transactions", json=payload(None))
    assert no_account.json()["detail"]["kind"] == "missing_account"

    zero = client.post("/api/transactions", json=payload(ids["Wallet"], amount=0))
    assert zero.json()["detail"]["kind"] == "invalid_amount"

    huge = client.post("/api/transactions", json=payload(ids["Wallet"], amount=1e17))
    assert huge.status_code == 400
    assert huge.json()["detail"]["kind"] == "invalid_amount"

    compact_date = client.post(
        "/api/transactions", json=payload(ids["Wallet"], date="20250105")
    )
    assert compact_date.json()["detail"]["kind"] == "invalid_date"
    assert client.get("/api/transactions").json() == []


@pytest.mark.parametrize("body", [[1, 2], "expense", 5, None])
def test_non_object_body_reports_ledger_error(client, body) -> None:
    login(client)

    response = client.post("/api/transactions", json=body)

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "invalid_type"


def test_non_string_description_is_stored_as_text(client) -> None:
    login(client)
    ids = account_ids(client)

    response = client.post(
        "/api/transactions", json=payload(ids["Wallet"], description=42)
    )

    assert response.status_code == 201
    assert response.json()["description"] == "42"


def test_other_users_rows_are_invisible(client) -> None:
    login(client, "ben@example.com")
    ben_cash = account_ids(client)["Cash"]
    ben_txn = client.post("/api/transactions", json=payload(ben_cash)).json()["id"]

    login(client)
    ids = account_ids(client)
    assert "Cash" not in ids
    assert client.get("/api/transactions").json() == []

    foreign_account = client.post("/api/transactions", json=payload(ben_cash))
    assert foreign_account.status_code == 400
    assert foreign_account.json()["detail"]["kind"] == "invalid_account"

    update = client.put(f"/api/transactions/{ben_txn}", json=payload(ids["Wallet"]))
    assert update.status_code == 404
    assert client.delete(f"/api/transactions/{ben_txn}").status_code == 404

    login(client, "ben@example.com")
    assert [t["id"] for t in client.get("/api/transactions").json()] == [ben_txn]


def test_list_rejects_malformed_month(client) -> None:
    login(client)

    assert client.get("/api/transactions?month=2025-13").status_code == 400
    assert client.get("/api/transactions?month=2025-01").json() == []


def test_summary_folds_the_ledger(client) -> None:
    login(client)
    ids = account_ids(client)
    client.post(
        "/api/transactions",
        json=payload(ids["Wallet"], type="income", category="Salary", amount=200),
    )
    client.post("/api/transactions", json=payload(ids["Bank"], amount=50))

    response = client.get("/api/summary")

    assert response.status_code == 200
    body = response.json()
    assert body["totalIncome"] == 200.0
    assert body["totalExpense"] == 50.0
    assert body["balance"] == 1650.0
    assert body["transactionCount"] == 2
    assert body["accountBalances"] == [
        {"id": ids["Bank"], "name": "Bank", "balance": 450.0},
        {"id": ids["Wallet"], "name": "Wallet", "balance": 1200.0},
    ]
    assert body["expenseByCategory"][0]["name"] == "Food"
    assert body["expenseByCategory"][0]["percentage"] == 100.0
    assert body["expenseByCategory"][0]["color"].startswith("hsl(")
    assert len(body["monthly"]) == 6


def test_database_errors_are_not_leaked(client, monkeypatch) -> None:
    login(client)

    def broken_list(self, month=None):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(TransactionService, "list", broken_list)
    response = client.get("/api/transactions")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
