import logging
import uuid
from decimal import Decimal

import pytest

from walletapi.models import WalletResponse
from walletapi.server import create_app, get_env, main


class FakeService:
    def __init__(self):
        self.calls = []

    def deposit(self, user_id, amount, currency, reference):
        self.calls.append(("deposit", user_id, amount, currency, reference))
        return WalletResponse(uuid.uuid4(), user_id, amount, currency)

    def withdraw(self, user_id, amount, currency, reference):
        self.calls.append(("withdraw", user_id, amount, currency, reference))
        return WalletResponse(uuid.uuid4(), user_id, amount, currency)

    def transfer(self, from_user_id, to_user_id, amount, currency, reference):
        self.calls.append(("transfer", from_user_id, to_user_id, amount, currency, reference))
        return WalletResponse(uuid.uuid4(), from_user_id, amount, currency)

    def get_balance(self, user_id, currency):
        self.calls.append(("balance", user_id, currency))
        return Decimal("3")

    def get_transaction_history(self, user_id, currency, page, page_size):
        self.calls.append(("history", user_id, currency, page, page_size))
        return []


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def client(service):
    return create_app(service).test_client()


def test_get_env_returns_set_value(monkeypatch):
    monkeypatch.setenv("WALLETAPI_TEST_KEY", "value")
    assert get_env("WALLETAPI_TEST_KEY", "fallback") == "value"


def test_get_env_returns_default_when_unset(monkeypatch):
    monkeypatch.delenv("WALLETAPI_TEST_KEY", raising=False)
    assert get_env("WALLETAPI_TEST_KEY", "fallback") == "fallback"


def test_get_env_keeps_empty_value(monkeypatch):
    monkeypatch.setenv("WALLETAPI_TEST_KEY", "")
    assert get_env("WALLETAPI_TEST_KEY", "fallback") == ""


def test_health(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_routes_registered(service):
    app = create_app(service)
    rules = {rule.rule: rule.methods for rule in app.url_map.iter_rules()}
    for path in ("deposit", "withdraw", "transfer"):
        assert "POST" in rules[f"/api/v1/wallet/{path}"]
    for path in ("balance", "transactions"):
        assert "GET" in rules[f"/api/v1/wallet/{path}"]


def test_deposit_route_reaches_service(client, service):
    user_id = uuid.uuid4()
    resp = client.post(
        f"/api/v1/wallet/deposit?user_id={user_id}", json={"amount": 5, "currency": "USD"}
    )
    assert resp.status_code == 200
    assert service.calls == [("deposit", user_id, Decimal(5), "USD", "")]


def test_balance_route_reaches_service(client, service):
    user_id = uuid.uuid4()
    resp = client.get(f"/api/v1/wallet/balance?user_id={user_id}")
    assert resp.get_json() == {"balance": "3", "currency": "USD"}
    assert service.calls == [("balance", user_id, "USD")]


def test_transactions_route_reaches_service(client, service):
    user_id = uuid.uuid4()
    resp = client.get(f"/api/v1/wallet/transactions?user_id={user_id}&page=2")
    assert resp.status_code == 200
    assert service.calls == [("history", user_id, "", 2, 10)]


def test_wrong_method_rejected(client, service):
    resp = client.get("/api/v1/wallet/deposit")
    assert resp.status_code == 405
    assert service.calls == []


def test_main_fails_without_database(monkeypatch, caplog):
    monkeypatch.setenv("DB_PORT", "not-a-port")
    with caplog.at_level(logging.ERROR, logger="walletapi.server"):
        assert main([]) == 1
    assert "Failed to connect to database" in caplog.text