"""
Shared fixtures: an app wired to mongomock, a tmp upload dir and a stand-in
Razorpay client.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from payments import PaymentGateway
from storage import LocalImageStore


@pytest.fixture
def db():
    return mongomock.MongoClient()["farmers_market_test"]


@pytest.fixture
def image_store(tmp_path):
    return LocalImageStore(str(tmp_path / "uploads"))


class FakeOrders:
    def __init__(self, calls):
        self.calls = calls

    def create(self, data=None, **kwargs):
        self.calls.append(data)
        return {
            "id": "order_TEST123",
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "status": "created",
        }


class FakeRazorpay:
    def __init__(self, calls):
        self.order = FakeOrders(calls)


@pytest.fixture
def gateway_calls():
    return []


@pytest.fixture
def gateway(gateway_calls):
    return PaymentGateway("rzp_test_key", "rzp_test_secret", client=FakeRazorpay(gateway_calls))


@pytest.fixture
def app(db, image_store, gateway):
    return create_app(Settings(), db=db, image_store=image_store, gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def register(client, name, email, role, password="secret123"):
    resp = client.post("/api/register", json={
        "name": name, "email": email, "password": password, "type": role,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


@pytest.fixture
def farmer(client):
    return register(client, "Farmer F", "f@x.com", "farmer")


@pytest.fixture
def buyer(client):
    return register(client, "Buyer B", "b@x.com", "buyer")


@pytest.fixture
def tomato(client, farmer):
    resp = client.post("/api/products/add", data={
        "name": "Tomato", "price": "20", "farmerId": farmer["id"], "quantity": "5",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["product"]
