from fastapi.testclient import TestClient

import main
from config import Settings, _split_origins, DEFAULT_CORS_ORIGINS
from main import create_app
from tests.conftest import register


def test_root(client):
    assert client.get("/").json() == {"message": "Farmers Market API ready"}


def test_health_reports_collections(client, farmer):
    body = client.get("/api/test").json()
    assert body["backend"] == "✅ Running"
    assert body["connection_status"] == "Connected"
    assert "user" in body["collections"]


def test_without_database(image_store, gateway):
    app = create_app(Settings(), db=None, image_store=image_store, gateway=gateway)
    client = TestClient(app)

    resp = client.post("/api/login", json={"email": "a@x.com", "password": "pw"})
    assert resp.status_code == 500
    assert resp.json()["message"] == "Database not available"
    assert client.get("/api/test").json()["connection_status"] == "Not Connected"


def test_malformed_json_is_400(client):
    resp = client.post("/api/add-to-cart", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_cors_allows_frontend_origin(client):
    resp = client.options("/api/products", headers={
        "Origin": "http://localhost:5173",
        "Access-Control-Request-Method": "GET",
    })
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_split_origins():
    assert _split_origins(None) == DEFAULT_CORS_ORIGINS
    assert _split_origins("https://a.in, https://b.in,") == ["https://a.in", "https://b.in"]


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mongodb://db:27017")
    monkeypatch.setenv("DATABASE_NAME", "market")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.database_url == "mongodb://db:27017"
    assert settings.database_name == "market"
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"
    assert not settings.cloudinary_configured


def test_marketplace_flow(client):
    farmer = register(client, "Farmer F", "f@x.com", "farmer")
    buyer = register(client, "Buyer B", "b@x.com", "buyer")

    product = client.post("/api/products/add", data={
        "name": "Tomato", "price": "20", "farmerId": farmer["id"], "quantity": "5",
    }).json()["product"]

    logged_in = client.post("/api/login", json={"email": "b@x.com", "password": "secret123"}).json()["user"]
    assert logged_in["id"] == buyer["id"]

    client.post("/api/add-to-cart", json={"userId": buyer["id"], "productId": product["id"], "quantity": 2})
    cart = client.get(f"/api/cart/{buyer['id']}").json()
    total = sum(i["product"]["price"] * i["quantity"] for i in cart["products"])
    assert total == 40

    order = client.post("/api/payment/create-order", json={"amount": total}).json()
    assert order["amount"] == 4000
    assert order["currency"] == "INR"


def test_importing_main_builds_no_app():
    assert not hasattr(main, "app")


def test_create_app_does_not_contact_database(image_store, gateway):
    settings = Settings(database_url="mongodb://127.0.0.1:1/?serverSelectionTimeoutMS=200", database_name="market")
    app = create_app(settings, image_store=image_store, gateway=gateway)
    assert app.state.db is not None
    app.state.db.client.close()


def test_indexes_built_on_startup(db, image_store, gateway):
    app = create_app(Settings(), db=db, image_store=image_store, gateway=gateway)
    assert "email_1" not in db["user"].index_information()

    with TestClient(app):
        assert "email_1" in db["user"].index_information()
        assert "user_id_1" in db["cart"].index_information()


def test_health_reports_injected_settings(db, image_store, gateway, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mongodb://elsewhere:27017")
    monkeypatch.delenv("DATABASE_NAME", raising=False)
    settings = Settings(database_url=None, database_name="market")
    app = create_app(settings, db=db, image_store=image_store, gateway=gateway)

    body = TestClient(app).get("/api/test").json()
    assert body["database_url"] == "❌ Not Set"
    assert body["database_name"] == "✅ Set"
