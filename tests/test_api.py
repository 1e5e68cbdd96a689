"""HTTP and WebSocket tests against the FastAPI app with in-memory collaborators."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from orderdesk import main
from orderdesk.core.config import Settings
from orderdesk.main import app
from orderdesk.services.auth import StoreAuthProvider, get_auth_provider
from orderdesk.services.realtime import get_change_feed
from orderdesk.services.storage import get_key_value_storage
from orderdesk.services.store import get_data_store

SESSION = {"X-Cart-Session": "table-7"}


@pytest.fixture
def client(store, feed, storage):
    auth = StoreAuthProvider(store, storage, Settings(_env_file=None, admin_emails="chef@alibaba.de"))
    app.dependency_overrides.update({
        get_data_store: lambda: store,
        get_change_feed: lambda: feed,
        get_key_value_storage: lambda: storage,
        get_auth_provider: lambda: auth,
    })
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _sign_up(client, email):
    response = client.post("/api/auth/signup", json={"email": email, "password": "sesame-42"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def _fill_cart(client):
    response = client.post(
        "/api/cart/items",
        headers=SESSION,
        json={"product_id": "falafel", "name": "Falafel Teller", "unit_price": "6.25", "quantity": 2},
    )
    assert response.status_code == 200


def _place_order(client, headers=None, **overrides):
    _fill_cart(client)
    body = {"name": "Lea", "email": "lea@example.com", "order_type": "pickup", "payment_method": "cash"}
    body.update(overrides)
    response = client.post("/api/checkout", headers={**SESSION, **(headers or {})}, json=body)
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# CART & CHECKOUT
# =============================================================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "operational"


def test_cart_totals_preview(client):
    _fill_cart(client)

    cart = client.get("/api/cart", headers=SESSION).json()
    assert cart["total_item_count"] == 2
    assert cart["subtotal"] == "12.50"

    totals = client.get("/api/cart/totals", headers=SESSION, params={"order_type": "delivery"}).json()
    assert totals == {"subtotal": "12.50", "delivery_fee": "2.50", "total": "15.00"}


def test_carts_are_per_session(client):
    _fill_cart(client)
    assert client.get("/api/cart", headers={"X-Cart-Session": "table-8"}).json()["items"] == []


def test_visitors_without_session_get_separate_carts(client):
    first = client.post(
        "/api/cart/items",
        json={"product_id": "falafel", "name": "Falafel Teller", "unit_price": "6.25", "notes": "private note"},
    )
    issued = first.headers["X-Cart-Session"]
    assert issued

    stranger = client.get("/api/cart")
    assert stranger.json()["items"] == []
    assert stranger.headers["X-Cart-Session"] != issued

    returning = client.get("/api/cart", headers={"X-Cart-Session": issued})
    assert [item["notes"] for item in returning.json()["items"]] == ["private note"]
    assert returning.headers["X-Cart-Session"] == issued


def test_invalid_quantity(client):
    response = client.post(
        "/api/cart/items",
        headers=SESSION,
        json={"product_id": "falafel", "name": "Falafel Teller", "unit_price": "6.25", "quantity": 0},
    )
    assert response.status_code == 422


def test_checkout_creates_order_and_clears_cart(client):
    order = _place_order(client)

    assert order["status"] == "pending"
    assert order["total"] == "12.50"
    assert order["estimated_time"] == 20
    assert [item["product_name"] for item in order["items"]] == ["Falafel Teller"]
    assert client.get("/api/cart", headers=SESSION).json()["items"] == []

    confirmation = client.get(f"/api/orders/{order['id']}")
    assert confirmation.json()["order_number"] == order["order_number"]


def test_checkout_empty_cart(client):
    response = client.post("/api/checkout", headers=SESSION, json={"name": "Lea", "email": "lea@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Your cart is empty"


def test_checkout_missing_address(client, store):
    _fill_cart(client)
    response = client.post(
        "/api/checkout",
        headers=SESSION,
        json={"name": "Lea", "email": "lea@example.com", "order_type": "delivery"},
    )
    assert response.status_code == 422
    assert response.json()["error"] == "Please fill in delivery address"
    assert store.write_count == 0


def test_checkout_item_failure_reports_order_number(client, store):
    _fill_cart(client)
    store.fail_tables.add("order_items")

    response = client.post("/api/checkout", headers=SESSION, json={"name": "Lea", "email": "lea@example.com"})

    assert response.status_code == 502
    assert response.json()["detail"].startswith("ORD-")


def test_unknown_order(client):
    assert client.get("/api/orders/missing").status_code == 404


def test_my_orders_linked_to_account(client):
    customer = _sign_up(client, "lea@example.com")
    _place_order(client, headers=customer)
    _place_order(client)

    response = client.get("/api/my/orders", headers=customer)
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_language_preference(client):
    assert client.get("/api/preferences/language", headers=SESSION).json() == {"language": "de"}
    assert client.put("/api/preferences/language", headers=SESSION, json={"language": "en"}).status_code == 200
    assert client.get("/api/preferences/language", headers=SESSION).json() == {"language": "en"}
    assert client.put("/api/preferences/language", headers=SESSION, json={"language": "fr"}).status_code == 422


# =============================================================================
# ADMIN
# =============================================================================

def test_admin_requires_sign_in(client):
    assert client.get("/api/admin/orders").status_code == 401
    customer = _sign_up(client, "lea@example.com")
    assert client.get("/api/admin/orders", headers=customer).status_code == 403


def test_admin_order_lifecycle(client):
    admin = _sign_up(client, "chef@alibaba.de")
    order = _place_order(client)
    url = f"/api/admin/orders/{order['id']}"

    accepted = client.post(f"{url}/accept", headers=admin, json={"delivery_time": "18:30"})
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "confirmed"
    assert accepted.json()["delivery_time"] == "18:30"

    again = client.post(f"{url}/accept", headers=admin, json={"delivery_time": "18:45"})
    assert again.status_code == 409

    statuses = [client.post(f"{url}/advance", headers=admin).json()["status"] for _ in range(4)]
    assert statuses == ["preparing", "ready", "delivered", "delivered"]

    listing = client.get("/api/admin/orders", headers=admin).json()
    assert listing["active"] == []
    assert [o["id"] for o in listing["completed"]] == [order["id"]]


def test_admin_reject(client):
    admin = _sign_up(client, "chef@alibaba.de")
    order = _place_order(client)

    response = client.post(
        f"/api/admin/orders/{order['id']}/reject",
        headers=admin,
        json={"rejection_reason": "Kitchen closing early"},
    )
    assert response.json()["status"] == "cancelled"
    assert client.post(f"/api/admin/orders/{order['id']}/advance", headers=admin).status_code == 409


def test_admin_reports(client, monkeypatch):
    admin = _sign_up(client, "chef@alibaba.de")
    _place_order(client)

    report = client.get("/api/admin/reports", headers=admin, params={"days": 7}).json()
    assert report["total_orders"] == 1
    assert report["total_revenue"] == "12.50"
    assert client.get("/api/admin/reports", headers=admin, params={"days": 3}).status_code == 422

    queued = []
    fake_task = SimpleNamespace(delay=lambda payload: queued.append(payload) or SimpleNamespace(id="task-1"))
    monkeypatch.setattr(main, "export_sales_report", fake_task)

    response = client.post("/api/admin/reports/export", headers=admin)
    assert response.status_code == 202
    assert response.json()["task_id"] == "task-1"
    assert queued[0]["total_revenue"] == "12.50"


def test_admin_dashboard_and_customers(client):
    admin = _sign_up(client, "chef@alibaba.de")
    customer = _sign_up(client, "lea@example.com")
    _place_order(client, headers=customer)

    dashboard = client.get("/api/admin/dashboard", headers=admin).json()
    assert dashboard["today_orders"] == 1
    assert dashboard["pending_orders"] == 1

    customers = client.get("/api/admin/customers", headers=admin).json()
    assert customers[0]["profile"]["email"] == "lea@example.com"
    assert customers[0]["order_count"] == 1


# =============================================================================
# WEBSOCKETS
# =============================================================================

def test_admin_feed_rejects_missing_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/admin/orders"):
            pass
    assert exc_info.value.code == 4401


def test_admin_feed_rejects_customers(client):
    customer = _sign_up(client, "lea@example.com")
    token = customer["Authorization"].split()[1]
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/ws/admin/orders?token={token}"):
            pass
    assert exc_info.value.code == 4403


def test_admin_feed_pushes_new_orders(client):
    admin = _sign_up(client, "chef@alibaba.de")
    token = admin["Authorization"].split()[1]

    with client.websocket_connect(f"/ws/admin/orders?token={token}") as websocket:
        assert websocket.receive_json() == {"active": [], "completed": [], "orphaned": []}

        order = _place_order(client)

        # the order insert refreshes before its items land
        payload = websocket.receive_json()
        while not payload["active"] or payload["active"][0]["items"] == []:
            payload = websocket.receive_json()
        assert payload["active"][0]["id"] == order["id"]
        assert payload["orphaned"] == []
