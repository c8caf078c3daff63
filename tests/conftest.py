# tests/conftest.py
import os
import sys
from concurrent.futures import Future
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from order_lifecycle.api.deps import get_db, get_notifier  # noqa: E402
from order_lifecycle.core.security import hash_password  # noqa: E402
from order_lifecycle.core.timeutil import utcnow  # noqa: E402
from order_lifecycle.database import FileBackedDB  # noqa: E402
from order_lifecycle.main import app  # noqa: E402
from order_lifecycle.models.order import Order, OrderItem  # noqa: E402
from order_lifecycle.services.order_status import OrderStatusService  # noqa: E402


class RecordingNotifier:
    """Stands in for StatusNotifier: keeps payloads instead of sending them."""

    def __init__(self):
        self.sent = []

    def dispatch(self, payload):
        self.sent.append(dict(payload))
        done = Future()
        done.set_result({"order_id": payload.get("order_id"), "channels": []})
        return done

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def file_db(tmp_path):
    """Store rooted in a per-test temp directory."""
    return FileBackedDB(tmp_path / "data")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(file_db, notifier):
    return OrderStatusService(file_db, notifier=notifier)


@pytest.fixture
def client(file_db, notifier):
    app.dependency_overrides[get_db] = lambda: file_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def create_user(file_db):
    """
    Insert a user row directly. Usage: row = create_user("bob", is_admin=True)
    """
    def _fn(username="customer", password="secret123", is_admin=False, email=None):
        return file_db.create_record(
            "users",
            {
                "username": username,
                "email": email or f"{username}@example.com",
                "password_hash": hash_password(password),
                "is_admin": is_admin,
            },
            id_field="id",
        )
    return _fn


@pytest.fixture
def token_for(client):
    def _fn(username: str, password: str = "secret123"):
        resp = client.post("/api/auth/token", data={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["access_token"]
    return _fn


@pytest.fixture
def customer(create_user):
    return create_user("customer")


@pytest.fixture
def admin(create_user):
    return create_user("admin", is_admin=True)


@pytest.fixture
def customer_headers(customer, token_for):
    return {"Authorization": f"Bearer {token_for('customer')}"}


@pytest.fixture
def admin_headers(admin, token_for):
    return {"Authorization": f"Bearer {token_for('admin')}"}


@pytest.fixture
def make_order(file_db):
    """
    Insert an order row in a given status. Usage: row = make_order(user_id, status="confirmed")
    """
    def _fn(user_id="u1", status="pending", created_at: datetime = None, version=0):
        order = Order(
            user_id=user_id,
            items=[OrderItem(product_id="p1", title="Lamp", unit_price=25.0, quantity=2)],
            status=status,
            created_at=created_at or utcnow(),
            version=version,
        )
        order.total_amount = order.total()
        return file_db.create_record("orders", order.to_dict(), id_field="id")
    return _fn
