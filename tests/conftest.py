import itertools
import json
import os
import uuid
from dataclasses import replace

import pytest

# Settings() is built at import time by shopstar.main
TEST_JWT_SECRET = "test-jwt-secret"
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("ENVIRONMENT", "test")

from fastapi.testclient import TestClient  # noqa: E402

from shopstar.core.config import Settings  # noqa: E402
from shopstar.core.payment_gateway import (  # noqa: E402
    PaymentGateway,
    PaymentGatewayError,
    PaymentIntent,
    WebhookEvent,
    WebhookSignatureError,
)
from shopstar.main import create_app  # noqa: E402
from shopstar.models.user import User  # noqa: E402
from shopstar.services.notification_service import NotificationService  # noqa: E402

VALID_SIGNATURE = "t=1,v1=valid"


class FakePaymentGateway(PaymentGateway):
    """In-memory gateway. Intents start unpaid; tests flip them with `succeed`."""

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.fail_create = False
        self._ids = itertools.count(1)

    def create_payment_intent(self, amount, currency, metadata):
        if self.fail_create:
            raise PaymentGatewayError("card network unavailable")
        intent_id = f"pi_test_{next(self._ids):04d}"
        intent = PaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            client_secret=f"{intent_id}_secret_xyz",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        return intent

    def update_payment_intent_metadata(self, intent_id, metadata):
        intent = self.retrieve_payment_intent(intent_id)
        updated = replace(intent, metadata={**intent.metadata, **metadata})
        self.intents[intent_id] = updated
        return updated

    def retrieve_payment_intent(self, intent_id):
        try:
            return self.intents[intent_id]
        except KeyError:
            raise PaymentGatewayError(f"No such payment_intent: {intent_id}")

    def construct_webhook_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureError("No signatures found matching the expected signature")
        body = json.loads(payload)
        return WebhookEvent(id=body["id"], type=body["type"], data=body["data"]["object"])

    def succeed(self, intent_id: str) -> None:
        self.intents[intent_id] = replace(self.intents[intent_id], status="succeeded")


class RecordingNotifier(NotificationService):
    """Captures outgoing emails instead of talking to SMTP."""

    def __init__(self, settings):
        super().__init__(settings)
        self.sent: list[tuple[str, str, str]] = []

    def _send(self, to_email, subject, text_body, html_body):
        self.sent.append((to_email, subject, text_body))
        return True


@pytest.fixture()
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET=TEST_JWT_SECRET,
        ENVIRONMENT="test",
        STRIPE_SECRET_KEY=None,
        SMTP_HOST=None,
        SUPABASE_URL=None,
    )


@pytest.fixture()
def gateway():
    return FakePaymentGateway()


@pytest.fixture()
def notifier(settings):
    return RecordingNotifier(settings)


@pytest.fixture()
def app(settings, gateway, notifier):
    return create_app(settings, payment_gateway=gateway, notifier=notifier)


@pytest.fixture()
def client(app):
    # Context manager runs the lifespan, which creates the tables.
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session(app, client):
    with app.state.db.session() as session:
        yield session


# ----- Helpers -----


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client, name, email, password="Secret123"):
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    data["headers"] = auth_header(data["token"])
    return data


def _promote(app, user_id: str) -> None:
    with app.state.db.session() as session:
        user = session.get(User, uuid.UUID(user_id))
        user.role = "admin"
        session.add(user)
        session.commit()


@pytest.fixture()
def register(client):
    """Factory: register(name, email) -> {token, user, headers}."""
    counter = itertools.count(1)

    def _make(name=None, email=None, password="Secret123"):
        n = next(counter)
        return _register(
            client,
            name or f"Customer {n}",
            email or f"customer{n}@example.com",
            password,
        )

    return _make


@pytest.fixture()
def customer(register):
    return register(name="Jane Doe", email="jane@example.com")


@pytest.fixture()
def admin(app, client):
    data = _register(client, "Store Admin", "admin@example.com")
    _promote(app, data["user"]["id"])
    return data


@pytest.fixture()
def make_category(client, admin):
    counter = itertools.count(1)

    def _make(name=None, **extra):
        payload = {"name": name or f"Category {next(counter)}", **extra}
        response = client.post("/api/categories", json=payload, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def category(make_category):
    return make_category("Electronics")


@pytest.fixture()
def make_product(client, admin, category):
    counter = itertools.count(1)

    def _make(
        name=None,
        price=29.99,
        quantity=10,
        status="active",
        track_quantity=True,
        **extra,
    ):
        n = next(counter)
        payload = {
            "name": name or f"Product {n}",
            "description": "A fine product",
            "price": price,
            "sku": f"SKU-{n:04d}",
            "category_id": category["id"],
            "inventory": {"quantity": quantity, "track_quantity": track_quantity},
            "status": status,
            **extra,
        }
        response = client.post("/api/products", json=payload, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()

    return _make
