# shopstar/core/payment_gateway.py
"""
Payment gateway adapter.

Defines the contract the order workflow relies on and a Stripe
implementation built on the stripe-python SDK. The adapter is a thin
pass-through: no retries beyond what the SDK does natively.

Tests swap in a fake implementation through `create_app(payment_gateway=...)`.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

import stripe
from fastapi import Request

from shopstar.core.config import Settings

logger = logging.getLogger(__name__)

CLIENT_SECRET_DELIMITER = "_secret_"


@dataclass(frozen=True)
class PaymentIntent:
    """Gateway-side attempt to collect a specific amount."""

    id: str
    status: str
    amount: int
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """Verified asynchronous event delivered by the gateway."""

    id: str
    type: str
    data: dict[str, Any]


class PaymentGatewayError(Exception):
    """Raised when the gateway rejects a call or cannot be reached."""


class WebhookSignatureError(PaymentGatewayError):
    """Raised when a webhook payload fails signature verification."""


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
    ) -> PaymentIntent:
        """Create a payment intent for `amount` minor units."""
        ...

    @abstractmethod
    def update_payment_intent_metadata(
        self,
        intent_id: str,
        metadata: dict[str, str],
    ) -> PaymentIntent:
        """Attach metadata (e.g. the order id) to an existing intent."""
        ...

    @abstractmethod
    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the current state of an intent."""
        ...

    @abstractmethod
    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook payload and return the parsed event."""
        ...


def _as_dict(obj: Any) -> dict[str, Any]:
    if isinstance(obj, dict):
        return dict(obj)
    return obj.to_dict()


def _to_intent(obj: Any) -> PaymentIntent:
    obj = _as_dict(obj)
    metadata = obj.get("metadata") or {}
    return PaymentIntent(
        id=obj["id"],
        status=obj["status"],
        amount=int(obj.get("amount") or 0),
        client_secret=obj.get("client_secret"),
        metadata={str(k): str(v) for k, v in _as_dict(metadata).items()},
    )


class StripeGateway(PaymentGateway):
    """Stripe implementation (PaymentIntents API)."""

    def __init__(self, api_key: str, webhook_secret: str | None = None) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
    ) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata=metadata,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e
        return _to_intent(intent)

    def update_payment_intent_metadata(
        self,
        intent_id: str,
        metadata: dict[str, str],
    ) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.modify(
                intent_id,
                metadata=metadata,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e
        return _to_intent(intent)

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise PaymentGatewayError(str(e)) from e
        return _to_intent(intent)

    def construct_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self.webhook_secret:
            raise WebhookSignatureError("STRIPE_WEBHOOK_SECRET is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureError(str(e)) from e
        return WebhookEvent(
            id=event["id"],
            type=event["type"],
            data=_as_dict(event["data"]["object"]),
        )


# ----- Helpers -----

def normalize_payment_intent_id(value: str) -> str:
    """
    Accept either an intent id ("pi_123") or a client secret
    ("pi_123_secret_abc") and return the intent id.
    """
    value = value.strip()
    if CLIENT_SECRET_DELIMITER in value:
        return value.split(CLIENT_SECRET_DELIMITER, 1)[0]
    return value


def to_minor_units(amount: float) -> int:
    """Convert a currency amount to integer cents (half-up)."""
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def build_payment_gateway(settings: Settings) -> PaymentGateway | None:
    """
    Return the configured gateway, or None when no Stripe key is set
    (orders then fall back to manual payment).
    """
    if not settings.payments_enabled:
        logger.info("Stripe not configured; payments will be processed manually.")
        return None
    return StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)


def get_payment_gateway(request: Request) -> PaymentGateway | None:
    """FastAPI dependency returning the app's payment gateway (may be None)."""
    return request.app.state.payment_gateway
