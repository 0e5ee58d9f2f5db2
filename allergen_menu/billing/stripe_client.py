from __future__ import annotations

import stripe
from pydantic import ValidationError

from ..storage.models import RestaurantRecord
from .config import DEFAULT_BILLING_CONFIG, BillingConfig
from .models import WebhookEvent
from .plans import Plan


class BillingNotConfigured(RuntimeError):
    """Stripe keys are missing in this environment."""


class WebhookRejected(ValueError):
    """A delivery that must not be processed at all."""


class SignatureVerificationFailed(WebhookRejected):
    pass


def create_customer(
    restaurant: RestaurantRecord,
    email: str | None,
    config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> str:
    """Create a Stripe customer linked to ``restaurant`` and return its id."""
    if not config.can_create_sessions:
        raise BillingNotConfigured("STRIPE_SECRET_KEY is not set")

    customer = stripe.Customer.create(
        api_key=config.secret_key,
        email=email or None,
        name=restaurant.name or None,
        metadata={"restaurant_id": restaurant.id, "owner_id": restaurant.owner_id},
    )
    return customer.id


def create_checkout_session(
    restaurant: RestaurantRecord,
    customer_id: str,
    plan: Plan,
    price_id: str,
    config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> str:
    """Start a subscription checkout and return the hosted page URL.

    ``restaurant_id``, ``plan`` and ``price_id`` travel as metadata and come
    back verbatim on ``checkout.session.completed``.
    """
    if not config.can_create_sessions:
        raise BillingNotConfigured("STRIPE_SECRET_KEY is not set")

    base = config.app_url.rstrip("/")
    session = stripe.checkout.Session.create(
        api_key=config.secret_key,
        mode="subscription",
        customer=customer_id,
        line_items=[{"price": price_id, "quantity": 1}],
        success_url=f"{base}/dashboard/billing?success=1",
        cancel_url=f"{base}/dashboard/billing?canceled=1",
        metadata={
            "restaurant_id": restaurant.id,
            "plan": plan.value,
            "price_id": price_id,
        },
    )
    return session.url


def create_portal_session(
    customer_id: str,
    config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> str:
    if not config.can_create_sessions:
        raise BillingNotConfigured("STRIPE_SECRET_KEY is not set")

    session = stripe.billing_portal.Session.create(
        api_key=config.secret_key,
        customer=customer_id,
        return_url=f"{config.app_url.rstrip('/')}/dashboard/billing",
    )
    return session.url


def verify_webhook(
    payload: bytes | str,
    signature: str | None,
    config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> WebhookEvent:
    """Authenticate a delivery against the webhook secret, then parse it.

    Raises :class:`SignatureVerificationFailed` for a missing or bad
    signature and :class:`WebhookRejected` for a body that is not an event.
    """
    if not config.can_verify_webhooks:
        raise BillingNotConfigured("STRIPE_WEBHOOK_SECRET is not set")
    if not signature:
        raise SignatureVerificationFailed("Missing Stripe-Signature header")

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SignatureVerificationFailed("Payload is not valid UTF-8") from exc

    try:
        stripe.WebhookSignature.verify_header(
            payload, signature, config.webhook_secret, config.signature_tolerance,
        )
    except stripe.SignatureVerificationError as exc:
        raise SignatureVerificationFailed(str(exc)) from exc

    try:
        return WebhookEvent.model_validate_json(payload)
    except ValidationError as exc:
        raise WebhookRejected("Payload is not a Stripe event") from exc
