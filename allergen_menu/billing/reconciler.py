"""
Stripe webhook reconciliation.

Deliveries are at-least-once and may arrive out of order, so every
transition here is an unconditional overwrite of the fields that event
kind owns, keyed by a stable external identifier (restaurant id for
checkout completions, Stripe customer id for subscription changes).
Applying the same event any number of times leaves the same state.

Each delivery leaves exactly one ``"webhook"`` audit record.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..audit.store import record_event
from ..storage import data_store
from .config import DEFAULT_BILLING_CONFIG, BillingConfig
from .models import (
    CheckoutCompleted,
    EventKind,
    Outcome,
    ReconcileResult,
    SubscriptionChanged,
    WebhookEvent,
)
from .plans import Plan, parse_plan
from .stripe_client import WebhookRejected, verify_webhook

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_PLAN = Plan.pro


def _audit(result: ReconcileResult) -> ReconcileResult:
    record_event("webhook", result.model_dump(mode="json"))
    return result


def _apply_checkout_completed(
    event: WebhookEvent, config: BillingConfig,
) -> ReconcileResult:
    checkout = CheckoutCompleted.from_event(event)
    base = {
        "event_id": event.id,
        "event_type": event.type,
        "kind": EventKind.checkout_completed,
        "customer_id": checkout.customer_id,
    }

    if not checkout.restaurant_id:
        # Redelivery cannot add the missing metadata, so acknowledge it.
        logger.warning(
            "Dropping %s %s: no restaurant_id in checkout metadata",
            event.type, event.id,
        )
        return ReconcileResult(
            **base, outcome=Outcome.skipped, reason="missing_restaurant_id",
        )

    plan = parse_plan(checkout.plan) or DEFAULT_CHECKOUT_PLAN
    fields = {
        "plan": plan.value,
        "subscription_status": "active",
        "stripe_subscription_id": checkout.subscription_id,
        "stripe_price_id": checkout.price_id,
    }
    # A customer id, once linked, is never cleared.
    if checkout.customer_id:
        fields["stripe_customer_id"] = checkout.customer_id

    updated = data_store.restaurants.update_where("id", checkout.restaurant_id, **fields)
    if not updated:
        logger.warning(
            "Dropping %s %s: restaurant %s does not exist",
            event.type, event.id, checkout.restaurant_id,
        )
        return ReconcileResult(
            **base,
            outcome=Outcome.skipped,
            reason="unknown_restaurant",
            restaurant_id=checkout.restaurant_id,
        )

    logger.info(
        "Checkout completed for restaurant %s: plan=%s customer=%s",
        checkout.restaurant_id, plan.value, checkout.customer_id,
    )
    return ReconcileResult(
        **base,
        outcome=Outcome.processed,
        restaurant_id=checkout.restaurant_id,
        plan=plan,
        subscription_status="active",
    )


def _apply_subscription_changed(
    event: WebhookEvent, config: BillingConfig,
) -> ReconcileResult:
    change = SubscriptionChanged.from_event(event)
    base = {
        "event_id": event.id,
        "event_type": event.type,
        "kind": EventKind.subscription_changed,
        "customer_id": change.customer_id,
    }

    if not change.customer_id:
        logger.warning("Dropping %s %s: no customer on subscription", event.type, event.id)
        return ReconcileResult(**base, outcome=Outcome.skipped, reason="missing_customer")

    plan = config.plan_for_price(change.price_id)
    updated = data_store.restaurants.update_where(
        "stripe_customer_id",
        change.customer_id,
        plan=plan.value,
        subscription_status=change.status,
        stripe_price_id=change.price_id,
    )
    if not updated:
        logger.warning(
            "Dropping %s %s: no restaurant linked to customer %s",
            event.type, event.id, change.customer_id,
        )
        return ReconcileResult(**base, outcome=Outcome.skipped, reason="unknown_customer")

    logger.info(
        "Subscription %s for customer %s -> %s (%s)",
        change.subscription_id, change.customer_id, change.status, plan.value,
    )
    return ReconcileResult(
        **base,
        outcome=Outcome.processed,
        restaurant_id=updated[0].id,
        plan=plan,
        subscription_status=change.status,
    )


def _ignore(event: WebhookEvent, config: BillingConfig) -> ReconcileResult:
    logger.info("Ignoring Stripe event type %s", event.type)
    return ReconcileResult(
        event_id=event.id,
        event_type=event.type,
        kind=EventKind.unrecognized,
        outcome=Outcome.ignored,
    )


_HANDLERS: dict[EventKind, Callable[[WebhookEvent, BillingConfig], ReconcileResult]] = {
    EventKind.checkout_completed: _apply_checkout_completed,
    EventKind.subscription_changed: _apply_subscription_changed,
    EventKind.unrecognized: _ignore,
}


def apply_event(
    event: WebhookEvent, config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> ReconcileResult:
    """Apply an already-authenticated event to restaurant billing state."""
    return _audit(_HANDLERS[event.kind](event, config))


def handle_webhook(
    payload: bytes | str,
    signature: str | None,
    config: BillingConfig = DEFAULT_BILLING_CONFIG,
) -> ReconcileResult:
    """Verify a raw delivery and reconcile it.

    Rejected deliveries are audited and re-raised; nothing is written.
    """
    try:
        event = verify_webhook(payload, signature, config)
    except WebhookRejected as exc:
        logger.warning("Rejected Stripe webhook: %s", exc)
        _audit(ReconcileResult(
            event_type="unknown",
            kind=EventKind.unrecognized,
            outcome=Outcome.rejected,
            reason=str(exc),
        ))
        raise
    return apply_event(event, config)
