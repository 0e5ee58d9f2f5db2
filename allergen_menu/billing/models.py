from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .plans import Plan


class EventKind(str, Enum):
    checkout_completed = "checkout_completed"
    subscription_changed = "subscription_changed"
    unrecognized = "unrecognized"


EVENT_KINDS: dict[str, EventKind] = {
    "checkout.session.completed": EventKind.checkout_completed,
    "customer.subscription.created": EventKind.subscription_changed,
    "customer.subscription.updated": EventKind.subscription_changed,
    "customer.subscription.deleted": EventKind.subscription_changed,
}


class Outcome(str, Enum):
    processed = "processed"
    skipped = "skipped"
    ignored = "ignored"
    rejected = "rejected"


class EventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: dict[str, Any] = Field(default_factory=dict)


class WebhookEvent(BaseModel):
    """The parts of a Stripe event envelope the reconciler reads."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: EventData = Field(default_factory=EventData)

    @property
    def kind(self) -> EventKind:
        return EVENT_KINDS.get(self.type, EventKind.unrecognized)


class CheckoutCompleted(BaseModel):
    restaurant_id: str | None = None
    plan: str | None = None
    price_id: str | None = None
    customer_id: str | None = None
    subscription_id: str | None = None

    @classmethod
    def from_event(cls, event: WebhookEvent) -> CheckoutCompleted:
        obj = event.data.object
        metadata = obj.get("metadata") or {}
        return cls(
            restaurant_id=metadata.get("restaurant_id") or None,
            plan=metadata.get("plan") or None,
            price_id=metadata.get("price_id") or None,
            customer_id=_as_id(obj.get("customer")),
            subscription_id=_as_id(obj.get("subscription")),
        )


class SubscriptionChanged(BaseModel):
    customer_id: str | None = None
    subscription_id: str | None = None
    status: str | None = None
    price_id: str | None = None

    @classmethod
    def from_event(cls, event: WebhookEvent) -> SubscriptionChanged:
        obj = event.data.object
        return cls(
            customer_id=_as_id(obj.get("customer")),
            subscription_id=_as_id(obj.get("id")),
            status=obj.get("status"),
            price_id=_subscription_price(obj),
        )


def _as_id(value: Any) -> str | None:
    # Expanded objects carry their id; plain references are strings.
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value else None


def _subscription_price(obj: dict[str, Any]) -> str | None:
    items = (obj.get("items") or {}).get("data") or []
    for item in items:
        price = _as_id((item or {}).get("price"))
        if price:
            return price
    return _as_id(obj.get("plan"))


class ReconcileResult(BaseModel):
    event_id: str | None = None
    event_type: str
    kind: EventKind
    outcome: Outcome
    reason: str | None = None
    restaurant_id: str | None = None
    customer_id: str | None = None
    plan: Plan | None = None
    subscription_status: str | None = None


# ── HTTP payloads ────────────────────────────────────────────────────────


class CheckoutRequest(BaseModel):
    plan: Plan = Plan.pro


class SessionResponse(BaseModel):
    url: str
