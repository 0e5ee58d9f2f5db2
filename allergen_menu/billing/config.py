from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .plans import PLANS, Plan

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class BillingConfig:
    secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    price_starter: str = os.getenv("STRIPE_PRICE_STARTER", "")
    price_pro: str = os.getenv("STRIPE_PRICE_PRO", "")
    price_enterprise: str = os.getenv("STRIPE_PRICE_ENTERPRISE", "")
    app_url: str = os.getenv("APP_URL", "http://localhost:8000")
    signature_tolerance: int = 300
    enabled: bool = True

    def price_for_plan(self, plan: Plan | str) -> str | None:
        if plan not in PLANS:
            return None
        prices = {
            Plan.starter: self.price_starter,
            Plan.pro: self.price_pro,
            Plan.enterprise: self.price_enterprise,
        }
        return prices[Plan(plan)] or None

    def plan_for_price(self, price_id: str | None) -> Plan:
        """Map a Stripe price id to a plan; unknown prices are starter."""
        if price_id:
            for plan in (Plan.enterprise, Plan.pro, Plan.starter):
                if self.price_for_plan(plan) == price_id:
                    return plan
        return Plan.starter

    @property
    def can_create_sessions(self) -> bool:
        return self.enabled and bool(self.secret_key)

    @property
    def can_verify_webhooks(self) -> bool:
        return self.enabled and bool(self.webhook_secret)


DEFAULT_BILLING_CONFIG = BillingConfig()
