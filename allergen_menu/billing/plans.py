from __future__ import annotations

from enum import Enum
from typing import Any


class Plan(str, Enum):
    starter = "starter"
    pro = "pro"
    enterprise = "enterprise"


PLANS: frozenset[str] = frozenset(p.value for p in Plan)

# None means no limit.
MENU_LIMITS: dict[Plan, int | None] = {
    Plan.starter: 1,
    Plan.pro: 3,
    Plan.enterprise: None,
}


def _field(restaurant: Any, name: str) -> Any:
    if isinstance(restaurant, dict):
        return restaurant.get(name)
    return getattr(restaurant, name, None)


def parse_plan(raw: Any) -> Plan | None:
    """Normalize a stored plan label, or ``None`` when it is not recognised."""
    if raw is None:
        return None
    if isinstance(raw, Enum):
        raw = raw.value
    value = str(raw).strip().lower()
    if "enterprise" in value:
        return Plan.enterprise
    if value == "pro":
        return Plan.pro
    if value in ("starter", "free"):
        return Plan.starter
    return None


def resolve_plan(restaurant: Any) -> Plan:
    """Return the restaurant's plan, trying ``plan`` then legacy ``subscription_plan``."""
    for name in ("plan", "subscription_plan"):
        raw = _field(restaurant, name)
        if raw:
            return parse_plan(raw) or Plan.starter
    return Plan.starter


def menu_limit(plan: Plan | str) -> int | None:
    return MENU_LIMITS.get(parse_plan(plan) or Plan.starter)


def can_create_menu(restaurant: Any, existing_menus: int) -> bool:
    limit = menu_limit(resolve_plan(restaurant))
    return limit is None or existing_menus < limit
