from __future__ import annotations

import time

from pydantic import BaseModel, Field


class RestaurantRecord(BaseModel):
    id: str
    owner_id: str
    name: str = "My Restaurant"
    slug: str | None = None
    logo_url: str | None = None

    theme_primary_color: str | None = None
    theme_secondary_color: str | None = None
    theme_accent_color: str | None = None
    theme_font: str | None = None
    theme_background_style: str | None = None
    theme_card_style: str | None = None
    theme_density: str | None = None
    theme_background_url: str | None = None

    plan: str | None = "starter"
    # Legacy column written by older onboarding flows.
    subscription_plan: str | None = None
    subscription_status: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_price_id: str | None = None

    created_at: float = Field(default_factory=time.time)


class MenuRecord(BaseModel):
    id: str
    restaurant_id: str
    name: str = "Main Menu"
    public_slug: str | None = None
    created_at: float = Field(default_factory=time.time)


class DishRecord(BaseModel):
    id: str
    menu_id: str
    name: str
    description: str | None = None
    price: float | None = None
    category: str | None = None
    created_at: float = Field(default_factory=time.time)


class DishAllergenLink(BaseModel):
    id: str
    dish_id: str
    allergen_code: str


class AllergenCatalogEntry(BaseModel):
    code: str
    name: str
    description: str | None = None
