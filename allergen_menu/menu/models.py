from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FilterMode(str, Enum):
    safe = "safe"
    contains = "contains"


class Badge(str, Enum):
    safe = "safe"
    contains = "contains"


def _normalize_codes(raw: Any) -> frozenset[str]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(
        str(code).strip().upper() for code in raw if code is not None and str(code).strip()
    )


class Dish(BaseModel):
    """A dish as the filter engine sees it. Never mutated by the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    menu_id: str | None = None
    name: str
    description: str | None = None
    price: float | None = None
    category: str | None = None
    allergen_codes: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        # Integer ids from external rows are kept as their string form.
        return value if isinstance(value, str) else str(value)

    @field_validator("allergen_codes", mode="before")
    @classmethod
    def _coerce_codes(cls, value: Any) -> frozenset[str]:
        return _normalize_codes(value)


def normalize_dish(raw: dict[str, Any]) -> Dish:
    """Build a :class:`Dish` from a loosely shaped row.

    Accepts either ``allergens`` or ``allergen_codes``; a missing, null or
    non-list value becomes the empty set and codes are upper-cased.
    """
    codes = raw.get("allergen_codes", raw.get("allergens"))
    category = raw.get("category") or None
    return Dish(
        id=str(raw.get("id", "")),
        menu_id=raw.get("menu_id"),
        name=raw.get("name") or "",
        description=raw.get("description"),
        price=raw.get("price"),
        category=category,
        allergen_codes=_normalize_codes(codes),
    )


class FilterSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    selected_allergens: frozenset[str] = Field(default_factory=frozenset)
    mode: FilterMode = FilterMode.safe
    category: str | None = None

    @field_validator("selected_allergens", mode="before")
    @classmethod
    def _coerce_codes(cls, value: Any) -> frozenset[str]:
        return _normalize_codes(value)

    @property
    def is_active(self) -> bool:
        return bool(self.selected_allergens)


class Facets(BaseModel):
    allergen_codes: list[str]
    categories: list[str]


class MenuSummary(BaseModel):
    total: int
    visible: int
    hidden: int
    safe_count: int


class DishView(BaseModel):
    dish: Dish
    badge: Badge | None = None


class MenuView(BaseModel):
    dishes: list[DishView]
    facets: Facets
    summary: MenuSummary
    selection: FilterSelection


# ── HTTP payloads ────────────────────────────────────────────────────────


class PublicDish(BaseModel):
    id: str
    name: str
    description: str | None = None
    price: float | None = None
    category: str | None = None
    allergens: list[str] = Field(default_factory=list)


class PublicDishView(PublicDish):
    badge: Badge | None = None


class PublicMenuView(BaseModel):
    dishes: list[PublicDishView]
    facets: Facets
    summary: MenuSummary
    mode: FilterMode
    selected_allergens: list[str]
    category: str | None = None


class RestaurantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    slug: str | None = Field(
        default=None, min_length=2, max_length=64, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$",
    )


class AppearanceUpdate(BaseModel):
    theme_primary_color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{3,8}$")
    theme_secondary_color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{3,8}$")
    theme_accent_color: str | None = Field(default=None, pattern=r"^#[0-9a-fA-F]{3,8}$")
    theme_font: str | None = Field(default=None, max_length=80)
    theme_background_style: str | None = Field(default=None, pattern=r"^(dark|light)$")
    theme_card_style: str | None = Field(default=None, pattern=r"^(glass|solid)$")
    theme_density: str | None = Field(default=None, pattern=r"^(cozy|compact)$")
    theme_background_url: str | None = Field(default=None, max_length=500)


class MenuCreate(BaseModel):
    name: str = Field(default="Main Menu", min_length=1, max_length=120)


class DishCreate(BaseModel):
    menu_id: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    price: float | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=80)
    allergens: list[str] = Field(default_factory=list)


class DishUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    price: float | None = Field(default=None, ge=0)
    category: str | None = Field(default=None, max_length=80)


class AllergenLinkRequest(BaseModel):
    allergen_code: str = Field(..., min_length=1, max_length=8)
