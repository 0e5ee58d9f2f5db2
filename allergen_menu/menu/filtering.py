"""
Guest-facing allergen filtering.

Every guest surface (public menu, staff tool, printed view) holds only a
:class:`FilterSelection` and calls into this module, so "safe" and
"contains" mean the same thing everywhere.

All functions are pure: they never mutate their inputs, never raise on
well-formed dishes and keep the caller's dish order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from .models import (
    Badge,
    Dish,
    DishView,
    Facets,
    FilterMode,
    FilterSelection,
    MenuSummary,
    MenuView,
)

T = TypeVar("T")


def _has_selected(dish: Dish, selected: frozenset[str]) -> bool:
    return not dish.allergen_codes.isdisjoint(selected)


def _in_category(dishes: Iterable[Dish], category: str | None) -> list[Dish]:
    if category is None:
        return list(dishes)
    return [d for d in dishes if d.category == category]


def derive_facets(dishes: Iterable[Dish]) -> Facets:
    """Distinct allergen codes and categories present, both sorted ascending."""
    codes: set[str] = set()
    categories: set[str] = set()
    for dish in dishes:
        codes.update(dish.allergen_codes)
        if dish.category:
            categories.add(dish.category)
    return Facets(allergen_codes=sorted(codes), categories=sorted(categories))


def filter_dishes(dishes: Sequence[Dish], selection: FilterSelection) -> list[Dish]:
    """Return the visible dishes for ``selection``, in input order.

    An empty allergen selection shows everything in the chosen category;
    it does not mean "nothing" nor "allergen-free only".
    """
    result = _in_category(dishes, selection.category)
    if not selection.selected_allergens:
        return result

    selected = selection.selected_allergens
    if selection.mode == FilterMode.contains:
        return [d for d in result if _has_selected(d, selected)]
    return [d for d in result if not _has_selected(d, selected)]


def badge_for(dish: Dish, selection: FilterSelection) -> Badge | None:
    # Safe mode only badges non-conflicting dishes, contains mode only
    # conflicting ones.
    if not selection.selected_allergens:
        return None
    conflicting = _has_selected(dish, selection.selected_allergens)
    if selection.mode == FilterMode.safe and not conflicting:
        return Badge.safe
    if selection.mode == FilterMode.contains and conflicting:
        return Badge.contains
    return None


def toggle(items: Iterable[T], item: T) -> frozenset[T]:
    """Add ``item`` if absent, remove it if present."""
    current = frozenset(items)
    return current - {item} if item in current else current | {item}


def select_category(current: str | None, category: str | None) -> str | None:
    """Single-select: choosing the active category again clears it."""
    if category is None or category == current:
        return None
    return category


def toggle_all(selected: Iterable[str], available: Iterable[str]) -> frozenset[str]:
    """Select every available code, or clear the selection if all are already on."""
    selected_set = frozenset(selected)
    available_set = frozenset(available)
    if available_set and available_set <= selected_set:
        return frozenset()
    return available_set


def summarize(dishes: Sequence[Dish], selection: FilterSelection) -> MenuSummary:
    in_category = _in_category(dishes, selection.category)
    visible = filter_dishes(dishes, selection)
    safe_count = sum(
        1 for d in in_category if not _has_selected(d, selection.selected_allergens)
    )
    return MenuSummary(
        total=len(in_category),
        visible=len(visible),
        hidden=len(in_category) - len(visible),
        safe_count=safe_count,
    )


def build_view(dishes: Sequence[Dish], selection: FilterSelection) -> MenuView:
    """Everything a guest surface needs to render one state of the menu."""
    visible = filter_dishes(dishes, selection)
    return MenuView(
        dishes=[DishView(dish=d, badge=badge_for(d, selection)) for d in visible],
        facets=derive_facets(dishes),
        summary=summarize(dishes, selection),
        selection=selection,
    )
