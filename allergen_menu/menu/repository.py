from __future__ import annotations

from ..storage import data_store
from ..storage.models import DishRecord, MenuRecord, RestaurantRecord
from .models import Dish, PublicDish, normalize_dish


def _to_dishes(records: list[DishRecord]) -> list[Dish]:
    codes = data_store.allergen_codes_for_dishes([r.id for r in records])
    return [
        normalize_dish({**r.model_dump(), "allergens": codes.get(r.id)})
        for r in records
    ]


def dishes_for_menu(menu_id: str) -> list[Dish]:
    records = sorted(data_store.dishes.select(menu_id=menu_id), key=lambda d: d.created_at)
    return _to_dishes(records)


def resolve_public_slug(slug: str) -> tuple[RestaurantRecord, list[MenuRecord]] | None:
    """Find what a public slug points at.

    A published menu's ``public_slug`` wins and yields just that menu; a
    restaurant slug yields all of its menus, oldest first.
    """
    menu = data_store.menus.find_one(public_slug=slug)
    if menu is not None:
        restaurant = data_store.restaurants.find_one(id=menu.restaurant_id)
        if restaurant is None:
            return None
        return restaurant, [menu]

    restaurant = data_store.restaurants.find_one(slug=slug)
    if restaurant is None:
        return None
    menus = sorted(
        data_store.menus.select(restaurant_id=restaurant.id), key=lambda m: m.created_at,
    )
    return restaurant, menus


def public_dishes(slug: str) -> tuple[RestaurantRecord, list[Dish]] | None:
    resolved = resolve_public_slug(slug)
    if resolved is None:
        return None
    restaurant, menus = resolved
    dishes: list[Dish] = []
    for menu in menus:
        dishes.extend(dishes_for_menu(menu.id))
    return restaurant, dishes


def to_public(dish: Dish) -> PublicDish:
    return PublicDish(
        id=dish.id,
        name=dish.name,
        description=dish.description,
        price=dish.price,
        category=dish.category,
        allergens=sorted(dish.allergen_codes),
    )
