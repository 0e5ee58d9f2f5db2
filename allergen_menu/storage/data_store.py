from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import Any, Generic, TypeVar

import pandas as pd
from pydantic import BaseModel

from .models import (
    AllergenCatalogEntry,
    DishAllergenLink,
    DishRecord,
    MenuRecord,
    RestaurantRecord,
)

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
_ALLERGENS_CSV = _DATA_DIR / "allergens.csv"

RecordT = TypeVar("RecordT", bound=BaseModel)

_lock = threading.RLock()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class _Table(Generic[RecordT]):
    """Rows keyed by ``id``, kept in insertion order."""

    def __init__(self, model: type[RecordT]) -> None:
        self.model = model
        self.rows: dict[str, RecordT] = {}

    def _check_columns(self, columns) -> None:
        unknown = set(columns) - set(self.model.model_fields)
        if unknown:
            raise ValueError(f"Unknown {self.model.__name__} column(s): {sorted(unknown)}")

    def select(self, **criteria: Any) -> list[RecordT]:
        self._check_columns(criteria)
        with _lock:
            return [
                row for row in self.rows.values()
                if all(getattr(row, k) == v for k, v in criteria.items())
            ]

    def find_one(self, **criteria: Any) -> RecordT | None:
        matches = self.select(**criteria)
        return matches[0] if matches else None

    def insert(self, record: RecordT) -> RecordT:
        with _lock:
            if record.id in self.rows:
                raise ValueError(f"Duplicate {self.model.__name__} id {record.id!r}")
            self.rows[record.id] = record
        return record

    def insert_if_absent(self, record: RecordT, **unique: Any) -> tuple[RecordT, bool]:
        """Insert ``record`` unless a row already matches ``unique``.

        The lookup and the insert happen under one lock. Returns the stored
        row and whether it was inserted.
        """
        self._check_columns(unique)
        with _lock:
            existing = self.find_one(**unique)
            if existing is not None:
                return existing, False
            return self.insert(record), True

    def update_where(self, column: str, value: Any, **fields: Any) -> list[RecordT]:
        """Overwrite ``fields`` on every row whose ``column`` equals ``value``.

        Returns the updated rows; an empty list means nothing matched and
        nothing was written.
        """
        self._check_columns([column, *fields])
        if value is None:
            return []
        updated: list[RecordT] = []
        with _lock:
            for row_id, row in list(self.rows.items()):
                if getattr(row, column) == value:
                    new_row = row.model_copy(update=fields)
                    self.rows[row_id] = new_row
                    updated.append(new_row)
        return updated

    def delete_where(self, column: str, value: Any) -> int:
        self._check_columns([column])
        with _lock:
            doomed = [rid for rid, row in self.rows.items() if getattr(row, column) == value]
            for rid in doomed:
                del self.rows[rid]
        return len(doomed)

    def clear(self) -> None:
        with _lock:
            self.rows.clear()


restaurants: _Table[RestaurantRecord] = _Table(RestaurantRecord)
menus: _Table[MenuRecord] = _Table(MenuRecord)
dishes: _Table[DishRecord] = _Table(DishRecord)
dish_allergens: _Table[DishAllergenLink] = _Table(DishAllergenLink)

_catalog: list[AllergenCatalogEntry] | None = None


def _load_catalog() -> list[AllergenCatalogEntry]:
    df = pd.read_csv(_ALLERGENS_CSV, dtype=str, keep_default_na=False)
    df["code"] = df["code"].str.strip().str.upper()
    df = df.drop_duplicates("code").sort_values("code")
    df["description"] = df["description"].str.strip()
    return [
        AllergenCatalogEntry(
            code=row["code"],
            name=row["name"].strip(),
            description=row["description"] or None,
        )
        for row in df[["code", "name", "description"]].to_dict(orient="records")
    ]


def get_catalog() -> list[AllergenCatalogEntry]:
    """Return the allergen catalog sorted by code, loading it on first call."""
    global _catalog
    if _catalog is None:
        _catalog = _load_catalog()
    return _catalog


def catalog_codes() -> set[str]:
    return {entry.code for entry in get_catalog()}


def allergen_codes_for_dishes(dish_ids: list[str]) -> dict[str, list[str]]:
    """Map each dish id to its linked allergen codes, in link order."""
    wanted = set(dish_ids)
    by_dish: dict[str, list[str]] = {dish_id: [] for dish_id in dish_ids}
    with _lock:
        links = list(dish_allergens.rows.values())
    for link in links:
        if link.dish_id in wanted and link.allergen_code not in by_dish[link.dish_id]:
            by_dish[link.dish_id].append(link.allergen_code)
    return by_dish


def slug_in_use(slug: str, restaurant_id: str | None = None) -> bool:
    """Whether ``slug`` already names a public page.

    Restaurant slugs and published menu slugs resolve through one lookup, so
    both tables are checked. ``restaurant_id`` excludes that restaurant's own
    slug.
    """
    with _lock:
        owner = restaurants.find_one(slug=slug)
        if owner is not None and owner.id != restaurant_id:
            return True
        return menus.find_one(public_slug=slug) is not None


def delete_menu_cascade(menu_id: str) -> int:
    """Delete a menu together with its dishes and their allergen links."""
    with _lock:
        for dish in dishes.select(menu_id=menu_id):
            dish_allergens.delete_where("dish_id", dish.id)
        dishes.delete_where("menu_id", menu_id)
        return menus.delete_where("id", menu_id)


def delete_dish_cascade(dish_id: str) -> int:
    with _lock:
        dish_allergens.delete_where("dish_id", dish_id)
        return dishes.delete_where("id", dish_id)


def clear_store() -> None:
    for table in (restaurants, menus, dishes, dish_allergens):
        table.clear()
