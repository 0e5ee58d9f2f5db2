from __future__ import annotations

import pytest

from allergen_menu.menu.theme import DEFAULT_THEME, theme_tokens
from allergen_menu.storage import data_store
from allergen_menu.storage.blob import LogoRejected, clear_blobs, get_blob, upload, upload_logo
from allergen_menu.storage.config import StorageConfig
from allergen_menu.storage.models import (
    DishAllergenLink,
    DishRecord,
    MenuRecord,
    RestaurantRecord,
)


@pytest.fixture
def store():
    data_store.clear_store()
    yield data_store
    data_store.clear_store()


# ── Tables ───────────────────────────────────────────────────────────────


def test_insert_and_select(store):
    store.restaurants.insert(RestaurantRecord(id="r1", owner_id="u1", slug="one"))
    store.restaurants.insert(RestaurantRecord(id="r2", owner_id="u2", slug="two"))
    assert [r.id for r in store.restaurants.select()] == ["r1", "r2"]
    assert store.restaurants.find_one(slug="two").id == "r2"
    assert store.restaurants.find_one(slug="three") is None


def test_insert_duplicate_id(store):
    store.menus.insert(MenuRecord(id="m1", restaurant_id="r1"))
    with pytest.raises(ValueError):
        store.menus.insert(MenuRecord(id="m1", restaurant_id="r1"))


def test_unknown_column_is_rejected(store):
    with pytest.raises(ValueError):
        store.restaurants.select(colour="red")
    with pytest.raises(ValueError):
        store.restaurants.update_where("id", "r1", colour="red")


def test_update_where_returns_updated_rows(store):
    store.restaurants.insert(RestaurantRecord(id="r1", owner_id="u1", stripe_customer_id="cus_1"))
    store.restaurants.insert(RestaurantRecord(id="r2", owner_id="u2"))
    updated = store.restaurants.update_where("stripe_customer_id", "cus_1", plan="pro")
    assert [r.id for r in updated] == ["r1"]
    assert store.restaurants.find_one(id="r1").plan == "pro"
    assert store.restaurants.find_one(id="r2").plan == "starter"


def test_update_where_none_matches_nothing(store):
    store.restaurants.insert(RestaurantRecord(id="r1", owner_id="u1"))
    # r1 has no customer id; a None key must not select it
    assert store.restaurants.update_where("stripe_customer_id", None, plan="pro") == []
    assert store.restaurants.find_one(id="r1").plan == "starter"


def test_delete_menu_cascade(store):
    store.menus.insert(MenuRecord(id="m1", restaurant_id="r1"))
    store.menus.insert(MenuRecord(id="m2", restaurant_id="r1"))
    store.dishes.insert(DishRecord(id="d1", menu_id="m1", name="Soup"))
    store.dishes.insert(DishRecord(id="d2", menu_id="m2", name="Tea"))
    store.dish_allergens.insert(DishAllergenLink(id="l1", dish_id="d1", allergen_code="CE"))
    store.dish_allergens.insert(DishAllergenLink(id="l2", dish_id="d2", allergen_code="SU"))

    assert store.delete_menu_cascade("m1") == 1
    assert [m.id for m in store.menus.select()] == ["m2"]
    assert [d.id for d in store.dishes.select()] == ["d2"]
    assert [link.id for link in store.dish_allergens.select()] == ["l2"]


def test_allergen_codes_for_dishes(store):
    store.dish_allergens.insert(DishAllergenLink(id="l1", dish_id="d1", allergen_code="GL"))
    store.dish_allergens.insert(DishAllergenLink(id="l2", dish_id="d1", allergen_code="MI"))
    assert store.allergen_codes_for_dishes(["d1", "d2"]) == {"d1": ["GL", "MI"], "d2": []}


def test_new_id_has_prefix():
    first = data_store.new_id("dish")
    assert first.startswith("dish_")
    assert first != data_store.new_id("dish")


# ── Catalog ──────────────────────────────────────────────────────────────


def test_catalog_loaded_from_csv():
    catalog = data_store.get_catalog()
    codes = [entry.code for entry in catalog]
    assert codes == sorted(codes)
    assert len(codes) == len(set(codes)) == 17
    by_code = {entry.code: entry for entry in catalog}
    assert by_code["NU"].name == "Nuts"
    assert by_code["EG"].description is None
    assert data_store.catalog_codes() == set(codes)


# ── Blobs ────────────────────────────────────────────────────────────────


def test_upload_overwrites_and_returns_url():
    clear_blobs()
    config = StorageConfig(public_base_url="https://cdn.example.com/")
    assert upload("/a/b.txt", b"one", "text/plain", config) == "https://cdn.example.com/a/b.txt"
    upload("a/b.txt", b"two", "text/plain", config)
    assert get_blob("a/b.txt")["data"] == b"two"


def test_upload_logo_checks_type_and_size():
    config = StorageConfig(max_logo_bytes=4)
    assert upload_logo("r1", b"abc", "image/jpeg; charset=binary", config).endswith("logos/r1.jpg")
    with pytest.raises(LogoRejected):
        upload_logo("r1", b"abc", "application/pdf", config)
    with pytest.raises(LogoRejected):
        upload_logo("r1", b"", "image/png", config)
    with pytest.raises(LogoRejected):
        upload_logo("r1", b"12345", "image/png", config)


# ── Theme ────────────────────────────────────────────────────────────────


def test_theme_defaults():
    assert theme_tokens(None) == DEFAULT_THEME
    assert theme_tokens(RestaurantRecord(id="r1", owner_id="u1")) == DEFAULT_THEME


def test_theme_overrides_from_mapping():
    tokens = theme_tokens({
        "theme_primary_color": "#000",
        "theme_font": "Inter",
        "theme_background_url": "https://cdn.example.com/bg.png",
    })
    assert tokens["--primary"] == "#000"
    assert tokens["--font"] == "Inter"
    assert tokens["--background-image"] == "url(https://cdn.example.com/bg.png)"
    assert tokens["--density"] == "cozy"


def test_theme_does_not_mutate_defaults():
    theme_tokens({"theme_primary_color": "#fff"})
    assert DEFAULT_THEME["--primary"] == "#d4af37"


def test_catalog_blank_descriptions_become_none(tmp_path, monkeypatch):
    csv = tmp_path / "allergens.csv"
    csv.write_text('code,name,description\nzz,Test,\nGL,Gluten,"Wheat, rye"\n')
    monkeypatch.setattr(data_store, "_ALLERGENS_CSV", csv)
    catalog = data_store._load_catalog()
    assert [(e.code, e.description) for e in catalog] == [("GL", "Wheat, rye"), ("ZZ", None)]


def test_insert_if_absent(store):
    first, created = store.dish_allergens.insert_if_absent(
        DishAllergenLink(id="l1", dish_id="d1", allergen_code="GL"),
        dish_id="d1", allergen_code="GL",
    )
    assert created
    again, created = store.dish_allergens.insert_if_absent(
        DishAllergenLink(id="l2", dish_id="d1", allergen_code="GL"),
        dish_id="d1", allergen_code="GL",
    )
    assert not created
    assert again.id == first.id == "l1"
    assert len(store.dish_allergens.select()) == 1


def test_slug_in_use_covers_both_tables(store):
    store.restaurants.insert(RestaurantRecord(id="r1", owner_id="u1", slug="bistro"))
    store.menus.insert(MenuRecord(id="m1", restaurant_id="r2", public_slug="ab12cd34"))
    assert store.slug_in_use("bistro")
    assert not store.slug_in_use("bistro", restaurant_id="r1")
    assert store.slug_in_use("ab12cd34", restaurant_id="r1")
    assert not store.slug_in_use("free-slug")
