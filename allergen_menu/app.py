from __future__ import annotations

import logging
import os
import secrets

import stripe
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from starlette.middleware.sessions import SessionMiddleware

from .audit.aggregator import compute_webhook_stats
from .audit.store import get_events
from .auth.dependencies import SESSION_KEY, require_admin, require_user
from .auth.models import LoginRequest, SignUpRequest
from .auth.users import authenticate, sign_up
from .billing.config import DEFAULT_BILLING_CONFIG
from .billing.models import CheckoutRequest, SessionResponse
from .billing.plans import can_create_menu, menu_limit, resolve_plan
from .billing.reconciler import handle_webhook
from .billing.stripe_client import (
    BillingNotConfigured,
    SignatureVerificationFailed,
    WebhookRejected,
    create_checkout_session,
    create_customer,
    create_portal_session,
)
from .menu.filtering import build_view
from .menu.models import (
    AllergenLinkRequest,
    AppearanceUpdate,
    DishCreate,
    DishUpdate,
    FilterMode,
    FilterSelection,
    MenuCreate,
    PublicDish,
    PublicDishView,
    PublicMenuView,
    RestaurantUpdate,
)
from .menu.repository import dishes_for_menu, public_dishes, to_public
from .menu.theme import theme_tokens
from .storage import data_store
from .storage.blob import LogoRejected, get_blob, upload_logo
from .storage.models import DishAllergenLink, DishRecord, MenuRecord, RestaurantRecord

logger = logging.getLogger(__name__)

app = FastAPI(title="Allergen Menu API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "allergen-menu-secret-change-in-production"),
)


def _owned_restaurant(user: dict) -> RestaurantRecord:
    restaurant = data_store.restaurants.find_one(owner_id=user["id"])
    if restaurant is None:
        raise HTTPException(status_code=404, detail="No restaurant for this account")
    return restaurant


def _owned_menu(menu_id: str, restaurant: RestaurantRecord) -> MenuRecord:
    menu = data_store.menus.find_one(id=menu_id)
    if menu is None:
        raise HTTPException(status_code=404, detail="Menu not found")
    if menu.restaurant_id != restaurant.id:
        raise HTTPException(status_code=403, detail="Not allowed to access this menu")
    return menu


def _owned_dish(dish_id: str, restaurant: RestaurantRecord) -> DishRecord:
    dish = data_store.dishes.find_one(id=dish_id)
    if dish is None:
        raise HTTPException(status_code=404, detail="Dish not found")
    _owned_menu(dish.menu_id, restaurant)
    return dish


def _check_allergen_codes(codes: list[str]) -> list[str]:
    normalized = list(dict.fromkeys(c.strip().upper() for c in codes if c.strip()))
    unknown = sorted(set(normalized) - data_store.catalog_codes())
    if unknown:
        raise HTTPException(
            status_code=400, detail=f"Unknown allergen code(s): {', '.join(unknown)}",
        )
    return normalized


def _dish_out(dish: DishRecord) -> dict:
    codes = data_store.allergen_codes_for_dishes([dish.id])[dish.id]
    return {**dish.model_dump(), "allergens": sorted(codes)}


def _public_or_404(slug: str):
    found = public_dishes(slug)
    if found is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return found


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/allergens")
def allergen_catalog() -> dict:
    return {"allergens": [entry.model_dump() for entry in data_store.get_catalog()]}


@app.get("/public-menu/{slug}", response_model=list[PublicDish])
def public_menu(slug: str) -> list[PublicDish]:
    _, dishes = _public_or_404(slug)
    return [to_public(d) for d in dishes]


@app.get("/public-menu/{slug}/view", response_model=PublicMenuView)
def public_menu_view(
    slug: str,
    allergens: str = Query(default="", description="Comma-separated allergen codes"),
    mode: FilterMode = FilterMode.safe,
    category: str | None = None,
) -> PublicMenuView:
    _, dishes = _public_or_404(slug)
    selection = FilterSelection(
        selected_allergens=[c for c in allergens.split(",") if c.strip()],
        mode=mode,
        category=category or None,
    )
    view = build_view(dishes, selection)
    return PublicMenuView(
        dishes=[
            PublicDishView(**to_public(item.dish).model_dump(), badge=item.badge)
            for item in view.dishes
        ],
        facets=view.facets,
        summary=view.summary,
        mode=selection.mode,
        selected_allergens=sorted(selection.selected_allergens),
        category=selection.category,
    )


@app.get("/public-menu/{slug}/theme")
def public_menu_theme(slug: str) -> dict:
    restaurant, _ = _public_or_404(slug)
    return {
        "name": restaurant.name,
        "logo_url": restaurant.logo_url,
        "tokens": theme_tokens(restaurant),
    }


@app.get("/restaurant-logo/{slug}")
def restaurant_logo(slug: str) -> dict:
    restaurant, _ = _public_or_404(slug)
    return {"logo_url": restaurant.logo_url}


@app.get("/blobs/{path:path}")
def blob(path: str) -> Response:
    stored = get_blob(path)
    if stored is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=stored["data"], media_type=stored["content_type"])


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/sign-up", status_code=201)
def register(body: SignUpRequest, request: Request) -> dict:
    user = sign_up(body.email, body.password)
    if not user:
        raise HTTPException(status_code=409, detail="Email already registered")
    request.session[SESSION_KEY] = user
    return {"status": "ok", "user": user}


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session[SESSION_KEY] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── Restaurant endpoints ─────────────────────────────────────────────────


@app.get("/restaurant")
def get_restaurant(user: dict = Depends(require_user)) -> dict:
    restaurant = data_store.restaurants.find_one(owner_id=user["id"])
    if restaurant is None:
        restaurant = data_store.restaurants.insert(RestaurantRecord(
            id=data_store.new_id("rest"),
            owner_id=user["id"],
            slug=f"r-{secrets.token_hex(5)}",
        ))
        logger.info("Created restaurant %s for user %s", restaurant.id, user["id"])
    plan = resolve_plan(restaurant)
    return {**restaurant.model_dump(), "resolved_plan": plan.value, "menu_limit": menu_limit(plan)}


@app.patch("/restaurant")
def update_restaurant(body: RestaurantUpdate, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    fields = body.model_dump(exclude_none=True)
    if "slug" in fields:
        if data_store.slug_in_use(fields["slug"], restaurant_id=restaurant.id):
            raise HTTPException(status_code=409, detail="Slug already in use")
    if fields:
        restaurant = data_store.restaurants.update_where("id", restaurant.id, **fields)[0]
    return restaurant.model_dump()


@app.patch("/restaurant/appearance")
def update_appearance(body: AppearanceUpdate, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    fields = body.model_dump(exclude_none=True)
    if fields:
        restaurant = data_store.restaurants.update_where("id", restaurant.id, **fields)[0]
    return {"tokens": theme_tokens(restaurant)}


@app.post("/restaurant/logo")
async def upload_restaurant_logo(request: Request, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    data = await request.body()
    try:
        url = upload_logo(restaurant.id, data, request.headers.get("content-type"))
    except LogoRejected as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    data_store.restaurants.update_where("id", restaurant.id, logo_url=url)
    return {"logo_url": url}


# ── Menu endpoints ───────────────────────────────────────────────────────


@app.get("/menus")
def list_menus(user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    menus = sorted(data_store.menus.select(restaurant_id=restaurant.id), key=lambda m: m.created_at)
    plan = resolve_plan(restaurant)
    return {
        "menus": [m.model_dump() for m in menus],
        "plan": plan.value,
        "menu_limit": menu_limit(plan),
    }


@app.post("/menus", status_code=201)
def create_menu(body: MenuCreate, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    existing = len(data_store.menus.select(restaurant_id=restaurant.id))
    if not can_create_menu(restaurant, existing):
        plan = resolve_plan(restaurant)
        raise HTTPException(
            status_code=403,
            detail=f"The {plan.value} plan allows {menu_limit(plan)} menu(s)",
        )
    menu = data_store.menus.insert(MenuRecord(
        id=data_store.new_id("menu"),
        restaurant_id=restaurant.id,
        name=body.name.strip(),
    ))
    return menu.model_dump()


@app.post("/menus/{menu_id}/publish")
def publish_menu(menu_id: str, user: dict = Depends(require_user)) -> dict:
    menu = _owned_menu(menu_id, _owned_restaurant(user))
    slug = menu.public_slug
    if not slug:
        slug = secrets.token_hex(4)
        while data_store.slug_in_use(slug):
            slug = secrets.token_hex(4)
        data_store.menus.update_where("id", menu.id, public_slug=slug)
    base = DEFAULT_BILLING_CONFIG.app_url.rstrip("/")
    return {"slug": slug, "url": f"{base}/r/{slug}/menu"}


@app.delete("/menus/{menu_id}")
def delete_menu(menu_id: str, user: dict = Depends(require_user)) -> dict:
    menu = _owned_menu(menu_id, _owned_restaurant(user))
    data_store.delete_menu_cascade(menu.id)
    return {"success": True}


# ── Dish endpoints ───────────────────────────────────────────────────────


@app.get("/dishes")
def list_dishes(menu_id: str | None = None, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    if menu_id is None:
        menus = sorted(
            data_store.menus.select(restaurant_id=restaurant.id), key=lambda m: m.created_at,
        )
        if not menus:
            raise HTTPException(status_code=404, detail="No menu found for this restaurant")
        menu = menus[0]
    else:
        menu = _owned_menu(menu_id, restaurant)
    dishes = dishes_for_menu(menu.id)
    return {
        "menu_id": menu.id,
        "dishes": [to_public(d).model_dump() for d in dishes],
    }


@app.post("/dishes", status_code=201)
def create_dish(body: DishCreate, user: dict = Depends(require_user)) -> dict:
    restaurant = _owned_restaurant(user)
    if body.menu_id:
        menu = _owned_menu(body.menu_id, restaurant)
    else:
        menus = sorted(
            data_store.menus.select(restaurant_id=restaurant.id), key=lambda m: m.created_at,
        )
        if not menus:
            raise HTTPException(status_code=400, detail="No menu found for this restaurant")
        menu = menus[0]

    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Dish name is required")
    codes = _check_allergen_codes(body.allergens)

    dish = data_store.dishes.insert(DishRecord(
        id=data_store.new_id("dish"),
        menu_id=menu.id,
        name=name,
        description=(body.description or "").strip() or None,
        price=body.price,
        category=(body.category or "").strip() or None,
    ))
    for code in codes:
        data_store.dish_allergens.insert(DishAllergenLink(
            id=data_store.new_id("link"), dish_id=dish.id, allergen_code=code,
        ))
    return _dish_out(dish)


@app.get("/dishes/{dish_id}")
def get_dish(dish_id: str, user: dict = Depends(require_user)) -> dict:
    return _dish_out(_owned_dish(dish_id, _owned_restaurant(user)))


@app.patch("/dishes/{dish_id}")
def update_dish(dish_id: str, body: DishUpdate, user: dict = Depends(require_user)) -> dict:
    dish = _owned_dish(dish_id, _owned_restaurant(user))
    fields = body.model_dump(exclude_unset=True)
    if "name" in fields and fields["name"] is not None:
        fields["name"] = fields["name"].strip()
        if not fields["name"]:
            raise HTTPException(status_code=400, detail="Dish name is required")
    elif "name" in fields:
        del fields["name"]
    if fields:
        dish = data_store.dishes.update_where("id", dish.id, **fields)[0]
    return _dish_out(dish)


@app.delete("/dishes/{dish_id}")
def delete_dish(dish_id: str, user: dict = Depends(require_user)) -> dict:
    dish = _owned_dish(dish_id, _owned_restaurant(user))
    data_store.delete_dish_cascade(dish.id)
    return {"success": True}


@app.get("/dishes/{dish_id}/allergens")
def dish_allergens(dish_id: str, user: dict = Depends(require_user)) -> dict:
    dish = _owned_dish(dish_id, _owned_restaurant(user))
    by_code = {entry.code: entry for entry in data_store.get_catalog()}
    links = sorted(data_store.dish_allergens.select(dish_id=dish.id), key=lambda link: link.allergen_code)
    return {
        "allergens": [
            {
                "id": link.id,
                "dish_id": link.dish_id,
                "code": link.allergen_code,
                "name": by_code[link.allergen_code].name if link.allergen_code in by_code else None,
                "description": (
                    by_code[link.allergen_code].description
                    if link.allergen_code in by_code else None
                ),
            }
            for link in links
        ],
    }


@app.post("/dishes/{dish_id}/allergens", status_code=201)
def add_dish_allergen(
    dish_id: str, body: AllergenLinkRequest, user: dict = Depends(require_user),
) -> dict:
    dish = _owned_dish(dish_id, _owned_restaurant(user))
    codes = _check_allergen_codes([body.allergen_code])
    if not codes:
        raise HTTPException(status_code=400, detail="allergen_code is required")
    code = codes[0]
    data_store.dish_allergens.insert_if_absent(
        DishAllergenLink(id=data_store.new_id("link"), dish_id=dish.id, allergen_code=code),
        dish_id=dish.id,
        allergen_code=code,
    )
    return _dish_out(dish)


@app.delete("/dishes/{dish_id}/allergens/{code}")
def remove_dish_allergen(dish_id: str, code: str, user: dict = Depends(require_user)) -> dict:
    dish = _owned_dish(dish_id, _owned_restaurant(user))
    for link in data_store.dish_allergens.select(dish_id=dish.id, allergen_code=code.upper()):
        data_store.dish_allergens.delete_where("id", link.id)
    return _dish_out(dish)


# ── Billing endpoints ────────────────────────────────────────────────────


@app.post("/billing/checkout", response_model=SessionResponse)
def billing_checkout(body: CheckoutRequest, user: dict = Depends(require_user)) -> SessionResponse:
    config = DEFAULT_BILLING_CONFIG
    restaurant = _owned_restaurant(user)
    price_id = config.price_for_plan(body.plan)
    if not price_id:
        raise HTTPException(status_code=400, detail=f"No price configured for the {body.plan.value} plan")

    try:
        customer_id = restaurant.stripe_customer_id
        if not customer_id:
            customer_id = create_customer(restaurant, user.get("email"), config)
            data_store.restaurants.update_where(
                "id", restaurant.id, stripe_customer_id=customer_id,
            )
        url = create_checkout_session(restaurant, customer_id, body.plan, price_id, config)
    except BillingNotConfigured as exc:
        raise HTTPException(status_code=503, detail="Billing is not configured") from exc
    except stripe.StripeError as exc:
        logger.warning("Stripe checkout failed for %s", restaurant.id, exc_info=True)
        raise HTTPException(status_code=502, detail="Unable to start checkout") from exc
    return SessionResponse(url=url)


@app.post("/billing/portal", response_model=SessionResponse)
def billing_portal(user: dict = Depends(require_user)) -> SessionResponse:
    config = DEFAULT_BILLING_CONFIG
    restaurant = _owned_restaurant(user)
    if not restaurant.stripe_customer_id:
        raise HTTPException(status_code=400, detail="No Stripe customer found for this restaurant")
    try:
        url = create_portal_session(restaurant.stripe_customer_id, config)
    except BillingNotConfigured as exc:
        raise HTTPException(status_code=503, detail="Billing is not configured") from exc
    except stripe.StripeError as exc:
        logger.warning("Stripe portal failed for %s", restaurant.id, exc_info=True)
        raise HTTPException(status_code=502, detail="Unable to open billing portal") from exc
    return SessionResponse(url=url)


@app.post("/stripe/webhook")
async def stripe_webhook(request: Request) -> dict:
    # Signature is computed over the raw body, so read it before any parsing.
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        result = handle_webhook(payload, signature, DEFAULT_BILLING_CONFIG)
    except BillingNotConfigured as exc:
        logger.error("Stripe webhook misconfigured: %s", exc)
        raise HTTPException(status_code=500, detail="Misconfigured") from exc
    except SignatureVerificationFailed as exc:
        raise HTTPException(status_code=400, detail="Invalid signature") from exc
    except WebhookRejected as exc:
        raise HTTPException(status_code=400, detail="Invalid payload") from exc
    return {"received": True, "outcome": result.outcome.value}


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/admin/webhook-events")
def webhook_events(
    limit: int = Query(default=50, ge=1, le=500),
    user: dict = Depends(require_admin),
) -> dict:
    events = get_events("webhook")
    return {"total": len(events), "events": events[-limit:][::-1]}


@app.get("/admin/webhook-stats")
def webhook_stats(user: dict = Depends(require_admin)) -> dict:
    return compute_webhook_stats(get_events())
