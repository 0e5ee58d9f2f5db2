from __future__ import annotations

from typing import Any

DEFAULT_THEME: dict[str, str] = {
    "--primary": "#d4af37",
    "--background-style": "dark",
    "--card-style": "glass",
    "--density": "cozy",
}

_FIELD_TO_TOKEN: dict[str, str] = {
    "theme_primary_color": "--primary",
    "theme_secondary_color": "--secondary",
    "theme_accent_color": "--accent",
    "theme_font": "--font",
    "theme_background_style": "--background-style",
    "theme_card_style": "--card-style",
    "theme_density": "--density",
}


def theme_tokens(restaurant: Any) -> dict[str, str]:
    """Compute CSS custom properties from a restaurant's theme fields.

    ``restaurant`` may be a record or a plain mapping. Unset fields fall
    back to :data:`DEFAULT_THEME` or are left out.
    """
    if restaurant is None:
        return dict(DEFAULT_THEME)

    def _get(field: str) -> Any:
        if isinstance(restaurant, dict):
            return restaurant.get(field)
        return getattr(restaurant, field, None)

    tokens = dict(DEFAULT_THEME)
    for field, token in _FIELD_TO_TOKEN.items():
        value = _get(field)
        if value:
            tokens[token] = str(value)

    background_url = _get("theme_background_url")
    if background_url:
        tokens["--background-image"] = f"url({background_url})"
    return tokens
