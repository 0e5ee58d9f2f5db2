"""
Storage layer.

Responsibilities:
- Hold restaurants, menus, dishes and dish-allergen links with typed records.
- Load the global allergen catalog from the bundled CSV.
- Store uploaded logo images and hand back their public URLs.
"""
