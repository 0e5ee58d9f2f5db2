"""
Menu package.

Responsibilities:
- Normalize dish rows into the shape the allergen filter works on.
- Filter and badge dishes for a guest's allergen/category selection.
- Derive filter controls (allergen codes, categories) from a dish list.
- Compute style tokens for a restaurant's public menu theme.
"""
