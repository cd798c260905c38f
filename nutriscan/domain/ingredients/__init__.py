"""Ingredient breakdown editing."""

from nutriscan.domain.ingredients.ledger import (
    DEFAULT_WEIGHT_G,
    MAX_WEIGHT_G,
    IngredientLedger,
    apply_ingredients,
    calories_label,
    dedupe_ingredients,
)

__all__ = [
    "DEFAULT_WEIGHT_G",
    "MAX_WEIGHT_G",
    "IngredientLedger",
    "apply_ingredients",
    "calories_label",
    "dedupe_ingredients",
]
