"""Ingredient editing use cases."""

from nutriscan.application.ingredients.edit_session import (
    DEFAULT_SAVE_DEBOUNCE_S,
    IngredientEditSession,
)

__all__ = ["DEFAULT_SAVE_DEBOUNCE_S", "IngredientEditSession"]
