"""In-memory ingredient store implementation.

Keeps user-edited ingredient lists per (product, user), separately from
the analysis record.
"""

from typing import Dict, List, Optional, Tuple

import structlog

from nutriscan.domain.analysis.models import EstimatedIngredient
from nutriscan.domain.shared.value_objects import ProductId, UserId

logger = structlog.get_logger(__name__)

# Distinguishes "saved as empty" (None stored) from "never saved" (key absent).
_StoredList = Optional[List[EstimatedIngredient]]


class InMemoryIngredientStore:
    """
    In-memory implementation of IIngredientStore port.

    Thread safety: NOT thread-safe (single event loop)
    Persistence: Data lost on process restart (in-memory only)

    Example:
        >>> store = InMemoryIngredientStore()
        >>> await store.save_ingredients(product_id, user_id, items)
        >>> saved = await store.load_ingredients(product_id, user_id)
    """

    def __init__(self, *, fail_saves: bool = False) -> None:
        self._storage: Dict[Tuple[str, str], _StoredList] = {}
        self.fail_saves = fail_saves
        self.save_calls = 0

    @staticmethod
    def _key(product_id: ProductId, user_id: UserId) -> Tuple[str, str]:
        return product_id.value, user_id.value

    async def load_ingredients(
        self, product_id: ProductId, user_id: UserId
    ) -> Optional[List[EstimatedIngredient]]:
        """
        Retrieve the saved list.

        Returns:
            Copies of the saved items; None if never saved or saved empty
        """
        items = self._storage.get(self._key(product_id, user_id))
        return [i.model_copy() for i in items] if items else None

    async def save_ingredients(
        self,
        product_id: ProductId,
        user_id: UserId,
        items: Optional[List[EstimatedIngredient]],
    ) -> bool:
        """Save or replace the list. Returns False if configured to fail."""
        self.save_calls += 1
        if self.fail_saves:
            logger.warning("Ingredients save rejected", product_id=product_id.value)
            return False
        self._storage[self._key(product_id, user_id)] = (
            [i.model_copy() for i in items] if items else None
        )
        return True

    def has_saved(self, product_id: ProductId, user_id: UserId) -> bool:
        """True if the user ever saved a list (even an empty one)."""
        return self._key(product_id, user_id) in self._storage

    def clear(self) -> None:
        """Clear all stored lists (useful for testing)."""
        self._storage.clear()
