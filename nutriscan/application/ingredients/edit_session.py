"""
Ingredient edit session.

Wraps an IngredientLedger for one (product, user) breakdown being edited
and persists changes through a debounced save: every edit restarts the
timer, so a burst of edits produces a single write.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from nutriscan.config import MIN_SAVE_DEBOUNCE_S
from nutriscan.domain.analysis.models import EstimatedIngredient
from nutriscan.domain.analysis.ports import IIngredientStore
from nutriscan.domain.ingredients.ledger import IngredientLedger
from nutriscan.domain.shared.errors import PersistenceError

logger = structlog.get_logger(__name__)

DEFAULT_SAVE_DEBOUNCE_S = 0.5


class IngredientEditSession:
    """
    Debounced persistence for ledger edits.

    Edits go through the session (not the ledger directly) so each one
    reschedules the save. After close() no edit or save is accepted.

    Example:
        >>> async with IngredientEditSession(ledger, store, "prod_1", "user_1") as session:
        ...     session.reweight("1", 150)
        ...     session.requantify("2", 3)
        ... # pending changes flushed on exit
    """

    def __init__(
        self,
        ledger: IngredientLedger,
        store: IIngredientStore,
        product_id: str,
        user_id: str,
        debounce_s: float = DEFAULT_SAVE_DEBOUNCE_S,
    ) -> None:
        if debounce_s < MIN_SAVE_DEBOUNCE_S:
            raise ValueError(f"debounce_s must be >= {MIN_SAVE_DEBOUNCE_S}")
        self.ledger = ledger
        self.store = store
        self.product_id = product_id
        self.user_id = user_id
        self.debounce_s = debounce_s
        self._pending: Optional[asyncio.Task[bool]] = None
        self._closed = False

    async def __aenter__(self) -> IngredientEditSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close(flush=exc_type is None)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def save_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Edit session is closed")

    # ─────────────────────────────────────────────
    # Edits
    # ─────────────────────────────────────────────

    def reweight(self, ingredient_id: str, grams: float) -> EstimatedIngredient:
        self._ensure_open()
        item = self.ledger.reweight(ingredient_id, grams)
        self._schedule_save()
        return item

    def requantify(self, ingredient_id: str, quantity: int) -> EstimatedIngredient:
        self._ensure_open()
        item = self.ledger.requantify(ingredient_id, quantity)
        self._schedule_save()
        return item

    def remove(self, ingredient_id: str) -> None:
        self._ensure_open()
        self.ledger.remove(ingredient_id)
        self._schedule_save()

    async def add(
        self, name: str, weight_g: Optional[float] = None, quantity: int = 1
    ) -> EstimatedIngredient:
        self._ensure_open()
        item = await self.ledger.add(name, weight_g, quantity)
        if self._closed:
            # Closed while the estimate was running: nothing left to write to.
            logger.info("Session closed during add, save skipped", product_id=self.product_id)
            return item
        self._schedule_save()
        return item

    def undo(self) -> None:
        """Back to the last saved list; nothing left to save."""
        self._ensure_open()
        self._cancel_pending()
        self.ledger.undo()

    # ─────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _schedule_save(self) -> None:
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._save_later())

    async def _save_later(self) -> bool:
        await asyncio.sleep(self.debounce_s)
        return await self._save()

    async def _save(self) -> bool:
        if not self.ledger.has_unsaved_changes:
            return True
        try:
            return await self.ledger.save(self.store, self.product_id, self.user_id)
        except PersistenceError as e:
            logger.error("Ingredients save failed", product_id=self.product_id, error=str(e))
            return False

    async def flush(self) -> bool:
        """
        Save now instead of waiting for the timer.

        Returns:
            True if nothing was pending or the save succeeded
        """
        self._ensure_open()
        self._cancel_pending()
        return await self._save()

    async def close(self, flush: bool = False) -> None:
        """
        Dispose the session. Pending timer is cancelled.

        Args:
            flush: Save unsaved changes before closing
        """
        if self._closed:
            return
        if flush:
            await self.flush()
        self._cancel_pending()
        self._closed = True
        logger.debug("Edit session closed", product_id=self.product_id)
