"""
Ports (Interfaces) for the analysis engine.

Defines abstract interfaces for the external collaborators the engine
depends on: the generative model, the analysis store and the ingredient
store. Adapters live in nutriscan.infrastructure.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from typing import Callable, List, Optional, Protocol, runtime_checkable

from nutriscan.domain.analysis.models import (
    AnalysisResult,
    EstimatedIngredient,
    ImageSourceData,
    SingleIngredientEstimate,
)
from nutriscan.domain.shared.value_objects import ProductId, UserId

Clock = Callable[[], float]
"""Monotonic-ish seconds source, injected for deterministic tests."""


@runtime_checkable
class IModelClient(Protocol):
    """
    Port for the generative model.

    One call, raw untrusted text back. No parsing here.
    """

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        image: Optional[ImageSourceData] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send one prompt to the model.

        Args:
            prompt: User message
            system: Optional system message (cacheable instructions)
            image: Optional image sent alongside the prompt (vision)
            max_tokens: Optional output cap for this call

        Returns:
            Raw response text

        Raises:
            ModelUnavailableError: On transport/HTTP failure
        """
        ...


@runtime_checkable
class IAnalysisStore(Protocol):
    """
    Port for persisted analysis records.

    Example:
        >>> store = InMemoryAnalysisStore()
        >>> await store.save_analysis(ProductId.from_string("p1"), result)
        True
    """

    async def load_analysis(self, product_id: ProductId) -> Optional[AnalysisResult]:
        """Return the persisted analysis of a product, None if absent."""
        ...

    async def save_analysis(self, product_id: ProductId, result: AnalysisResult) -> bool:
        """Persist (upsert) an analysis. Returns False on failure."""
        ...


@runtime_checkable
class IIngredientStore(Protocol):
    """
    Port for user-edited ingredient lists.

    Independent from the analysis record so edits survive re-fetch.
    """

    async def load_ingredients(
        self, product_id: ProductId, user_id: UserId
    ) -> Optional[List[EstimatedIngredient]]:
        """Return saved ingredients, None if the user never saved any."""
        ...

    async def save_ingredients(
        self,
        product_id: ProductId,
        user_id: UserId,
        items: Optional[List[EstimatedIngredient]],
    ) -> bool:
        """
        Persist the ingredient list.

        None means the user removed every ingredient (no breakdown).
        Returns False on failure.
        """
        ...


@runtime_checkable
class IIngredientEstimator(Protocol):
    """Port for single ingredient estimates (used by the ledger)."""

    async def estimate_single_ingredient(
        self, name: str, weight_g: Optional[float] = None
    ) -> SingleIngredientEstimate:
        """Estimate one ingredient. Never raises."""
        ...
