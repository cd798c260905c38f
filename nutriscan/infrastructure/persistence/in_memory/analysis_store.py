"""In-memory analysis store implementation.

Provides an in-memory implementation of the IAnalysisStore port for tests
and local use. Uses a dictionary for storage with no external dependencies.
"""

from typing import Dict, Optional

import structlog

from nutriscan.domain.analysis.models import AnalysisResult
from nutriscan.domain.shared.errors import PersistenceError
from nutriscan.domain.shared.value_objects import ProductId

logger = structlog.get_logger(__name__)


class InMemoryAnalysisStore:
    """
    In-memory implementation of IAnalysisStore port.

    Thread safety: NOT thread-safe (single event loop)
    Persistence: Data lost on process restart (in-memory only)

    Args:
        fail_saves: When True, save_analysis reports failure (testing aid)
        raise_on_load: When True, load_analysis raises PersistenceError

    Example:
        >>> store = InMemoryAnalysisStore()
        >>> await store.save_analysis(ProductId.from_string("p1"), result)
        >>> assert await store.load_analysis(ProductId.from_string("p1")) == result
    """

    def __init__(self, *, fail_saves: bool = False, raise_on_load: bool = False) -> None:
        """Initialize store with empty storage."""
        self._storage: Dict[str, AnalysisResult] = {}
        self.fail_saves = fail_saves
        self.raise_on_load = raise_on_load
        self.save_calls = 0

    async def load_analysis(self, product_id: ProductId) -> Optional[AnalysisResult]:
        """
        Retrieve the analysis of a product.

        Returns:
            Copy of the stored result, None if absent

        Raises:
            PersistenceError: If configured to fail
        """
        if self.raise_on_load:
            raise PersistenceError("Analysis store unavailable")
        result = self._storage.get(product_id.value)
        return result.model_copy(deep=True) if result else None

    async def save_analysis(self, product_id: ProductId, result: AnalysisResult) -> bool:
        """
        Save or replace the analysis of a product.

        Returns:
            True on success, False if configured to fail
        """
        self.save_calls += 1
        if self.fail_saves:
            logger.warning("Analysis save rejected", product_id=product_id.value)
            return False
        self._storage[product_id.value] = result.model_copy(deep=True)
        return True

    async def delete(self, product_id: ProductId) -> bool:
        """Remove a stored analysis. Returns True if something was deleted."""
        return self._storage.pop(product_id.value, None) is not None

    def count(self) -> int:
        """Number of stored analyses."""
        return len(self._storage)

    def clear(self) -> None:
        """Clear all stored analyses (useful for testing)."""
        self._storage.clear()
