"""In-memory persistence adapters."""

from nutriscan.infrastructure.persistence.in_memory.analysis_store import InMemoryAnalysisStore
from nutriscan.infrastructure.persistence.in_memory.ingredient_store import InMemoryIngredientStore

__all__ = ["InMemoryAnalysisStore", "InMemoryIngredientStore"]
