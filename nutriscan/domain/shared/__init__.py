"""Shared kernel: errors and value objects."""

from nutriscan.domain.shared.errors import (
    AnalysisDomainError,
    DomainError,
    ExternalServiceError,
    InfrastructureError,
    IngredientEstimationFailedError,
    IngredientNotFoundError,
    InvalidUserInputError,
    ModelUnavailableError,
    PersistenceError,
    ValidationError,
)
from nutriscan.domain.shared.value_objects import (
    AnalysisKey,
    ProductId,
    UserId,
    generate_user_ingredient_id,
)

__all__ = [
    "AnalysisDomainError",
    "AnalysisKey",
    "DomainError",
    "ExternalServiceError",
    "InfrastructureError",
    "IngredientEstimationFailedError",
    "IngredientNotFoundError",
    "InvalidUserInputError",
    "ModelUnavailableError",
    "PersistenceError",
    "ProductId",
    "UserId",
    "ValidationError",
    "generate_user_ingredient_id",
]
