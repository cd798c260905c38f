"""
Domain exceptions.

Typed exceptions for explicit error handling across the analysis engine.
Parse failures are NOT exceptions: they travel as tagged results
(see domain.analysis.parser) and are recovered by the fallback synthesizer.
"""

from __future__ import annotations

from typing import Optional


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All engine-specific exceptions inherit from this.
    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# ANALYSIS DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class AnalysisDomainError(DomainError):
    """Base exception for the analysis domain."""

    pass


class IngredientEstimationFailedError(AnalysisDomainError):
    """
    Single-ingredient estimation returned no usable number.

    Raised by IngredientLedger.add when the estimator reports
    success=False. Nothing is added to the ledger.

    Example:
        >>> raise IngredientEstimationFailedError(
        ...     "Impossibile stimare le calorie per 'xyz'"
        ... )
    """

    def __init__(self, error_message: str) -> None:
        super().__init__(error_message)
        self.error_message = error_message


# ═══════════════════════════════════════════════════════════
# VALIDATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ValidationError(DomainError):
    """
    Input validation failed.

    Raised when:
    - Invalid input format
    - Missing required fields
    - Out of range values
    """

    pass


class InvalidUserInputError(ValidationError):
    """
    User edit rejected (reweight / requantify / add).

    The message is user-facing (Italian). Ledger state is unchanged.

    Example:
        >>> raise InvalidUserInputError(
        ...     "Il peso deve essere compreso tra 1 e 999 grammi."
        ... )
    """

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class IngredientNotFoundError(InvalidUserInputError):
    """Edit targeted an ingredient id that is not in the ledger."""

    def __init__(self, ingredient_id: str) -> None:
        super().__init__(
            f"Ingrediente '{ingredient_id}' non trovato.", field="id"
        )
        self.ingredient_id = ingredient_id


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for all external service errors.
    """

    pass


class ModelUnavailableError(ExternalServiceError):
    """
    Generative model call failed at transport level.

    Raised when:
    - Network error / timeout
    - HTTP error from the provider
    - Circuit breaker open

    Never recovered by the fallback synthesizer: the caller decides
    retry/backoff.

    Example:
        >>> raise ModelUnavailableError("OpenAI API failed: timeout")
    """

    pass


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class InfrastructureError(DomainError):
    """
    Infrastructure layer error.

    Base class for storage, cache, etc. errors.
    """

    pass


class PersistenceError(InfrastructureError):
    """
    Store operation failed.

    Example:
        >>> raise PersistenceError("Analysis store unavailable")
    """

    pass
