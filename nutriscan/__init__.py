"""
nutriscan - AI nutrition analysis and ingredient breakdown engine.

Turns free-text generative model responses into validated nutrition
records and keeps an editable ingredient breakdown consistent.
"""

from nutriscan.application.analysis.orchestrator import AnalysisOrchestrator, AnalysisState
from nutriscan.application.ingredients.edit_session import IngredientEditSession
from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    CalorieEstimationType,
    EstimatedIngredient,
    ImageSourceData,
    ProductSourceData,
    SingleIngredientEstimate,
    UserProfile,
)
from nutriscan.domain.ingredients.ledger import IngredientLedger
from nutriscan.factory import create_edit_session, create_orchestrator

__version__ = "0.1.0"

__all__ = [
    "AnalysisMode",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisState",
    "CalorieEstimationType",
    "EstimatedIngredient",
    "ImageSourceData",
    "IngredientEditSession",
    "IngredientLedger",
    "ProductSourceData",
    "SingleIngredientEstimate",
    "UserProfile",
    "create_edit_session",
    "create_orchestrator",
]
