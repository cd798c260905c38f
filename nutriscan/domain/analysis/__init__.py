"""Analysis domain: models, parsing, fallback, filtering, prompts."""

from nutriscan.domain.analysis.content_filter import filter_items, filter_result
from nutriscan.domain.analysis.fallback import synthesize
from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    CalorieEstimationType,
    EstimatedIngredient,
    ImageSourceData,
    Nutriments,
    ProductSourceData,
    ScoreExplanations,
    ScoreItem,
    SingleIngredientEstimate,
    SourceData,
    UserProfile,
)
from nutriscan.domain.analysis.parser import (
    ParsedOk,
    ParseFailure,
    ParseFailureReason,
    ParseOutcome,
    parse,
)
from nutriscan.domain.analysis.ports import (
    Clock,
    IAnalysisStore,
    IIngredientEstimator,
    IIngredientStore,
    IModelClient,
)
from nutriscan.domain.analysis.validation import FieldIssue, IssueSeverity, ValidationReport

__all__ = [
    "AnalysisMode",
    "AnalysisResult",
    "CalorieEstimationType",
    "Clock",
    "EstimatedIngredient",
    "FieldIssue",
    "IAnalysisStore",
    "IIngredientEstimator",
    "IIngredientStore",
    "IModelClient",
    "ImageSourceData",
    "IssueSeverity",
    "Nutriments",
    "ParseFailure",
    "ParseFailureReason",
    "ParseOutcome",
    "ParsedOk",
    "ProductSourceData",
    "ScoreExplanations",
    "ScoreItem",
    "SingleIngredientEstimate",
    "SourceData",
    "UserProfile",
    "ValidationReport",
    "filter_items",
    "filter_result",
    "parse",
    "synthesize",
]
