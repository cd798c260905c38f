"""
Domain models for nutrition analysis.

Typed records produced by the analysis engine from model output, and the
source data the prompts are built from.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from nutriscan.domain.shared.value_objects import USER_INGREDIENT_PREFIX


def _alias(*names: str) -> AliasChoices:
    """Accept both snake_case and camelCase keys on input."""
    return AliasChoices(*names)


class AnalysisMode(str, Enum):
    """Which prompt/schema an analysis belongs to."""

    PHOTO = "photo"  # Vision, no sustainability block
    TEXT = "text"  # Barcode / product data


class CalorieEstimationType(str, Enum):
    """How the calorie estimate of a photo analysis was produced."""

    BREAKDOWN = "breakdown"  # Meal split into ingredients
    PER_100G = "per_100g"  # Packaged product, label per 100 g
    PER_SERVING_PACKAGED = "per_serving_packaged"  # Packaged product, per serving


class ScoreItem(BaseModel):
    """
    Single pro / con / neutral line.

    Example:
        >>> item = ScoreItem(title="Ricco di fibre", detail="Buona fonte di fibre.")
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Short title")
    detail: str = Field("", description="Explanation shown under the title")


class ScoreExplanations(BaseModel):
    """Optional free-text explanations of the official scores."""

    model_config = ConfigDict(frozen=True)

    nutri: Optional[str] = None
    nova: Optional[str] = None
    eco: Optional[str] = None


class EstimatedIngredient(BaseModel):
    """
    Line item of a meal breakdown.

    Ids emitted by the model are plain ("1", "2"); ingredients added by the
    user live in the "user_" namespace.

    Attributes:
        id: Stable identifier within the breakdown
        name: Display name
        quantity: Number of units (>=1)
        estimated_weight_g: Weight of one unit in grams
        estimated_calories_kcal: Calories of one unit
        estimated_proteins_g / estimated_carbs_g / estimated_fats_g:
            Optional macros of one unit

    Example:
        >>> item = EstimatedIngredient(
        ...     id="1", name="Pasta", estimated_weight_g=100, estimated_calories_kcal=350
        ... )
        >>> assert item.quantity == 1
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    estimated_weight_g: float = Field(
        ...,
        ge=0,
        validation_alias=_alias("estimated_weight_g", "estimatedWeightGrams", "estimatedWeightG"),
    )
    estimated_calories_kcal: float = Field(
        ...,
        ge=0,
        validation_alias=_alias("estimated_calories_kcal", "estimatedCaloriesKcal"),
    )
    estimated_proteins_g: Optional[float] = Field(
        None,
        ge=0,
        validation_alias=_alias("estimated_proteins_g", "estimatedProteinsG", "estimatedProteinsGrams"),
    )
    estimated_carbs_g: Optional[float] = Field(
        None,
        ge=0,
        validation_alias=_alias("estimated_carbs_g", "estimatedCarbsG", "estimatedCarbsGrams"),
    )
    estimated_fats_g: Optional[float] = Field(
        None,
        ge=0,
        validation_alias=_alias("estimated_fats_g", "estimatedFatsG", "estimatedFatsGrams"),
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: object) -> object:
        """Model output sometimes uses integer ids."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        """Ensure not just whitespace."""
        if not v.strip():
            raise ValueError("Ingredient name cannot be empty or whitespace")
        return v.strip()

    @property
    def is_user_added(self) -> bool:
        """True for ingredients added by the user."""
        return self.id.startswith(USER_INGREDIENT_PREFIX)

    @property
    def total_calories(self) -> float:
        """Calories of all units."""
        return self.estimated_calories_kcal * self.quantity


class AnalysisResult(BaseModel):
    """
    Validated analysis of a product or a photographed meal.

    Immutable snapshot. Photo analyses never carry sustainability data;
    breakdown items are present only when calorie_estimation_type is
    BREAKDOWN.

    Example:
        >>> result = AnalysisResult(
        ...     health_score=72,
        ...     analysis="Prodotto equilibrato.",
        ...     mode=AnalysisMode.TEXT,
        ... )
        >>> assert result.is_complete()
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    health_score: int = Field(0, ge=0, le=100, validation_alias=_alias("health_score", "healthScore"))
    sustainability_score: int = Field(
        0, ge=0, le=100, validation_alias=_alias("sustainability_score", "sustainabilityScore")
    )
    analysis: str = ""
    sustainability_analysis: str = Field(
        "", validation_alias=_alias("sustainability_analysis", "sustainabilityAnalysis")
    )

    pros: List[ScoreItem] = Field(default_factory=list)
    cons: List[ScoreItem] = Field(default_factory=list)
    neutrals: List[ScoreItem] = Field(default_factory=list)
    sustainability_pros: List[ScoreItem] = Field(
        default_factory=list, validation_alias=_alias("sustainability_pros", "sustainabilityPros")
    )
    sustainability_cons: List[ScoreItem] = Field(
        default_factory=list, validation_alias=_alias("sustainability_cons", "sustainabilityCons")
    )
    sustainability_neutrals: List[ScoreItem] = Field(
        default_factory=list,
        validation_alias=_alias("sustainability_neutrals", "sustainabilityNeutrals"),
    )
    recommendations: List[str] = Field(default_factory=list)
    sustainability_recommendations: List[str] = Field(
        default_factory=list,
        validation_alias=_alias("sustainability_recommendations", "sustainabilityRecommendations"),
    )

    calorie_estimation_type: Optional[CalorieEstimationType] = Field(
        None, validation_alias=_alias("calorie_estimation_type", "calorieEstimationType")
    )
    ingredients_breakdown: List[EstimatedIngredient] = Field(
        default_factory=list,
        validation_alias=_alias("ingredients_breakdown", "ingredientsBreakdown"),
    )
    calories_estimate: Optional[str] = Field(
        None, validation_alias=_alias("calories_estimate", "caloriesEstimate")
    )
    explanations: ScoreExplanations = Field(default_factory=ScoreExplanations)
    suggested_portion_grams: Optional[int] = Field(
        None, validation_alias=_alias("suggested_portion_grams", "suggestedPortionGrams")
    )

    product_name_from_vision: Optional[str] = Field(
        None, validation_alias=_alias("product_name_from_vision", "productNameFromVision")
    )
    brand_from_vision: Optional[str] = Field(
        None, validation_alias=_alias("brand_from_vision", "brandFromVision")
    )
    estimated_energy_kcal_100g: Optional[float] = Field(
        None, validation_alias=_alias("estimated_energy_kcal_100g", "estimatedEnergyKcal100g")
    )
    estimated_proteins_100g: Optional[float] = Field(
        None, validation_alias=_alias("estimated_proteins_100g", "estimatedProteins100g")
    )
    estimated_carbs_100g: Optional[float] = Field(
        None, validation_alias=_alias("estimated_carbs_100g", "estimatedCarbs100g")
    )
    estimated_fats_100g: Optional[float] = Field(
        None, validation_alias=_alias("estimated_fats_100g", "estimatedFats100g")
    )

    is_fallback: bool = Field(False, validation_alias=_alias("is_fallback", "isFallback"))
    mode: AnalysisMode = AnalysisMode.TEXT

    def is_complete(self) -> bool:
        """
        Core fields present: reusable without a new model call.

        Fallback results are never complete, so a later request retries
        the model instead of serving the placeholder forever.
        """
        return not self.is_fallback and bool(self.analysis and self.analysis.strip())

    @property
    def has_breakdown(self) -> bool:
        """True when the result carries an ingredient breakdown."""
        return (
            self.calorie_estimation_type == CalorieEstimationType.BREAKDOWN
            and len(self.ingredients_breakdown) > 0
        )


class SingleIngredientEstimate(BaseModel):
    """
    Outcome of a single-ingredient calorie estimate.

    success=False always comes with an Italian error_message.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    calories_kcal: Optional[int] = None
    proteins_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fats_g: Optional[float] = None
    corrected_name: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, error_message: str) -> SingleIngredientEstimate:
        """Failed estimate."""
        return cls(success=False, error_message=error_message)


# ═══════════════════════════════════════════════════════════
# SOURCE DATA
# ═══════════════════════════════════════════════════════════


class Nutriments(BaseModel):
    """Nutrition table values per 100 g."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    energy_kcal_100g: Optional[float] = Field(
        None, validation_alias=_alias("energy_kcal_100g", "energy-kcal_100g")
    )
    fat_100g: Optional[float] = None
    saturated_fat_100g: Optional[float] = Field(
        None, validation_alias=_alias("saturated_fat_100g", "saturated-fat_100g")
    )
    carbohydrates_100g: Optional[float] = None
    sugars_100g: Optional[float] = None
    fiber_100g: Optional[float] = None
    proteins_100g: Optional[float] = None
    salt_100g: Optional[float] = None

    def is_missing(self) -> bool:
        """True when no core macro value is known."""
        return all(
            v is None
            for v in (
                self.energy_kcal_100g,
                self.fat_100g,
                self.carbohydrates_100g,
                self.proteins_100g,
            )
        )


class ProductSourceData(BaseModel):
    """
    Product data for text (barcode) analysis.

    Example:
        >>> product = ProductSourceData(code="8001234567890", product_name="Biscotti")
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str = ""
    product_name: Optional[str] = None
    brands: Optional[str] = None
    ingredients_text: Optional[str] = None
    quantity: Optional[str] = None
    categories: Optional[str] = None
    nutriments: Nutriments = Field(default_factory=Nutriments)
    additives_tags: List[str] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    nutrition_grade: Optional[str] = Field(
        None, validation_alias=_alias("nutrition_grade", "nutrition_grades", "nutriscore_grade")
    )
    nova_group: Optional[int] = None
    ecoscore_grade: Optional[str] = None
    ecoscore_score: Optional[int] = None


class ImageSourceData(BaseModel):
    """Image input for photo (vision) analysis."""

    model_config = ConfigDict(frozen=True)

    image: bytes = Field(..., min_length=1, description="Raw image bytes")
    mime_type: str = Field("image/jpeg", description="Image MIME type")
    hint: Optional[str] = Field(None, max_length=200, description="Free-text hint")


SourceData = Union[ProductSourceData, ImageSourceData]


class UserProfile(BaseModel):
    """Optional personalisation for prompts."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    health_goals: List[str] = Field(default_factory=list)
