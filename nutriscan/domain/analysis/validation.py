"""
Per-mode schema for model output.

One schema object per AnalysisMode, walked by a single validator. The
validator never raises: every problem becomes a FieldIssue in the
ValidationReport. ERROR issues mean the core contract is broken and the
caller must fall back; WARNING issues mean the field degraded to its
default.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog

from nutriscan.domain.analysis.models import AnalysisMode, CalorieEstimationType

logger = structlog.get_logger(__name__)


class IssueSeverity(str, Enum):
    """Severity of a validation issue."""

    ERROR = "error"  # Core field: result rejected
    WARNING = "warning"  # Optional field: degraded to default


@dataclass(frozen=True)
class FieldIssue:
    """Single validation problem on one field."""

    field: str
    severity: IssueSeverity
    message: str


@dataclass
class ValidationReport:
    """
    Structured outcome of validating one payload.

    Example:
        >>> report = ValidationReport(mode=AnalysisMode.TEXT)
        >>> report.warn("sustainability_score", "missing")
        >>> assert not report.has_errors
    """

    mode: AnalysisMode
    issues: List[FieldIssue] = field(default_factory=list)

    def error(self, field_name: str, message: str) -> None:
        self.issues.append(FieldIssue(field_name, IssueSeverity.ERROR, message))

    def warn(self, field_name: str, message: str) -> None:
        self.issues.append(FieldIssue(field_name, IssueSeverity.WARNING, message))

    @property
    def errors(self) -> List[FieldIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[FieldIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(i.severity == IssueSeverity.ERROR for i in self.issues)

    def fields(self) -> List[str]:
        """Names of fields with at least one issue, in report order."""
        seen: List[str] = []
        for issue in self.issues:
            if issue.field not in seen:
                seen.append(issue.field)
        return seen


# ═══════════════════════════════════════════════════════════
# COERCERS
# ═══════════════════════════════════════════════════════════


class _Invalid:
    """Sentinel returned by coercers on type mismatch."""

    def __repr__(self) -> str:
        return "INVALID"


INVALID: Any = _Invalid()


def unwrap_single(value: Any) -> Any:
    """[125] -> 125. Models occasionally wrap scalars in arrays."""
    if isinstance(value, list) and len(value) == 1 and not isinstance(value[0], (list, dict)):
        return value[0]
    return value


def as_int(value: Any) -> Any:
    """Strict integer: bools rejected, integral floats (72.0) accepted."""
    value = unwrap_single(value)
    if isinstance(value, bool):
        return INVALID
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return INVALID


def as_number(value: Any) -> Any:
    """Finite int/float (bools rejected)."""
    value = unwrap_single(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return INVALID
    if not math.isfinite(value):
        return INVALID
    return float(value)


def as_str(value: Any) -> Any:
    value = unwrap_single(value)
    return value if isinstance(value, str) else INVALID


def as_non_empty_str(value: Any) -> Any:
    value = as_str(value)
    if value is INVALID or not value.strip():
        return INVALID
    return value.strip()


def as_str_list(value: Any) -> Any:
    """List of strings; non-string elements dropped."""
    if not isinstance(value, list):
        return INVALID
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def as_score_items(value: Any) -> Any:
    """
    List of {title, detail}.

    Plain strings become items with empty detail; elements without a
    string title are dropped.
    """
    if not isinstance(value, list):
        return INVALID
    items: List[Dict[str, str]] = []
    for element in value:
        if isinstance(element, str) and element.strip():
            items.append({"title": element.strip(), "detail": ""})
        elif isinstance(element, dict) and isinstance(element.get("title"), str):
            detail = element.get("detail")
            items.append(
                {
                    "title": element["title"].strip(),
                    "detail": detail.strip() if isinstance(detail, str) else "",
                }
            )
    return items


def as_portion_grams(value: Any) -> Any:
    """Numeric kept as int; strings coerced via int parse."""
    value = unwrap_single(value)
    if isinstance(value, bool):
        return INVALID
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else INVALID
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return INVALID
    return INVALID


def as_estimation_type(value: Any) -> Any:
    value = unwrap_single(value)
    try:
        return CalorieEstimationType(value)
    except ValueError:
        return INVALID


def as_explanations(value: Any) -> Any:
    if not isinstance(value, dict):
        return INVALID
    return {k: value[k] for k in ("nutri", "nova", "eco") if isinstance(value.get(k), str)}


# ═══════════════════════════════════════════════════════════
# SCHEMA
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FieldRule:
    """
    How to read one field from the model payload.

    Attributes:
        name: Canonical (snake_case) field name
        keys: Accepted JSON keys, first match wins
        coerce: Returns the typed value or INVALID
        default: Value used when the field degrades
        core: Failure rejects the whole payload
        required: Absence is reported (core -> error, else warning)
        expected: Human description for the report
    """

    name: str
    keys: Tuple[str, ...]
    coerce: Callable[[Any], Any]
    default: Callable[[], Any]
    core: bool = False
    required: bool = False
    expected: str = ""


def _keys(snake: str, camel: Optional[str] = None) -> Tuple[str, ...]:
    return (camel, snake) if camel else (snake,)


CORE_RULES: Tuple[FieldRule, ...] = (
    FieldRule("health_score", _keys("health_score", "healthScore"), as_int, lambda: 0,
              core=True, required=True, expected="integer"),
    FieldRule("analysis", _keys("analysis"), as_str, str,
              core=True, required=True, expected="string"),
    FieldRule("pros", _keys("pros"), as_score_items, list,
              core=True, required=True, expected="list"),
    FieldRule("cons", _keys("cons"), as_score_items, list,
              core=True, required=True, expected="list"),
    # Photo prompts never ask for recommendations: absence is tolerated.
    FieldRule("recommendations", _keys("recommendations"), as_str_list, list,
              core=True, required=False, expected="list"),
)

COMMON_RULES: Tuple[FieldRule, ...] = (
    FieldRule("neutrals", _keys("neutrals"), as_score_items, list, expected="list"),
    FieldRule("explanations", _keys("explanations"), as_explanations, dict, expected="object"),
    FieldRule("suggested_portion_grams", _keys("suggested_portion_grams", "suggestedPortionGrams"),
              as_portion_grams, lambda: None, expected="integer"),
    FieldRule("product_name_from_vision", _keys("product_name_from_vision", "productNameFromVision"),
              as_non_empty_str, lambda: None, expected="string"),
    FieldRule("brand_from_vision", _keys("brand_from_vision", "brandFromVision"),
              as_non_empty_str, lambda: None, expected="string"),
    FieldRule("estimated_energy_kcal_100g", _keys("estimated_energy_kcal_100g", "estimatedEnergyKcal100g"),
              as_number, lambda: None, expected="number"),
    FieldRule("estimated_proteins_100g", _keys("estimated_proteins_100g", "estimatedProteins100g"),
              as_number, lambda: None, expected="number"),
    FieldRule("estimated_carbs_100g", _keys("estimated_carbs_100g", "estimatedCarbs100g"),
              as_number, lambda: None, expected="number"),
    FieldRule("estimated_fats_100g", _keys("estimated_fats_100g", "estimatedFats100g"),
              as_number, lambda: None, expected="number"),
)

TEXT_RULES: Tuple[FieldRule, ...] = (
    FieldRule("sustainability_score", _keys("sustainability_score", "sustainabilityScore"),
              as_int, lambda: 0, required=True, expected="integer"),
    FieldRule("sustainability_analysis", _keys("sustainability_analysis", "sustainabilityAnalysis"),
              as_str, str, required=True, expected="string"),
    FieldRule("sustainability_pros", _keys("sustainability_pros", "sustainabilityPros"),
              as_score_items, list, required=True, expected="list"),
    FieldRule("sustainability_cons", _keys("sustainability_cons", "sustainabilityCons"),
              as_score_items, list, required=True, expected="list"),
    FieldRule("sustainability_recommendations",
              _keys("sustainability_recommendations", "sustainabilityRecommendations"),
              as_str_list, list, required=True, expected="list"),
    FieldRule("sustainability_neutrals", _keys("sustainability_neutrals", "sustainabilityNeutrals"),
              as_score_items, list, expected="list"),
)

PHOTO_RULES: Tuple[FieldRule, ...] = (
    FieldRule("calories_estimate", _keys("calories_estimate", "caloriesEstimate"),
              as_non_empty_str, lambda: None, required=True, expected="non-empty string"),
    FieldRule("calorie_estimation_type", _keys("calorie_estimation_type", "calorieEstimationType"),
              as_estimation_type, lambda: None, required=True,
              expected="one of breakdown, per_100g, per_serving_packaged"),
)

BREAKDOWN_KEYS: Tuple[str, ...] = ("ingredientsBreakdown", "ingredients_breakdown")

SUSTAINABILITY_FIELDS: Tuple[str, ...] = (
    "sustainability_score",
    "sustainability_analysis",
    "sustainability_pros",
    "sustainability_cons",
    "sustainability_neutrals",
    "sustainability_recommendations",
)


@dataclass(frozen=True)
class AnalysisSchema:
    """Field rules for one analysis mode."""

    mode: AnalysisMode
    rules: Tuple[FieldRule, ...]
    has_breakdown: bool


SCHEMAS: Dict[AnalysisMode, AnalysisSchema] = {
    AnalysisMode.TEXT: AnalysisSchema(
        mode=AnalysisMode.TEXT,
        rules=CORE_RULES + COMMON_RULES + TEXT_RULES,
        has_breakdown=False,
    ),
    AnalysisMode.PHOTO: AnalysisSchema(
        mode=AnalysisMode.PHOTO,
        rules=CORE_RULES + COMMON_RULES + PHOTO_RULES,
        has_breakdown=True,
    ),
}


def _lookup(data: Mapping[str, Any], keys: Tuple[str, ...]) -> Tuple[bool, Any]:
    for key in keys:
        if key in data:
            return True, data[key]
    return False, None


# ═══════════════════════════════════════════════════════════
# BREAKDOWN
# ═══════════════════════════════════════════════════════════

_INGREDIENT_FIELDS: Tuple[Tuple[str, Tuple[str, ...], Callable[[Any], Any], bool], ...] = (
    ("estimated_weight_g", ("estimatedWeightGrams", "estimated_weight_g", "estimatedWeightG"), as_number, True),
    ("estimated_calories_kcal", ("estimatedCaloriesKcal", "estimated_calories_kcal"), as_number, True),
    ("estimated_proteins_g", ("estimatedProteinsGrams", "estimated_proteins_g", "estimatedProteinsG"), as_number, False),
    ("estimated_carbs_g", ("estimatedCarbsGrams", "estimated_carbs_g", "estimatedCarbsG"), as_number, False),
    ("estimated_fats_g", ("estimatedFatsGrams", "estimated_fats_g", "estimatedFatsG"), as_number, False),
)


def _validate_ingredient(element: Any) -> Optional[Dict[str, Any]]:
    """One breakdown element, or None when it breaks the contract."""
    if not isinstance(element, dict):
        return None

    raw_id = unwrap_single(element.get("id"))
    if isinstance(raw_id, int) and not isinstance(raw_id, bool):
        raw_id = str(raw_id)
    name = as_non_empty_str(element.get("name"))
    if not isinstance(raw_id, str) or not raw_id.strip() or name is INVALID:
        return None

    item: Dict[str, Any] = {"id": raw_id.strip(), "name": name}
    for canonical, keys, coerce, required in _INGREDIENT_FIELDS:
        present, raw = _lookup(element, keys)
        value = coerce(raw) if present else INVALID
        if value is INVALID or value < 0:
            if required:
                return None
            continue
        item[canonical] = value

    quantity = as_int(element.get("quantity", 1))
    item["quantity"] = quantity if quantity is not INVALID and quantity >= 1 else 1
    return item


def _validate_breakdown(
    data: Mapping[str, Any],
    estimation_type: Optional[CalorieEstimationType],
    report: ValidationReport,
) -> List[Dict[str, Any]]:
    present, raw = _lookup(data, BREAKDOWN_KEYS)

    if estimation_type != CalorieEstimationType.BREAKDOWN:
        if present and isinstance(raw, list) and raw:
            report.warn(
                "ingredients_breakdown",
                "discarded: calorie_estimation_type is not breakdown",
            )
        return []

    if not present or not isinstance(raw, list) or not raw:
        report.warn("ingredients_breakdown", "expected non-empty list for breakdown estimation")
        return []

    items: List[Dict[str, Any]] = []
    for index, element in enumerate(raw):
        item = _validate_ingredient(element)
        if item is None:
            report.warn(
                "ingredients_breakdown",
                f"element {index} lacks string id/name or numeric weight/calories",
            )
            return []
        items.append(item)
    return items


# ═══════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════


def validate_payload(
    data: Mapping[str, Any], mode: AnalysisMode
) -> Tuple[Dict[str, Any], ValidationReport]:
    """
    Validate a decoded JSON object against the schema of a mode.

    Returns:
        (fields, report): canonical snake_case fields ready for
        AnalysisResult, and the report. When report.has_errors the
        fields must not be used.
    """
    schema = SCHEMAS[mode]
    report = ValidationReport(mode=mode)
    fields: Dict[str, Any] = {}

    for rule in schema.rules:
        present, raw = _lookup(data, rule.keys)
        if not present:
            if rule.required:
                message = f"missing, expected {rule.expected}"
                if rule.core:
                    report.error(rule.name, message)
                else:
                    report.warn(rule.name, message)
            fields[rule.name] = rule.default()
            continue

        value = rule.coerce(raw)
        if value is INVALID:
            message = f"expected {rule.expected}, got {type(raw).__name__}"
            if rule.core:
                report.error(rule.name, message)
            elif raw is None and not rule.required:
                pass
            else:
                report.warn(rule.name, message)
            fields[rule.name] = rule.default()
            continue

        fields[rule.name] = value

    if schema.has_breakdown:
        fields["ingredients_breakdown"] = _validate_breakdown(
            data, fields.get("calorie_estimation_type"), report
        )

    for issue in report.issues:
        logger.warning(
            "Analysis field invalid",
            mode=mode.value,
            field=issue.field,
            severity=issue.severity.value,
            message=issue.message,
        )

    return fields, report
