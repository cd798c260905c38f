"""
Response parser.

Turns untrusted model text into a tagged outcome:

    ParsedOk(result, report)          -> accepted AnalysisResult
    ParseFailure(reason, report, ...) -> caller runs the fallback synthesizer

Expected malformation never raises.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    SingleIngredientEstimate,
)
from nutriscan.domain.analysis.validation import (
    INVALID,
    SUSTAINABILITY_FIELDS,
    ValidationReport,
    as_number,
    validate_payload,
)

logger = structlog.get_logger(__name__)

RAW_LOG_LIMIT = 500


class ParseFailureReason(str, Enum):
    """Why a model response could not be accepted."""

    NO_JSON_FOUND = "NO_JSON_FOUND"
    MALFORMED_JSON = "MALFORMED_JSON"
    CORE_FIELDS_INVALID = "CORE_FIELDS_INVALID"


@dataclass(frozen=True)
class ParsedOk:
    result: AnalysisResult
    report: ValidationReport

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ParseFailure:
    reason: ParseFailureReason
    raw_text: str
    report: Optional[ValidationReport] = None
    detail: str = field(default="")

    @property
    def ok(self) -> bool:
        return False


ParseOutcome = Union[ParsedOk, ParseFailure]


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} span of text.

    Braces inside JSON strings (and escaped quotes) do not count.

    Example:
        >>> find_json_object('Ecco: {"a": "}"} fine')
        '{"a": "}"}'
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this opening brace; try the next one.
        start = text.find("{", start + 1)
    return None


def _clamp_score(value: int) -> int:
    return max(0, min(100, value))


def _normalize(fields: Dict[str, Any], mode: AnalysisMode) -> Dict[str, Any]:
    fields["health_score"] = _clamp_score(fields["health_score"])
    if mode == AnalysisMode.PHOTO:
        # Whatever the model returned, photo analyses carry no sustainability data.
        for name in SUSTAINABILITY_FIELDS:
            fields[name] = []
        fields["sustainability_score"] = 0
        fields["sustainability_analysis"] = ""
    else:
        fields["sustainability_score"] = _clamp_score(fields.get("sustainability_score", 0))
        fields["calorie_estimation_type"] = None
        fields["ingredients_breakdown"] = []
    fields["mode"] = mode
    fields["is_fallback"] = False
    return fields


def _truncate(text: str) -> str:
    return text if len(text) <= RAW_LOG_LIMIT else text[:RAW_LOG_LIMIT] + "..."


def parse(raw_text: str, mode: AnalysisMode) -> ParseOutcome:
    """
    Parse and validate a model response.

    Args:
        raw_text: Untrusted text returned by the model
        mode: Which schema to validate against

    Returns:
        ParsedOk or ParseFailure. Never raises for malformed input.

    Example:
        >>> outcome = parse('{"healthScore": 80, "analysis": "Ok", "pros": [], "cons": []}',
        ...                 AnalysisMode.PHOTO)
        >>> assert isinstance(outcome, ParsedOk)
    """
    logger.debug("Parsing model response", mode=mode.value, raw=_truncate(raw_text or ""))

    snippet = find_json_object(raw_text or "")
    if snippet is None:
        logger.warning("No JSON object in model response", mode=mode.value)
        return ParseFailure(ParseFailureReason.NO_JSON_FOUND, raw_text or "")

    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        logger.warning("Malformed JSON in model response", mode=mode.value, error=str(e))
        return ParseFailure(ParseFailureReason.MALFORMED_JSON, raw_text, detail=str(e))

    if not isinstance(data, dict):
        logger.warning("JSON root is not an object", mode=mode.value)
        return ParseFailure(ParseFailureReason.MALFORMED_JSON, raw_text, detail="root not object")

    fields, report = validate_payload(data, mode)
    if report.has_errors:
        logger.warning(
            "Core fields invalid",
            mode=mode.value,
            fields=[issue.field for issue in report.errors],
        )
        return ParseFailure(ParseFailureReason.CORE_FIELDS_INVALID, raw_text, report=report)

    try:
        result = AnalysisResult(**_normalize(fields, mode))
    except PydanticValidationError as e:
        # Values passed the schema but not the model bounds (e.g. negative weight)
        report.error("result", str(e))
        logger.warning("Analysis result rejected", mode=mode.value, error=str(e))
        return ParseFailure(ParseFailureReason.CORE_FIELDS_INVALID, raw_text, report=report)

    logger.info(
        "Model response parsed",
        mode=mode.value,
        health_score=result.health_score,
        warnings=len(report.warnings),
        breakdown_items=len(result.ingredients_breakdown),
    )
    return ParsedOk(result=result, report=report)


# ═══════════════════════════════════════════════════════════
# SINGLE INGREDIENT
# ═══════════════════════════════════════════════════════════

INVALID_ESTIMATE_MESSAGE = "Risposta non valida dal servizio di stima. Riprova."


def _macro(data: Dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        if key in data:
            value = as_number(data[key])
            return None if value is INVALID else max(0.0, round(value, 1))
    return None


def parse_ingredient_estimate(raw_text: str, name: str) -> SingleIngredientEstimate:
    """
    Parse a single-ingredient response.

    Needs at least a numeric calorie field. Calories are rounded to int,
    macros to one decimal, negatives clamped to 0.

    Returns:
        SingleIngredientEstimate (success=False with an Italian message
        when nothing usable was returned). Never raises.
    """
    snippet = find_json_object(raw_text or "")
    if snippet is None:
        logger.warning("No JSON object in ingredient response", name=name)
        return SingleIngredientEstimate.failure(INVALID_ESTIMATE_MESSAGE)
    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        logger.warning("Malformed JSON in ingredient response", name=name, error=str(e))
        return SingleIngredientEstimate.failure(INVALID_ESTIMATE_MESSAGE)
    if not isinstance(data, dict):
        return SingleIngredientEstimate.failure(INVALID_ESTIMATE_MESSAGE)

    calories: Any = INVALID
    for key in ("estimated_calories_kcal", "estimatedCaloriesKcal", "calories_kcal"):
        if key in data:
            calories = as_number(data[key])
            break

    if calories is INVALID:
        model_message = data.get("error_message")
        message = (
            model_message.strip()
            if isinstance(model_message, str) and model_message.strip()
            else f"Impossibile stimare le calorie per '{name}'."
        )
        logger.info("Ingredient estimate without calories", name=name, error=message)
        return SingleIngredientEstimate.failure(message)

    corrected = data.get("corrected_name")
    return SingleIngredientEstimate(
        success=True,
        calories_kcal=max(0, int(round(calories))),
        proteins_g=_macro(data, "estimated_proteins_g", "estimatedProteinsG", "proteins_g"),
        carbs_g=_macro(data, "estimated_carbs_g", "estimatedCarbsG", "carbs_g"),
        fats_g=_macro(data, "estimated_fats_g", "estimatedFatsG", "fats_g"),
        corrected_name=corrected.strip() if isinstance(corrected, str) and corrected.strip() else None,
    )
