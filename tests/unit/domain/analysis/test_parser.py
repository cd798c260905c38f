"""
Tests for the model response parser.

Covers JSON extraction, the three failure reasons, per-mode
normalization and the single ingredient estimate parser.
"""

import json
from typing import Any, Dict

import pytest

from nutriscan.domain.analysis.models import AnalysisMode, CalorieEstimationType
from nutriscan.domain.analysis.parser import (
    INVALID_ESTIMATE_MESSAGE,
    ParsedOk,
    ParseFailure,
    ParseFailureReason,
    find_json_object,
    parse,
    parse_ingredient_estimate,
)


# ═══════════════════════════════════════════════════════════
# JSON EXTRACTION
# ═══════════════════════════════════════════════════════════


class TestFindJsonObject:
    """Balanced brace extraction."""

    def test_extracts_object_surrounded_by_text(self) -> None:
        text = 'Ecco il risultato: {"a": 1, "b": {"c": 2}} spero sia utile'
        assert find_json_object(text) == '{"a": 1, "b": {"c": 2}}'

    def test_braces_inside_strings_are_ignored(self) -> None:
        text = 'x {"title": "usa {graffe} e }", "n": 1} y'
        assert find_json_object(text) == '{"title": "usa {graffe} e }", "n": 1}'

    def test_escaped_quote_inside_string(self) -> None:
        text = r'{"detail": "dice \"ciao\" }", "n": 2}'
        assert find_json_object(text) == text

    def test_returns_none_without_braces(self) -> None:
        assert find_json_object("nessun json qui") is None

    def test_unbalanced_prefix_falls_through_to_next_object(self) -> None:
        text = '{ incompleto ... {"ok": true}'
        # The first brace never closes; the scan restarts at the next one.
        assert find_json_object(text) == '{"ok": true}'

    def test_first_of_two_objects(self) -> None:
        assert find_json_object('{"a": 1} {"b": 2}') == '{"a": 1}'


# ═══════════════════════════════════════════════════════════
# FAILURE REASONS
# ═══════════════════════════════════════════════════════════


class TestParseFailures:
    """Malformed responses become ParseFailure, never exceptions."""

    def test_no_json_found(self) -> None:
        outcome = parse("Mi dispiace, non posso analizzare l'immagine.", AnalysisMode.PHOTO)

        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.NO_JSON_FOUND
        assert not outcome.ok

    def test_empty_text(self) -> None:
        outcome = parse("", AnalysisMode.TEXT)
        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.NO_JSON_FOUND

    def test_malformed_json(self) -> None:
        outcome = parse('{"healthScore": 77, "analysis": \'singole\'}', AnalysisMode.PHOTO)

        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.MALFORMED_JSON
        assert outcome.detail

    def test_raw_text_is_kept_for_fallback(self) -> None:
        raw = '{"healthScore": 77, "analysis": oops}'
        outcome = parse(raw, AnalysisMode.PHOTO)
        assert isinstance(outcome, ParseFailure)
        assert outcome.raw_text == raw

    def test_missing_health_score_is_core_failure(self) -> None:
        raw = json.dumps({"analysis": "Ok", "pros": [], "cons": []})
        outcome = parse(raw, AnalysisMode.PHOTO)

        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.CORE_FIELDS_INVALID
        assert outcome.report is not None
        assert "health_score" in outcome.report.fields()

    def test_string_health_score_is_core_failure(self) -> None:
        raw = json.dumps({"healthScore": "77", "analysis": "Ok", "pros": [], "cons": []})
        outcome = parse(raw, AnalysisMode.PHOTO)
        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.CORE_FIELDS_INVALID

    def test_boolean_health_score_rejected(self) -> None:
        raw = json.dumps({"healthScore": True, "analysis": "Ok", "pros": [], "cons": []})
        outcome = parse(raw, AnalysisMode.PHOTO)
        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.CORE_FIELDS_INVALID

    def test_pros_not_a_list_is_core_failure(self) -> None:
        raw = json.dumps({"healthScore": 50, "analysis": "Ok", "pros": "tanti", "cons": []})
        outcome = parse(raw, AnalysisMode.TEXT)
        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.CORE_FIELDS_INVALID
        assert outcome.report is not None
        assert "pros" in outcome.report.fields()

    def test_array_without_object(self) -> None:
        outcome = parse("[1, 2, 3]", AnalysisMode.TEXT)
        assert isinstance(outcome, ParseFailure)
        assert outcome.reason == ParseFailureReason.NO_JSON_FOUND


# ═══════════════════════════════════════════════════════════
# PHOTO MODE
# ═══════════════════════════════════════════════════════════


class TestParsePhoto:
    """Photo responses: breakdown and packaged product."""

    def test_breakdown_response(self, photo_breakdown_response: str) -> None:
        outcome = parse(photo_breakdown_response, AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        result = outcome.result
        assert result.health_score == 72
        assert result.mode == AnalysisMode.PHOTO
        assert not result.is_fallback
        assert result.calorie_estimation_type == CalorieEstimationType.BREAKDOWN
        assert [i.id for i in result.ingredients_breakdown] == ["1", "2", "3"]
        assert result.ingredients_breakdown[0].estimated_proteins_g == 4.5
        assert result.ingredients_breakdown[1].estimated_proteins_g is None
        assert result.calories_estimate == "Totale: ~221 kcal"
        assert result.suggested_portion_grams == 250
        assert result.product_name_from_vision == "Pasta al pomodoro"
        assert result.brand_from_vision is None

    def test_missing_recommendations_is_tolerated(self, photo_breakdown_response: str) -> None:
        outcome = parse(photo_breakdown_response, AnalysisMode.PHOTO)
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.recommendations == []
        assert "recommendations" not in outcome.report.fields()

    def test_integral_float_score_accepted(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["healthScore"] = 72.0
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.health_score == 72

    def test_single_element_array_unwrapped(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["healthScore"] = [68]
        photo_breakdown_payload["suggestedPortionGrams"] = [125]
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.health_score == 68
        assert outcome.result.suggested_portion_grams == 125

    def test_portion_string_coerced(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["suggestedPortionGrams"] = "180"
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.suggested_portion_grams == 180

    def test_sustainability_is_zeroed(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["sustainabilityScore"] = 80
        photo_breakdown_payload["sustainabilityPros"] = [{"title": "Locale", "detail": ""}]
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.sustainability_score == 0
        assert outcome.result.sustainability_pros == []
        assert outcome.result.sustainability_analysis == ""

    def test_score_clamped(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["healthScore"] = 130
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.health_score == 100

    def test_breakdown_discarded_for_packaged_product(
        self, photo_breakdown_payload: Dict[str, Any]
    ) -> None:
        photo_breakdown_payload["calorie_estimation_type"] = "per_100g"
        photo_breakdown_payload["calories_estimate"] = "~450 kcal per 100g"
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.calorie_estimation_type == CalorieEstimationType.PER_100G
        assert outcome.result.ingredients_breakdown == []
        assert "ingredients_breakdown" in [w.field for w in outcome.report.warnings]

    def test_invalid_breakdown_element_drops_list(
        self, photo_breakdown_payload: Dict[str, Any]
    ) -> None:
        photo_breakdown_payload["ingredients_breakdown"][1]["estimated_calories_kcal"] = "tante"
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        # Breakdown is not core: analysis survives, list degrades to empty.
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.ingredients_breakdown == []
        assert not outcome.result.has_breakdown

    def test_invalid_estimation_type_is_warning(
        self, photo_breakdown_payload: Dict[str, Any]
    ) -> None:
        photo_breakdown_payload["calorie_estimation_type"] = "a occhio"
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.calorie_estimation_type is None
        assert "calorie_estimation_type" in outcome.report.fields()

    def test_plain_string_pros_become_items(self, photo_breakdown_payload: Dict[str, Any]) -> None:
        photo_breakdown_payload["pros"] = ["Ricco di fibre", {"detail": "senza titolo"}]
        outcome = parse(json.dumps(photo_breakdown_payload), AnalysisMode.PHOTO)

        assert isinstance(outcome, ParsedOk)
        assert [p.title for p in outcome.result.pros] == ["Ricco di fibre"]
        assert outcome.result.pros[0].detail == ""


# ═══════════════════════════════════════════════════════════
# TEXT MODE
# ═══════════════════════════════════════════════════════════


class TestParseText:
    """Text responses carry the sustainability block."""

    def test_full_response(self, text_response: str) -> None:
        outcome = parse(text_response, AnalysisMode.TEXT)

        assert isinstance(outcome, ParsedOk)
        result = outcome.result
        assert result.mode == AnalysisMode.TEXT
        assert result.health_score == 64
        assert result.sustainability_score == 55
        assert result.sustainability_pros[0].title == "Carta riciclabile"
        assert result.sustainability_recommendations == ["Ricicla la confezione."]
        assert result.calorie_estimation_type is None
        assert result.ingredients_breakdown == []
        assert outcome.report.issues == []

    def test_snake_case_keys_accepted(self) -> None:
        raw = json.dumps(
            {
                "health_score": 40,
                "sustainability_score": 30,
                "analysis": "Ok",
                "sustainability_analysis": "",
                "pros": [],
                "cons": [],
                "recommendations": [],
                "sustainability_pros": [],
                "sustainability_cons": [],
                "sustainability_recommendations": [],
            }
        )
        outcome = parse(raw, AnalysisMode.TEXT)
        assert isinstance(outcome, ParsedOk)
        assert outcome.result.health_score == 40
        assert outcome.result.sustainability_score == 30

    def test_missing_sustainability_degrades_with_warning(self, text_payload: Dict[str, Any]) -> None:
        del text_payload["sustainabilityScore"]
        del text_payload["sustainabilityPros"]
        outcome = parse(json.dumps(text_payload), AnalysisMode.TEXT)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.sustainability_score == 0
        assert outcome.result.sustainability_pros == []
        warned = [w.field for w in outcome.report.warnings]
        assert "sustainability_score" in warned
        assert "sustainability_pros" in warned

    def test_breakdown_ignored_in_text_mode(self, text_payload: Dict[str, Any]) -> None:
        text_payload["calorie_estimation_type"] = "breakdown"
        text_payload["ingredients_breakdown"] = [
            {"id": 1, "name": "x", "estimated_weight_g": 1, "estimated_calories_kcal": 1}
        ]
        outcome = parse(json.dumps(text_payload), AnalysisMode.TEXT)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.calorie_estimation_type is None
        assert outcome.result.ingredients_breakdown == []

    def test_null_optional_field_is_silent(self, text_payload: Dict[str, Any]) -> None:
        text_payload["suggestedPortionGrams"] = None
        outcome = parse(json.dumps(text_payload), AnalysisMode.TEXT)

        assert isinstance(outcome, ParsedOk)
        assert outcome.result.suggested_portion_grams is None
        assert outcome.report.issues == []


# ═══════════════════════════════════════════════════════════
# SINGLE INGREDIENT
# ═══════════════════════════════════════════════════════════


class TestParseIngredientEstimate:
    """Single ingredient responses."""

    def test_success(self) -> None:
        raw = json.dumps(
            {
                "corrected_name": "Mela Golden",
                "estimated_calories_kcal": 52.4,
                "estimated_proteins_g": 0.26,
                "estimated_carbs_g": 13.81,
                "estimated_fats_g": 0.17,
                "error_message": "",
            }
        )
        estimate = parse_ingredient_estimate(raw, "mela")

        assert estimate.success
        assert estimate.calories_kcal == 52
        assert estimate.proteins_g == 0.3
        assert estimate.carbs_g == 13.8
        assert estimate.fats_g == 0.2
        assert estimate.corrected_name == "Mela Golden"
        assert estimate.error_message is None

    def test_null_calories_uses_model_message(self) -> None:
        raw = json.dumps(
            {"estimated_calories_kcal": None, "error_message": "Ingrediente non riconosciuto."}
        )
        estimate = parse_ingredient_estimate(raw, "xyzzy")

        assert not estimate.success
        assert estimate.error_message == "Ingrediente non riconosciuto."

    def test_missing_calories_default_message(self) -> None:
        estimate = parse_ingredient_estimate('{"corrected_name": "Boh"}', "boh")
        assert not estimate.success
        assert estimate.error_message == "Impossibile stimare le calorie per 'boh'."

    def test_garbage_response(self) -> None:
        estimate = parse_ingredient_estimate("non lo so", "mela")
        assert not estimate.success
        assert estimate.error_message == INVALID_ESTIMATE_MESSAGE

    def test_negative_values_clamped(self) -> None:
        raw = json.dumps({"estimated_calories_kcal": -10, "estimated_fats_g": -1})
        estimate = parse_ingredient_estimate(raw, "acqua")
        assert estimate.success
        assert estimate.calories_kcal == 0
        assert estimate.fats_g == 0.0

    @pytest.mark.parametrize("key", ["estimatedCaloriesKcal", "calories_kcal"])
    def test_alternate_calorie_keys(self, key: str) -> None:
        estimate = parse_ingredient_estimate(json.dumps({key: 89}), "banana")
        assert estimate.success
        assert estimate.calories_kcal == 89
