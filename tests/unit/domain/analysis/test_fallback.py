"""Tests for the fallback synthesizer."""

import pytest

from nutriscan.domain.analysis.fallback import (
    DEFAULT_SCORE,
    FALLBACK_ANALYSIS,
    FALLBACK_CALORIES_ESTIMATE,
    FALLBACK_CON,
    FALLBACK_PRO,
    extract_score,
    synthesize,
)
from nutriscan.domain.analysis.models import AnalysisMode, CalorieEstimationType


class TestExtractScore:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('{"healthScore": 77, "analysis": ', 77),
            ("health_score = 64", 64),
            ("'HealthScore': [81]", 81),
            ('"healthScore": 250', 100),
            ('"healthScore": 0', 1),
            ('"healthScore": -12', 1),
            ('"healthScore": 66.6', 67),
            ('"healthScore": "77", "analysis": ', 77),
            ("'healthScore': ['58']", 58),
        ],
    )
    def test_health(self, raw: str, expected: int) -> None:
        assert extract_score(raw, "health") == expected

    def test_absent(self) -> None:
        assert extract_score("niente punteggi", "health") is None

    def test_sustainability(self) -> None:
        assert extract_score('"sustainabilityScore": 42', "sustainability") == 42
        assert extract_score('"sustainabilityScore": "35"', "sustainability") == 35


class TestSynthesize:
    """Degraded results are well-formed and flagged."""

    def test_photo_preserves_score(self) -> None:
        result = synthesize('{"healthScore": 77, "analysis": "tronc', AnalysisMode.PHOTO)

        assert result.is_fallback
        assert result.health_score == 77
        assert result.analysis == FALLBACK_ANALYSIS
        assert result.pros == [FALLBACK_PRO]
        assert result.cons == [FALLBACK_CON]
        assert result.calorie_estimation_type == CalorieEstimationType.PER_100G
        assert result.calories_estimate == FALLBACK_CALORIES_ESTIMATE
        assert result.ingredients_breakdown == []
        assert result.sustainability_score == 0
        assert result.sustainability_pros == []

    def test_text_defaults(self) -> None:
        result = synthesize("risposta senza json", AnalysisMode.TEXT)

        assert result.is_fallback
        assert result.mode == AnalysisMode.TEXT
        assert result.health_score == DEFAULT_SCORE
        assert result.sustainability_score == DEFAULT_SCORE
        assert result.sustainability_pros and result.sustainability_cons
        assert result.sustainability_recommendations
        assert result.calorie_estimation_type is None

    def test_fallback_is_never_complete(self) -> None:
        assert not synthesize("", AnalysisMode.TEXT).is_complete()

    def test_deterministic(self) -> None:
        raw = '{"healthScore": 33, "sustainabilityScore": 71'
        assert synthesize(raw, AnalysisMode.TEXT) == synthesize(raw, AnalysisMode.TEXT)
