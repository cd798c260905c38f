"""
Shared fixtures for nutriscan tests.

Sample model responses, source data, a controllable clock and stores.
"""

import json
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from nutriscan.domain.analysis.models import (
    EstimatedIngredient,
    ImageSourceData,
    Nutriments,
    ProductSourceData,
)
from nutriscan.domain.analysis.ports import IIngredientEstimator, IModelClient
from nutriscan.infrastructure.persistence.in_memory import (
    InMemoryAnalysisStore,
    InMemoryIngredientStore,
)


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ═══════════════════════════════════════════════════════════
# MODEL RESPONSE FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def photo_breakdown_payload() -> Dict[str, Any]:
    """Well-formed photo response for a home-made meal."""
    return {
        "productNameFromVision": "Pasta al pomodoro",
        "brandFromVision": None,
        "healthScore": 72,
        "analysis": "Piatto equilibrato con carboidrati complessi.",
        "pros": [{"title": "Ricco di carboidrati", "detail": "Buona fonte di energia."}],
        "cons": [{"title": "Poche proteine", "detail": "Apporto proteico limitato."}],
        "neutrals": [],
        "calorie_estimation_type": "breakdown",
        "ingredients_breakdown": [
            {
                "id": 1,
                "name": "Pasta",
                "estimated_weight_g": 125,
                "estimated_calories_kcal": 135,
                "estimated_proteins_g": 4.5,
                "estimated_carbs_g": 27,
                "estimated_fats_g": 1.1,
            },
            {
                "id": 2,
                "name": "Pomodoro",
                "estimated_weight_g": 80,
                "estimated_calories_kcal": 14,
            },
            {
                "id": 3,
                "name": "Olio oliva",
                "estimated_weight_g": 8,
                "estimated_calories_kcal": 72,
            },
        ],
        "calories_estimate": "Totale: ~221 kcal",
        "suggestedPortionGrams": 250,
        "sustainabilityScore": 0,
    }


@pytest.fixture
def photo_breakdown_response(photo_breakdown_payload: Dict[str, Any]) -> str:
    """Photo response wrapped in chatter, as models tend to answer."""
    return "Ecco l'analisi richiesta:\n" + json.dumps(photo_breakdown_payload) + "\nBuon appetito!"


@pytest.fixture
def text_payload() -> Dict[str, Any]:
    """Well-formed text (barcode) response."""
    return {
        "healthScore": 64,
        "sustainabilityScore": 55,
        "analysis": "Biscotti con zuccheri moderati.",
        "sustainabilityAnalysis": "Packaging in parte riciclabile.",
        "pros": [{"title": "Fonte di fibre", "detail": "Contiene farina integrale."}],
        "cons": [
            {"title": "Zuccheri aggiunti", "detail": "Da consumare con moderazione."},
            {"title": "Nutri-Score: C", "detail": ""},
        ],
        "neutrals": [],
        "recommendations": ["Abbina a una fonte proteica."],
        "sustainabilityPros": [{"title": "Carta riciclabile", "detail": "Confezione in carta."}],
        "sustainabilityCons": [],
        "sustainabilityNeutrals": [],
        "sustainabilityRecommendations": ["Ricicla la confezione."],
        "suggestedPortionGrams": 30,
    }


@pytest.fixture
def text_response(text_payload: Dict[str, Any]) -> str:
    return json.dumps(text_payload)


# ═══════════════════════════════════════════════════════════
# SOURCE DATA FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def sample_product() -> ProductSourceData:
    """Packaged biscuits with official scores."""
    return ProductSourceData(
        code="8001234567890",
        product_name="Biscotti integrali",
        brands="Mulino",
        ingredients_text="farina integrale, zucchero, olio di girasole",
        nutriments=Nutriments(
            energy_kcal_100g=450,
            fat_100g=17,
            carbohydrates_100g=68,
            proteins_100g=6.5,
            salt_100g=0.5,
        ),
        additives_tags=["en:e322"],
        nutrition_grade="c",
        nova_group=4,
        ecoscore_grade="b",
    )


@pytest.fixture
def sample_image() -> ImageSourceData:
    return ImageSourceData(image=b"\xff\xd8\xff\xe0fake-jpeg", hint="pranzo")


# ═══════════════════════════════════════════════════════════
# INGREDIENT FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def sample_ingredients() -> List[EstimatedIngredient]:
    """Breakdown with round numbers."""
    return [
        EstimatedIngredient(
            id="1",
            name="Riso",
            estimated_weight_g=100,
            estimated_calories_kcal=200,
            estimated_proteins_g=4.0,
            estimated_carbs_g=44.0,
            estimated_fats_g=0.6,
        ),
        EstimatedIngredient(
            id="2",
            name="Pollo",
            estimated_weight_g=150,
            estimated_calories_kcal=165,
            estimated_proteins_g=31.0,
        ),
    ]


# ═══════════════════════════════════════════════════════════
# COLLABORATOR FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_model_client() -> Any:
    """Mock model client (interface-based)."""
    return AsyncMock(spec=IModelClient)


@pytest.fixture
def mock_estimator() -> Any:
    """Mock single ingredient estimator (interface-based)."""
    return AsyncMock(spec=IIngredientEstimator)


@pytest.fixture
def analysis_store() -> InMemoryAnalysisStore:
    return InMemoryAnalysisStore()


@pytest.fixture
def ingredient_store() -> InMemoryIngredientStore:
    return InMemoryIngredientStore()
