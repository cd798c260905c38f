"""
Tests for IngredientLedger.

Reweight proportionality, quantity edits, add via estimator, dedup,
undo/checkpoint and totals.
"""

import itertools
from typing import Any, List

import pytest

from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    CalorieEstimationType,
    EstimatedIngredient,
    SingleIngredientEstimate,
)
from nutriscan.domain.analysis.parser import ParsedOk, parse
from nutriscan.domain.ingredients.ledger import (
    DEFAULT_WEIGHT_G,
    IngredientLedger,
    apply_ingredients,
    calories_label,
    dedupe_ingredients,
    normalize_name,
)
from nutriscan.domain.shared.errors import (
    IngredientEstimationFailedError,
    IngredientNotFoundError,
    InvalidUserInputError,
)
from nutriscan.infrastructure.persistence.in_memory import InMemoryIngredientStore
from nutriscan.domain.shared.value_objects import ProductId, UserId


# ═══════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def ledger(mock_estimator: Any, sample_ingredients: List[EstimatedIngredient]) -> IngredientLedger:
    """Ledger loaded with rice (100 g / 200 kcal) and chicken (150 g / 165 kcal)."""
    counter = itertools.count(1)
    ledger = IngredientLedger(mock_estimator, id_factory=lambda: f"user_{next(counter)}")
    ledger.initialize(sample_ingredients)
    return ledger


# ═══════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════


class TestHelpers:
    def test_normalize_name(self) -> None:
        assert normalize_name("  Kiwi   Gold ") == "kiwi gold"

    def test_dedupe_merges_by_normalized_name(self) -> None:
        merged = dedupe_ingredients(
            [
                EstimatedIngredient(id="1", name=" Kiwi ", estimated_weight_g=70, estimated_calories_kcal=42),
                EstimatedIngredient(id="2", name="Mela", estimated_weight_g=150, estimated_calories_kcal=78),
                EstimatedIngredient(id="3", name="kiwi", estimated_weight_g=80, estimated_calories_kcal=50),
            ]
        )

        assert [i.id for i in merged] == ["1", "2"]
        assert merged[0].quantity == 2
        assert merged[0].estimated_weight_g == 70

    def test_dedupe_renames_reused_ids(self) -> None:
        merged = dedupe_ingredients(
            [
                EstimatedIngredient(id="1", name="Pasta", estimated_weight_g=100, estimated_calories_kcal=350),
                EstimatedIngredient(id="1", name="Pollo", estimated_weight_g=150, estimated_calories_kcal=250),
                EstimatedIngredient(id="1", name="Olio", estimated_weight_g=8, estimated_calories_kcal=72),
            ]
        )

        assert [i.id for i in merged] == ["1", "1_2", "1_3"]
        assert [i.name for i in merged] == ["Pasta", "Pollo", "Olio"]

    def test_calories_label(self) -> None:
        assert calories_label(220.6) == "Totale: ~221 kcal"

    def test_apply_ingredients(self, sample_ingredients: List[EstimatedIngredient]) -> None:
        result = AnalysisResult(health_score=70, analysis="Ok", mode=AnalysisMode.PHOTO)
        applied = apply_ingredients(result, sample_ingredients)

        assert applied.calorie_estimation_type == CalorieEstimationType.BREAKDOWN
        assert len(applied.ingredients_breakdown) == 2
        assert applied.calories_estimate == "Totale: ~365 kcal"


# ═══════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════


class TestInitialize:
    def test_empty_input_means_no_breakdown(self, mock_estimator: Any) -> None:
        ledger = IngredientLedger(mock_estimator)
        ledger.initialize([])

        assert ledger.items is None
        assert not ledger.has_breakdown
        assert ledger.total_calories() == 0

    def test_items_are_copies(self, ledger: IngredientLedger) -> None:
        items = ledger.items
        assert items is not None
        items[0].quantity = 9
        assert ledger.get("1").quantity == 1

    def test_clean_after_initialize(self, ledger: IngredientLedger) -> None:
        assert not ledger.has_unsaved_changes

    def test_repeated_model_id_gets_its_own_id(self, mock_estimator: Any) -> None:
        """Two different ingredients sharing an id stay separately editable."""
        raw = (
            '{"healthScore": 60, "analysis": "Pranzo", "pros": [], "cons": [],'
            ' "caloriesEstimate": "Totale: ~600 kcal", "calorieEstimationType": "breakdown",'
            ' "ingredientsBreakdown": ['
            '{"id": 1, "name": "Pasta", "estimatedWeightGrams": 100, "estimatedCaloriesKcal": 350},'
            '{"id": 1, "name": "Pollo", "estimatedWeightGrams": 150, "estimatedCaloriesKcal": 250}]}'
        )
        outcome = parse(raw, AnalysisMode.PHOTO)
        assert isinstance(outcome, ParsedOk)

        ledger = IngredientLedger(mock_estimator)
        ledger.initialize(outcome.result.ingredients_breakdown)

        assert [i.id for i in ledger.items or []] == ["1", "1_2"]
        pasta = ledger.reweight("1", 200)
        assert pasta.name == "Pasta"
        assert pasta.estimated_calories_kcal == 700
        chicken = ledger.reweight("1_2", 300)
        assert chicken.name == "Pollo"
        assert chicken.estimated_calories_kcal == 500


# ═══════════════════════════════════════════════════════════
# REWEIGHT
# ═══════════════════════════════════════════════════════════


class TestReweight:
    """Calories and macros scale from the original snapshot."""

    def test_proportional_calories(self, ledger: IngredientLedger) -> None:
        item = ledger.reweight("1", 150)

        assert item.estimated_weight_g == 150
        assert item.estimated_calories_kcal == 300
        assert item.estimated_proteins_g == 6.0
        assert item.estimated_carbs_g == 66.0
        assert item.estimated_fats_g == 0.9
        assert ledger.has_unsaved_changes

    def test_no_drift_over_repeated_edits(self, ledger: IngredientLedger) -> None:
        assert ledger.reweight("1", 50).estimated_calories_kcal == 100
        assert ledger.reweight("1", 300).estimated_calories_kcal == 600
        assert ledger.reweight("1", 33).estimated_calories_kcal == 66

    def test_missing_macros_stay_missing(self, ledger: IngredientLedger) -> None:
        item = ledger.reweight("2", 300)
        assert item.estimated_calories_kcal == 330
        assert item.estimated_proteins_g == 62.0
        assert item.estimated_carbs_g is None

    @pytest.mark.parametrize("grams", [0, -5, 1000, float("nan"), float("inf"), True, "100"])
    def test_invalid_weight_rejected(self, ledger: IngredientLedger, grams: Any) -> None:
        before = ledger.items

        with pytest.raises(InvalidUserInputError) as exc_info:
            ledger.reweight("1", grams)

        assert exc_info.value.field == "estimated_weight_g"
        assert ledger.items == before
        assert not ledger.has_unsaved_changes

    def test_upper_bound_accepted(self, ledger: IngredientLedger) -> None:
        assert ledger.reweight("1", 999).estimated_calories_kcal == 1998

    def test_unknown_id(self, ledger: IngredientLedger) -> None:
        with pytest.raises(IngredientNotFoundError) as exc_info:
            ledger.reweight("42", 100)
        assert exc_info.value.ingredient_id == "42"

    def test_zero_original_weight_updates_weight_only(self, mock_estimator: Any) -> None:
        ledger = IngredientLedger(mock_estimator)
        ledger.initialize(
            [EstimatedIngredient(id="1", name="Spezie", estimated_weight_g=0, estimated_calories_kcal=5)]
        )

        item = ledger.reweight("1", 10)

        assert item.estimated_weight_g == 10
        assert item.estimated_calories_kcal == 5


# ═══════════════════════════════════════════════════════════
# QUANTITY / REMOVE
# ═══════════════════════════════════════════════════════════


class TestRequantifyAndRemove:
    def test_requantify_keeps_unit_values(self, ledger: IngredientLedger) -> None:
        item = ledger.requantify("2", 3)

        assert item.quantity == 3
        assert item.estimated_calories_kcal == 165
        assert ledger.total_calories() == 200 + 3 * 165

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
    def test_invalid_quantity(self, ledger: IngredientLedger, quantity: Any) -> None:
        with pytest.raises(InvalidUserInputError):
            ledger.requantify("2", quantity)
        assert ledger.get("2").quantity == 1

    def test_remove(self, ledger: IngredientLedger) -> None:
        ledger.remove("1")
        assert [i.id for i in ledger.items or []] == ["2"]

    def test_remove_last_leaves_no_breakdown(self, ledger: IngredientLedger) -> None:
        ledger.remove("1")
        ledger.remove("2")

        assert ledger.items is None
        assert not ledger.has_breakdown
        assert ledger.has_unsaved_changes

    def test_remove_unknown(self, ledger: IngredientLedger) -> None:
        with pytest.raises(IngredientNotFoundError):
            ledger.remove("nope")


# ═══════════════════════════════════════════════════════════
# ADD
# ═══════════════════════════════════════════════════════════


class TestAdd:
    """New ingredients are estimated before entering the ledger."""

    @pytest.mark.asyncio
    async def test_add_success(self, ledger: IngredientLedger, mock_estimator: Any) -> None:
        mock_estimator.estimate_single_ingredient.return_value = SingleIngredientEstimate(
            success=True, calories_kcal=61, proteins_g=1.1, corrected_name="Kiwi verde"
        )

        item = await ledger.add(" kiwi ", 100)

        mock_estimator.estimate_single_ingredient.assert_awaited_once_with("kiwi", 100.0)
        assert item.id == "user_1"
        assert item.is_user_added
        assert item.name == "Kiwi verde"
        assert item.estimated_calories_kcal == 61
        assert ledger.total_calories() == 200 + 165 + 61

    @pytest.mark.asyncio
    async def test_add_without_weight_defaults(self, ledger: IngredientLedger, mock_estimator: Any) -> None:
        mock_estimator.estimate_single_ingredient.return_value = SingleIngredientEstimate(
            success=True, calories_kcal=52
        )

        item = await ledger.add("mela")

        mock_estimator.estimate_single_ingredient.assert_awaited_once_with("mela", None)
        assert item.estimated_weight_g == DEFAULT_WEIGHT_G
        assert item.name == "mela"

    @pytest.mark.asyncio
    async def test_added_item_reweights_from_its_estimate(
        self, ledger: IngredientLedger, mock_estimator: Any
    ) -> None:
        mock_estimator.estimate_single_ingredient.return_value = SingleIngredientEstimate(
            success=True, calories_kcal=52
        )
        item = await ledger.add("mela")

        assert ledger.reweight(item.id, 200).estimated_calories_kcal == 104

    @pytest.mark.asyncio
    async def test_add_failure_leaves_ledger_untouched(
        self, ledger: IngredientLedger, mock_estimator: Any
    ) -> None:
        mock_estimator.estimate_single_ingredient.return_value = SingleIngredientEstimate.failure(
            "Ingrediente non riconosciuto."
        )
        before = ledger.items

        with pytest.raises(IngredientEstimationFailedError) as exc_info:
            await ledger.add("xyzzy")

        assert exc_info.value.error_message == "Ingrediente non riconosciuto."
        assert ledger.items == before
        assert not ledger.has_unsaved_changes

    @pytest.mark.asyncio
    async def test_add_validates_before_estimating(
        self, ledger: IngredientLedger, mock_estimator: Any
    ) -> None:
        with pytest.raises(InvalidUserInputError):
            await ledger.add("   ")
        with pytest.raises(InvalidUserInputError):
            await ledger.add("mela", 0)
        with pytest.raises(InvalidUserInputError):
            await ledger.add("mela", 100, quantity=0)

        mock_estimator.estimate_single_ingredient.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_to_empty_ledger(self, mock_estimator: Any) -> None:
        mock_estimator.estimate_single_ingredient.return_value = SingleIngredientEstimate(
            success=True, calories_kcal=89
        )
        ledger = IngredientLedger(mock_estimator)
        ledger.initialize(None)

        await ledger.add("banana", 120, quantity=2)

        assert ledger.has_breakdown
        assert ledger.total_calories() == 178


# ═══════════════════════════════════════════════════════════
# TOTALS
# ═══════════════════════════════════════════════════════════


class TestTotals:
    def test_sum_invariant(self, ledger: IngredientLedger) -> None:
        ledger.reweight("1", 150)
        ledger.requantify("2", 2)

        expected = sum(i.estimated_calories_kcal * i.quantity for i in ledger.items or [])
        assert ledger.total_calories() == expected == 300 + 330
        assert ledger.calories_estimate_label() == "Totale: ~630 kcal"

    def test_total_macros(self, ledger: IngredientLedger) -> None:
        ledger.requantify("2", 2)
        assert ledger.total_macros() == {"proteins_g": 66.0, "carbs_g": 44.0, "fats_g": 0.6}

    def test_apply_to(self, ledger: IngredientLedger) -> None:
        result = AnalysisResult(health_score=70, analysis="Ok", mode=AnalysisMode.PHOTO)
        ledger.remove("2")

        applied = ledger.apply_to(result)

        assert [i.id for i in applied.ingredients_breakdown] == ["1"]
        assert applied.calories_estimate == "Totale: ~200 kcal"


# ═══════════════════════════════════════════════════════════
# CHECKPOINT
# ═══════════════════════════════════════════════════════════


class TestCheckpoint:
    """Undo restores the last saved list."""

    def test_undo_before_any_save(self, ledger: IngredientLedger) -> None:
        ledger.reweight("1", 150)
        ledger.remove("2")

        ledger.undo()

        assert [i.estimated_calories_kcal for i in ledger.items or []] == [200, 165]
        assert not ledger.has_unsaved_changes

    @pytest.mark.asyncio
    async def test_undo_after_save(self, ledger: IngredientLedger) -> None:
        store = InMemoryIngredientStore()
        ledger.reweight("1", 150)
        assert await ledger.save(store, "prod_1", "user_1")
        assert not ledger.has_unsaved_changes

        ledger.reweight("1", 50)
        ledger.undo()

        assert ledger.get("1").estimated_calories_kcal == 300

        saved = await store.load_ingredients(ProductId.from_string("prod_1"), UserId.from_string("user_1"))
        assert saved is not None
        assert saved[0].estimated_weight_g == 150

    @pytest.mark.asyncio
    async def test_failed_save_keeps_dirty(self, ledger: IngredientLedger) -> None:
        ledger.remove("1")
        assert not await ledger.save(InMemoryIngredientStore(fail_saves=True), "p", "u")
        assert ledger.has_unsaved_changes

    def test_mark_saved_with_stale_snapshot_stays_dirty(self, ledger: IngredientLedger) -> None:
        ledger.reweight("1", 150)
        snapshot = ledger.items
        ledger.reweight("1", 200)

        ledger.mark_saved(snapshot)

        assert ledger.has_unsaved_changes
        ledger.undo()
        assert ledger.get("1").estimated_weight_g == 150

    def test_mark_saved_empty_snapshot(self, ledger: IngredientLedger) -> None:
        ledger.remove("1")
        ledger.remove("2")

        ledger.mark_saved(None)

        assert not ledger.has_unsaved_changes
