"""
Ingredient ledger.

Editable list of estimated ingredients for a breakdown analysis. Every
mutation either fully applies or raises and leaves the ledger untouched.

Derived values are recomputed from the snapshot recorded when an item
first entered the ledger, never from the current (already rounded)
values, so repeated edits do not drift.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Set

import structlog

from nutriscan.domain.analysis.models import (
    AnalysisResult,
    CalorieEstimationType,
    EstimatedIngredient,
)
from nutriscan.domain.analysis.ports import IIngredientEstimator, IIngredientStore
from nutriscan.domain.shared.errors import (
    IngredientEstimationFailedError,
    IngredientNotFoundError,
    InvalidUserInputError,
)
from nutriscan.domain.shared.value_objects import (
    ProductId,
    UserId,
    generate_user_ingredient_id,
)

logger = structlog.get_logger(__name__)

MAX_WEIGHT_G = 999
DEFAULT_WEIGHT_G = 100.0

INVALID_WEIGHT_MESSAGE = "Inserisci un peso valido, maggiore di 0 e non superiore a 999 grammi."
INVALID_QUANTITY_MESSAGE = "La quantità deve essere un numero intero maggiore di 0."
EMPTY_NAME_MESSAGE = "Inserisci il nome dell'ingrediente."


def normalize_name(name: str) -> str:
    """Case/whitespace-insensitive key: "  Kiwi  Gold" -> "kiwi gold"."""
    return " ".join(name.split()).lower()


def dedupe_ingredients(items: Iterable[EstimatedIngredient]) -> List[EstimatedIngredient]:
    """
    Merge items with the same normalized name.

    The first occurrence keeps its id and unit values; quantities add up.
    A different ingredient reusing an id already taken gets a suffixed id
    ("1" -> "1_2"), so every id names exactly one item.

    Example:
        >>> merged = dedupe_ingredients([
        ...     EstimatedIngredient(id="1", name=" Kiwi ", estimated_weight_g=70, estimated_calories_kcal=42),
        ...     EstimatedIngredient(id="2", name="kiwi", estimated_weight_g=70, estimated_calories_kcal=42),
        ... ])
        >>> assert len(merged) == 1 and merged[0].quantity == 2
    """
    merged: Dict[str, EstimatedIngredient] = {}
    taken: Set[str] = set()
    for item in items:
        key = normalize_name(item.name)
        existing = merged.get(key)
        if existing is not None:
            existing.quantity += item.quantity
            continue
        copy = item.model_copy()
        if copy.id in taken:
            copy.id = _free_id(copy.id, taken)
            logger.warning("Duplicate ingredient id renamed", original=item.id, id=copy.id, name=copy.name)
        taken.add(copy.id)
        merged[key] = copy
    return list(merged.values())


def _free_id(base: str, taken: Set[str]) -> str:
    suffix = 2
    while f"{base}_{suffix}" in taken:
        suffix += 1
    return f"{base}_{suffix}"


def calories_label(total_kcal: float) -> str:
    """Breakdown calories estimate string."""
    return f"Totale: ~{int(round(total_kcal))} kcal"


def apply_ingredients(
    result: AnalysisResult, items: Optional[List[EstimatedIngredient]]
) -> AnalysisResult:
    """
    Result with its breakdown replaced by an edited list.

    None/empty means the user removed every ingredient.
    """
    items = list(items or [])
    total = sum(i.estimated_calories_kcal * i.quantity for i in items)
    return result.model_copy(
        update={
            "calorie_estimation_type": CalorieEstimationType.BREAKDOWN,
            "ingredients_breakdown": [i.model_copy() for i in items],
            "calories_estimate": calories_label(total),
        }
    )


def _validate_weight(grams: object) -> float:
    if isinstance(grams, bool) or not isinstance(grams, (int, float)):
        raise InvalidUserInputError(INVALID_WEIGHT_MESSAGE, field="estimated_weight_g")
    if not math.isfinite(grams) or grams <= 0 or grams > MAX_WEIGHT_G:
        raise InvalidUserInputError(INVALID_WEIGHT_MESSAGE, field="estimated_weight_g")
    return float(grams)


def _validate_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidUserInputError(INVALID_QUANTITY_MESSAGE, field="quantity")
    return quantity


def _scale_macro(value: Optional[float], ratio: float) -> Optional[float]:
    return None if value is None else round(value * ratio, 1)


_CURRENT = object()


def _copy_list(items: Optional[List[EstimatedIngredient]]) -> Optional[List[EstimatedIngredient]]:
    return None if items is None else [i.model_copy() for i in items]


class IngredientLedger:
    """
    Editable ingredient breakdown with consistent totals.

    States:
        items is None  -> no breakdown (never initialized, or all removed)
        items is list  -> at least one ingredient

    Args:
        estimator: Single ingredient estimator used by add()
        id_factory: Generates ids for user-added ingredients

    Example:
        >>> ledger = IngredientLedger(estimator=orchestrator)
        >>> ledger.initialize(result.ingredients_breakdown)
        >>> ledger.reweight("1", 150)
        >>> ledger.total_calories()
    """

    def __init__(
        self,
        estimator: IIngredientEstimator,
        *,
        id_factory: Callable[[], str] = generate_user_ingredient_id,
    ) -> None:
        self._estimator = estimator
        self._id_factory = id_factory
        self._items: Optional[List[EstimatedIngredient]] = None
        self._originals: Dict[str, EstimatedIngredient] = {}
        self._checkpoint: Optional[List[EstimatedIngredient]] = None
        self._dirty = False

    # ─────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────

    @property
    def items(self) -> Optional[List[EstimatedIngredient]]:
        """Copy of the current list (None when there is no breakdown)."""
        return _copy_list(self._items)

    @property
    def has_breakdown(self) -> bool:
        return self._items is not None

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    def get(self, ingredient_id: str) -> EstimatedIngredient:
        """Copy of one item. Raises IngredientNotFoundError."""
        return self._items[self._index(ingredient_id)].model_copy()  # type: ignore[index]

    def _index(self, ingredient_id: str) -> int:
        for index, item in enumerate(self._items or []):
            if item.id == ingredient_id:
                return index
        raise IngredientNotFoundError(ingredient_id)

    def _commit(self, items: List[EstimatedIngredient]) -> None:
        self._items = items if items else None
        self._dirty = True

    # ─────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────

    def initialize(self, items: Optional[Iterable[EstimatedIngredient]]) -> None:
        """
        Load a breakdown, merging duplicates by name.

        Resets originals, undo checkpoint and dirty flag.
        """
        merged = dedupe_ingredients(items or [])
        self._items = merged or None
        self._originals = {item.id: item.model_copy() for item in merged}
        self._checkpoint = _copy_list(self._items)
        self._dirty = False
        logger.debug("Ledger initialized", items=len(merged))

    def reweight(self, ingredient_id: str, grams: float) -> EstimatedIngredient:
        """
        Change the unit weight of an item.

        Calories (int) and macros (1 decimal) scale with
        grams / original weight. With no usable original weight only the
        weight changes.

        Raises:
            InvalidUserInputError: grams not finite, <=0 or >999
            IngredientNotFoundError: Unknown id
        """
        weight = _validate_weight(grams)
        index = self._index(ingredient_id)
        current = self._items[index]  # type: ignore[index]
        original = self._originals.get(ingredient_id)

        if original is None or original.estimated_weight_g <= 0:
            logger.warning("Reweight without original weight", ingredient_id=ingredient_id)
            updated = current.model_copy(update={"estimated_weight_g": weight})
        else:
            ratio = weight / original.estimated_weight_g
            updated = current.model_copy(
                update={
                    "estimated_weight_g": weight,
                    "estimated_calories_kcal": float(round(original.estimated_calories_kcal * ratio)),
                    "estimated_proteins_g": _scale_macro(original.estimated_proteins_g, ratio),
                    "estimated_carbs_g": _scale_macro(original.estimated_carbs_g, ratio),
                    "estimated_fats_g": _scale_macro(original.estimated_fats_g, ratio),
                }
            )

        items = list(self._items)  # type: ignore[arg-type]
        items[index] = updated
        self._commit(items)
        return updated.model_copy()

    def requantify(self, ingredient_id: str, quantity: int) -> EstimatedIngredient:
        """
        Change the number of units. Unit values stay fixed.

        Raises:
            InvalidUserInputError: quantity not a positive integer
            IngredientNotFoundError: Unknown id
        """
        quantity = _validate_quantity(quantity)
        index = self._index(ingredient_id)
        updated = self._items[index].model_copy(update={"quantity": quantity})  # type: ignore[index]
        items = list(self._items)  # type: ignore[arg-type]
        items[index] = updated
        self._commit(items)
        return updated.model_copy()

    def remove(self, ingredient_id: str) -> None:
        """Delete an item. Removing the last one leaves no breakdown."""
        index = self._index(ingredient_id)
        items = list(self._items)  # type: ignore[arg-type]
        del items[index]
        self._commit(items)

    async def add(
        self, name: str, weight_g: Optional[float] = None, quantity: int = 1
    ) -> EstimatedIngredient:
        """
        Estimate and append a user ingredient.

        Args:
            name: Ingredient name as typed by the user
            weight_g: Unit weight, None for an average portion (recorded as 100 g)
            quantity: Number of units

        Raises:
            InvalidUserInputError: Empty name, invalid weight or quantity
            IngredientEstimationFailedError: Estimator returned no usable number
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidUserInputError(EMPTY_NAME_MESSAGE, field="name")
        weight = _validate_weight(weight_g) if weight_g is not None else None
        quantity = _validate_quantity(quantity)

        estimate = await self._estimator.estimate_single_ingredient(name.strip(), weight)
        if not estimate.success or estimate.calories_kcal is None:
            message = estimate.error_message or f"Impossibile stimare le calorie per '{name.strip()}'."
            logger.info("Ingredient estimate failed", name=name.strip(), error=message)
            raise IngredientEstimationFailedError(message)

        item = EstimatedIngredient(
            id=self._id_factory(),
            name=(estimate.corrected_name or name).strip(),
            quantity=quantity,
            estimated_weight_g=weight if weight is not None else DEFAULT_WEIGHT_G,
            estimated_calories_kcal=float(estimate.calories_kcal),
            estimated_proteins_g=estimate.proteins_g,
            estimated_carbs_g=estimate.carbs_g,
            estimated_fats_g=estimate.fats_g,
        )
        self._originals[item.id] = item.model_copy()
        self._commit(list(self._items or []) + [item])
        logger.info("Ingredient added", ingredient_id=item.id, name=item.name)
        return item.model_copy()

    # ─────────────────────────────────────────────
    # Totals
    # ─────────────────────────────────────────────

    def total_calories(self) -> float:
        """Sum of calories x quantity."""
        return sum(i.estimated_calories_kcal * i.quantity for i in self._items or [])

    def total_macros(self) -> Dict[str, float]:
        """Sum of each macro x quantity (1 decimal). Missing macros count as 0."""
        totals = {"proteins_g": 0.0, "carbs_g": 0.0, "fats_g": 0.0}
        for item in self._items or []:
            totals["proteins_g"] += (item.estimated_proteins_g or 0.0) * item.quantity
            totals["carbs_g"] += (item.estimated_carbs_g or 0.0) * item.quantity
            totals["fats_g"] += (item.estimated_fats_g or 0.0) * item.quantity
        return {key: round(value, 1) for key, value in totals.items()}

    def calories_estimate_label(self) -> str:
        return calories_label(self.total_calories())

    # ─────────────────────────────────────────────
    # Checkpoint
    # ─────────────────────────────────────────────

    def undo(self) -> None:
        """Restore the last saved list and clear the dirty flag."""
        self._items = _copy_list(self._checkpoint)
        self._dirty = False

    def mark_saved(self, snapshot: object = _CURRENT) -> None:
        """
        Record a successful save.

        Args:
            snapshot: The list that was persisted (None for "no
                breakdown"). Defaults to the current list. If the ledger
                changed since the snapshot was taken it stays dirty.
        """
        if snapshot is _CURRENT:
            snapshot = self._items
        self._checkpoint = _copy_list(snapshot)
        self._dirty = self._items != snapshot

    async def save(
        self, store: IIngredientStore, product_id: str, user_id: str
    ) -> bool:
        """
        Persist the current list and update the checkpoint on success.

        Returns:
            True if the store accepted the list
        """
        snapshot = self.items
        saved = await store.save_ingredients(
            ProductId.from_string(product_id), UserId.from_string(user_id), snapshot
        )
        if saved:
            self.mark_saved(snapshot)
            logger.info("Ingredients saved", product_id=product_id, items=len(snapshot or []))
        else:
            logger.warning("Ingredients save failed", product_id=product_id)
        return saved

    def apply_to(self, result: AnalysisResult) -> AnalysisResult:
        """Result with this ledger's list as breakdown."""
        return apply_ingredients(result, self._items)
