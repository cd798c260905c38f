"""
Analysis Orchestration Service.

Coordinates one analysis per (product, user): result cache, reuse of a
persisted analysis, a single model call, parsing with fallback, and
persistence. Also exposes single ingredient estimation for the ledger.

Design Pattern: Service Layer + Dependency Injection (Ports & Adapters)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, Optional

import structlog

from nutriscan.domain.analysis.content_filter import filter_result
from nutriscan.domain.analysis.fallback import synthesize
from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    CalorieEstimationType,
    SingleIngredientEstimate,
    SourceData,
    UserProfile,
)
from nutriscan.domain.analysis.parser import ParsedOk, parse, parse_ingredient_estimate
from nutriscan.domain.analysis.ports import IAnalysisStore, IIngredientStore, IModelClient
from nutriscan.domain.analysis.prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    INGREDIENT_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_single_ingredient_prompt,
)
from nutriscan.domain.ingredients.ledger import apply_ingredients
from nutriscan.domain.shared.errors import ModelUnavailableError, PersistenceError
from nutriscan.domain.shared.value_objects import AnalysisKey
from nutriscan.infrastructure.cache.result_cache import ResultCache
from nutriscan.metrics.ai_analysis import AnalysisMetrics

logger = structlog.get_logger(__name__)

ESTIMATE_UNAVAILABLE_MESSAGE = "Servizio di stima non disponibile. Riprova più tardi."
ESTIMATE_UNEXPECTED_MESSAGE = "Errore inatteso durante la stima delle calorie."


class AnalysisState(str, Enum):
    """Lifecycle of one (product, user) analysis."""

    UNREQUESTED = "UNREQUESTED"
    CACHED = "CACHED"  # Served from the result cache
    FETCHING = "FETCHING"  # Model call in progress
    PARSED = "PARSED"  # Accepted (or fallback) result, not persisted
    FAILED = "FAILED"  # Model unavailable
    PERSISTED = "PERSISTED"  # Stored (or reused from the store)


class _AbandonedRequest(Exception):
    """Set on the shared future when its owner was cancelled."""


class AnalysisOrchestrator:
    """
    Orchestrates nutrition analyses.

    Responsibilities:
    - Serve fresh results from the TTL cache
    - Reuse a complete persisted analysis (no paid call)
    - Otherwise call the model once, parse, filter, fall back on parse failure
    - Persist and cache the result
    - Serialize concurrent requests for the same (product, user)

    Dependencies (injected via Ports/Interfaces):
    - model_client: IModelClient - Generative model
    - analysis_store: IAnalysisStore - Canonical analysis records
    - ingredient_store: IIngredientStore - User-edited breakdowns (optional)
    - cache: ResultCache - Short TTL memoization
    - metrics: AnalysisMetrics - Counters and latency

    Example:
        >>> orchestrator = AnalysisOrchestrator(
        ...     model_client=OpenAIModelClient(),
        ...     analysis_store=InMemoryAnalysisStore(),
        ... )
        >>> result = await orchestrator.get_or_create(
        ...     "prod_1", "user_1", ProductSourceData(product_name="Biscotti"), AnalysisMode.TEXT
        ... )
    """

    def __init__(
        self,
        model_client: IModelClient,
        analysis_store: IAnalysisStore,
        ingredient_store: Optional[IIngredientStore] = None,
        cache: Optional[ResultCache] = None,
        metrics: Optional[AnalysisMetrics] = None,
        max_tokens: Optional[int] = None,
        ingredient_max_tokens: int = 256,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            model_client: Generative model client
            analysis_store: Analysis persistence
            ingredient_store: User ingredient persistence (optional)
            cache: Result cache (default: new 60 s cache)
            metrics: Metrics recorder (default: fresh registry)
            max_tokens: Output cap for analysis calls (client default if None)
            ingredient_max_tokens: Output cap for single ingredient calls
        """
        self.model_client = model_client
        self.analysis_store = analysis_store
        self.ingredient_store = ingredient_store
        self.cache = cache or ResultCache()
        self.metrics = metrics or AnalysisMetrics()
        self.max_tokens = max_tokens
        self.ingredient_max_tokens = ingredient_max_tokens
        self._inflight: Dict[AnalysisKey, asyncio.Future[AnalysisResult]] = {}
        self._states: Dict[AnalysisKey, AnalysisState] = {}

    def state(self, product_id: str, user_id: str) -> AnalysisState:
        """
        Current state of the (product, user) analysis.

        Settled keys with no live cache entry are forgotten at the next
        get_or_create and read as UNREQUESTED again.
        """
        return self._states.get(AnalysisKey.of(product_id, user_id), AnalysisState.UNREQUESTED)

    def _set_state(self, key: AnalysisKey, state: AnalysisState) -> None:
        self._states[key] = state
        logger.debug("Analysis state", key=str(key), state=state.value)

    def _forget_settled(self) -> None:
        stale = [k for k in self._states if k not in self._inflight and k not in self.cache]
        for key in stale:
            del self._states[key]

    async def get_or_create(
        self,
        product_id: str,
        user_id: str,
        source_data: SourceData,
        mode: AnalysisMode,
        profile: Optional[UserProfile] = None,
    ) -> AnalysisResult:
        """
        Return the analysis of a product for a user.

        Workflow:
        1. Fresh cache entry -> return it
        2. Complete persisted analysis -> return it (no model call)
        3. Otherwise prompt, one model call, parse (fallback on failure),
           filter, persist, cache

        A concurrent call for the same key awaits the first one.

        Args:
            product_id: Product record id
            user_id: Requesting user
            source_data: ProductSourceData (text) or ImageSourceData (photo)
            mode: Analysis mode
            profile: Optional user profile for personalised prompts

        Returns:
            AnalysisResult (is_fallback=True when the response was unusable)

        Raises:
            ModelUnavailableError: Model call failed at transport level
            ValidationError: source_data does not match mode
        """
        key = AnalysisKey.of(product_id, user_id)
        self._forget_settled()

        while True:
            cached = self.cache.get(key)
            if cached is not None:
                self._set_state(key, AnalysisState.CACHED)
                self.metrics.record_cache_hit(mode.value, source="cache")
                return cached

            pending = self._inflight.get(key)
            if pending is None:
                break

            logger.info("Awaiting in-flight analysis", key=str(key))
            try:
                return await asyncio.shield(pending)
            except _AbandonedRequest:
                # Owner went away; take over.
                continue

        future: asyncio.Future[AnalysisResult] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._resolve(key, source_data, mode, profile)
        except asyncio.CancelledError:
            future.set_exception(_AbandonedRequest())
            future.exception()
            if self._states.get(key) == AnalysisState.FETCHING:
                self._set_state(key, AnalysisState.UNREQUESTED)
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    async def _resolve(
        self,
        key: AnalysisKey,
        source_data: SourceData,
        mode: AnalysisMode,
        profile: Optional[UserProfile],
    ) -> AnalysisResult:
        persisted = await self._load_persisted(key)
        if persisted is not None and persisted.is_complete():
            logger.info("Reusing persisted analysis", key=str(key))
            result = await self._with_user_ingredients(key, persisted)
            self.cache.set(key, result)
            self._set_state(key, AnalysisState.PERSISTED)
            self.metrics.record_cache_hit(mode.value, source="store")
            return result

        prompt = build_analysis_prompt(source_data, mode, profile)
        image = source_data if mode == AnalysisMode.PHOTO else None

        self._set_state(key, AnalysisState.FETCHING)
        try:
            with self.metrics.time_model_call(mode.value):
                raw_text = await self.model_client.generate(
                    prompt,
                    system=ANALYSIS_SYSTEM_PROMPT,
                    image=image,  # type: ignore[arg-type]
                    max_tokens=self.max_tokens,
                )
        except ModelUnavailableError:
            self._set_state(key, AnalysisState.FAILED)
            logger.error("Model unavailable", key=str(key), mode=mode.value)
            raise
        except Exception as e:
            self._set_state(key, AnalysisState.FAILED)
            logger.error("Model call failed", key=str(key), mode=mode.value, error=str(e))
            raise ModelUnavailableError(f"Model call failed: {e}") from e

        outcome = parse(raw_text, mode)
        if isinstance(outcome, ParsedOk):
            result = filter_result(outcome.result)
            self.metrics.record_parse_result(mode.value, outcome="ok")
            self.metrics.record_request(mode.value, status="completed")
        else:
            logger.warning(
                "Falling back after parse failure",
                key=str(key),
                reason=outcome.reason.value,
            )
            result = synthesize(outcome.raw_text, mode)
            self.metrics.record_parse_result(mode.value, outcome=outcome.reason.value)
            self.metrics.record_fallback(mode.value, reason=outcome.reason.value)
            self.metrics.record_request(mode.value, status="fallback")
        self._set_state(key, AnalysisState.PARSED)

        if await self._persist(key, result):
            self._set_state(key, AnalysisState.PERSISTED)

        self.cache.set(key, result)
        return result

    async def _load_persisted(self, key: AnalysisKey) -> Optional[AnalysisResult]:
        try:
            return await self.analysis_store.load_analysis(key.product_id)
        except PersistenceError as e:
            logger.error("Analysis load failed", key=str(key), error=str(e))
            return None

    async def _persist(self, key: AnalysisKey, result: AnalysisResult) -> bool:
        try:
            saved = await self.analysis_store.save_analysis(key.product_id, result)
        except PersistenceError as e:
            logger.error("Analysis save failed", key=str(key), error=str(e))
            return False
        if not saved:
            logger.error("Analysis save rejected", key=str(key))
        return saved

    async def _with_user_ingredients(
        self, key: AnalysisKey, result: AnalysisResult
    ) -> AnalysisResult:
        """Persisted breakdown overridden by the user's saved edits."""
        if (
            self.ingredient_store is None
            or result.mode != AnalysisMode.PHOTO
            or result.calorie_estimation_type != CalorieEstimationType.BREAKDOWN
        ):
            return result
        items = await self.ingredient_store.load_ingredients(key.product_id, key.user_id)
        if items is None:
            return result
        logger.info("Applying saved user ingredients", key=str(key), items=len(items))
        return apply_ingredients(result, items)

    async def estimate_single_ingredient(
        self, name: str, weight_g: Optional[float] = None
    ) -> SingleIngredientEstimate:
        """
        Estimate calories and macros of one ingredient.

        Args:
            name: Ingredient name
            weight_g: Weight in grams, None for an average portion

        Returns:
            SingleIngredientEstimate. Never raises (except on cancellation):
            failures come back as success=False with an Italian message.
        """
        prompt = build_single_ingredient_prompt(name, weight_g)
        try:
            raw_text = await self.model_client.generate(
                prompt,
                system=INGREDIENT_SYSTEM_PROMPT,
                max_tokens=self.ingredient_max_tokens,
            )
        except ModelUnavailableError as e:
            logger.warning("Ingredient estimate unavailable", name=name, error=str(e))
            self.metrics.record_ingredient_estimate(status="unavailable")
            return SingleIngredientEstimate.failure(ESTIMATE_UNAVAILABLE_MESSAGE)
        except Exception as e:
            logger.error("Ingredient estimate failed", name=name, error=str(e))
            self.metrics.record_ingredient_estimate(status="error")
            return SingleIngredientEstimate.failure(ESTIMATE_UNEXPECTED_MESSAGE)

        estimate = parse_ingredient_estimate(raw_text, name)
        self.metrics.record_ingredient_estimate(status="ok" if estimate.success else "invalid")
        return estimate
