"""
Composition root.

Wires settings, adapters and services. Every call builds fresh objects:
there are no module-level singletons.
"""

from typing import Optional

import structlog

from nutriscan.application.analysis.orchestrator import AnalysisOrchestrator
from nutriscan.application.ingredients.edit_session import IngredientEditSession
from nutriscan.config import Settings, get_settings
from nutriscan.domain.analysis.models import AnalysisResult
from nutriscan.domain.analysis.ports import IAnalysisStore, IIngredientStore, IModelClient
from nutriscan.domain.ingredients.ledger import IngredientLedger
from nutriscan.infrastructure.ai.openai_client import OpenAIModelClient, RetryingModelClient
from nutriscan.infrastructure.cache.result_cache import ResultCache
from nutriscan.infrastructure.persistence.in_memory import (
    InMemoryAnalysisStore,
    InMemoryIngredientStore,
)
from nutriscan.logging_config import configure_logging
from nutriscan.metrics.ai_analysis import AnalysisMetrics

logger = structlog.get_logger(__name__)


def create_model_client(settings: Settings) -> IModelClient:
    """
    OpenAI client from settings, wrapped with retries when
    model_max_attempts > 1.

    Raises:
        ValueError: If OPENAI_API_KEY is not configured
    """
    client: IModelClient = OpenAIModelClient(
        api_key=settings.openai_api_key,
        model=settings.model,
        vision_model=settings.vision_model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout=settings.timeout_s,
    )
    if settings.model_max_attempts > 1:
        client = RetryingModelClient(client, max_attempts=settings.model_max_attempts)
    return client


def create_orchestrator(
    settings: Optional[Settings] = None,
    *,
    model_client: Optional[IModelClient] = None,
    analysis_store: Optional[IAnalysisStore] = None,
    ingredient_store: Optional[IIngredientStore] = None,
) -> AnalysisOrchestrator:
    """
    Build an orchestrator.

    Missing collaborators default to the OpenAI client and in-memory stores.
    Logging is configured on first use.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    orchestrator = AnalysisOrchestrator(
        model_client=model_client if model_client is not None else create_model_client(settings),
        analysis_store=analysis_store if analysis_store is not None else InMemoryAnalysisStore(),
        ingredient_store=ingredient_store if ingredient_store is not None else InMemoryIngredientStore(),
        cache=ResultCache(ttl_seconds=settings.result_cache_ttl_s),
        metrics=AnalysisMetrics(),
        max_tokens=settings.max_tokens,
        ingredient_max_tokens=settings.ingredient_max_tokens,
    )
    logger.info(
        "Orchestrator created",
        model=settings.model,
        vision_model=settings.vision_model,
        cache_ttl_s=settings.result_cache_ttl_s,
    )
    return orchestrator


def create_edit_session(
    orchestrator: AnalysisOrchestrator,
    result: AnalysisResult,
    product_id: str,
    user_id: str,
    settings: Optional[Settings] = None,
) -> IngredientEditSession:
    """
    Ledger + debounced session for editing the breakdown of a result.

    Raises:
        ValueError: If the orchestrator has no ingredient store
    """
    if orchestrator.ingredient_store is None:
        raise ValueError("Orchestrator has no ingredient store")
    settings = settings or get_settings()
    ledger = IngredientLedger(estimator=orchestrator)
    ledger.initialize(result.ingredients_breakdown if result.has_breakdown else None)
    return IngredientEditSession(
        ledger=ledger,
        store=orchestrator.ingredient_store,
        product_id=product_id,
        user_id=user_id,
        debounce_s=settings.save_debounce_s,
    )
