"""
Score restatement filter.

Official scores (Nutri-Score, NOVA, Eco-Score) are rendered separately
from the model's pros/cons, so items that merely restate them are noise.
Only matched items are removed; order of the rest is preserved.
"""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

import structlog

from nutriscan.domain.analysis.models import AnalysisMode, AnalysisResult, ScoreItem

logger = structlog.get_logger(__name__)

HEALTH_KEYWORDS: Tuple[str, ...] = ("NOVA", "GRUPPO NOVA", "NUTRI-SCORE", "NUTRISCORE")
ECO_KEYWORDS: Tuple[str, ...] = ("ECO-SCORE", "ECOSCORE")

_EXACT_TITLE_PATTERNS: Tuple[re.Pattern[str], ...] = (
    re.compile(r"^\s*(NUTRI[\s-]?SCORE|ECO[\s-]?SCORE)\s*:\s*[A-E]\s*$", re.IGNORECASE),
    re.compile(r"^\s*NOVA\s*:\s*[1-4]\s*$", re.IGNORECASE),
)

HEALTH_RESTATEMENT_PHRASES: Tuple[str, ...] = (
    "il nutri-score di questo prodotto è",
    "il nutriscore di questo prodotto è",
    "il gruppo nova di questo prodotto è",
    "appartiene al gruppo nova",
    "classificato come nova",
)
ECO_RESTATEMENT_PHRASES: Tuple[str, ...] = (
    "l'eco-score di questo prodotto è",
    "l'ecoscore di questo prodotto è",
)


def _keywords(mode: AnalysisMode) -> Tuple[str, ...]:
    if mode == AnalysisMode.PHOTO:
        return HEALTH_KEYWORDS
    return HEALTH_KEYWORDS + ECO_KEYWORDS


def _phrases(mode: AnalysisMode) -> Tuple[str, ...]:
    if mode == AnalysisMode.PHOTO:
        return HEALTH_RESTATEMENT_PHRASES
    return HEALTH_RESTATEMENT_PHRASES + ECO_RESTATEMENT_PHRASES


def is_score_restatement(item: ScoreItem, mode: AnalysisMode) -> bool:
    """True if the item only restates an official score."""
    title = item.title.upper()
    if any(keyword in title for keyword in _keywords(mode)):
        return True
    if any(pattern.match(item.title) for pattern in _EXACT_TITLE_PATTERNS):
        return True
    detail = item.detail.lower()
    return any(phrase in detail for phrase in _phrases(mode))


def filter_items(items: Sequence[ScoreItem], mode: AnalysisMode) -> List[ScoreItem]:
    """
    Drop score restatements from one list.

    Example:
        >>> items = [ScoreItem(title="Nutri-Score: B"), ScoreItem(title="Ricco di fibre")]
        >>> [i.title for i in filter_items(items, AnalysisMode.TEXT)]
        ['Ricco di fibre']
    """
    kept = [item for item in items if not is_score_restatement(item, mode)]
    if len(kept) != len(items):
        logger.debug(
            "Score restatements removed",
            mode=mode.value,
            removed=len(items) - len(kept),
        )
    return kept


def filter_result(result: AnalysisResult) -> AnalysisResult:
    """Apply filter_items to every pros/cons/neutrals list of a result."""
    mode = result.mode
    return result.model_copy(
        update={
            "pros": filter_items(result.pros, mode),
            "cons": filter_items(result.cons, mode),
            "neutrals": filter_items(result.neutrals, mode),
            "sustainability_pros": filter_items(result.sustainability_pros, mode),
            "sustainability_cons": filter_items(result.sustainability_cons, mode),
            "sustainability_neutrals": filter_items(result.sustainability_neutrals, mode),
        }
    )
