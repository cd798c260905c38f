"""
Fallback synthesizer.

Builds a low-information but well-formed AnalysisResult when a model
response could not be parsed. Score fragments found in the raw text are
preserved; everything else is a canned Italian placeholder.
"""

from __future__ import annotations

import re
from typing import Optional

import structlog

from nutriscan.domain.analysis.models import (
    AnalysisMode,
    AnalysisResult,
    CalorieEstimationType,
    ScoreItem,
)

logger = structlog.get_logger(__name__)

DEFAULT_SCORE = 50
MIN_SCORE = 1
MAX_SCORE = 100

FALLBACK_ANALYSIS = "Analisi non disponibile a causa di un errore di parsing."
FALLBACK_PRO = ScoreItem(
    title="Analisi parziale",
    detail="Non è stato possibile elaborare i punti di forza di questo prodotto.",
)
FALLBACK_CON = ScoreItem(
    title="Dati incompleti",
    detail="Non è stato possibile elaborare i punti deboli di questo prodotto.",
)
FALLBACK_RECOMMENDATION = "Riprova l'analisi più tardi per ottenere una valutazione completa."

FALLBACK_SUSTAINABILITY_ANALYSIS = "Valutazione di sostenibilità non disponibile."
FALLBACK_SUSTAINABILITY_PRO = ScoreItem(
    title="Sostenibilità non valutata",
    detail="Non è stato possibile elaborare gli aspetti ambientali positivi.",
)
FALLBACK_SUSTAINABILITY_CON = ScoreItem(
    title="Impatto ambientale sconosciuto",
    detail="Non è stato possibile elaborare gli aspetti ambientali negativi.",
)
FALLBACK_SUSTAINABILITY_RECOMMENDATION = (
    "Controlla l'etichetta per informazioni sull'impatto ambientale."
)

FALLBACK_CALORIES_ESTIMATE = "Stima calorica non disponibile"

_SCORE_PATTERNS = {
    "health": re.compile(r'["\']?health_?score["\']?\s*[:=]\s*\[?\s*["\']?(-?\d+(?:\.\d+)?)', re.IGNORECASE),
    "sustainability": re.compile(
        r'["\']?sustainability_?score["\']?\s*[:=]\s*\[?\s*["\']?(-?\d+(?:\.\d+)?)', re.IGNORECASE
    ),
}


def extract_score(raw_text: str, name: str) -> Optional[int]:
    """
    Regex-extract a score fragment ("healthScore": 77) from raw text.

    Returns:
        Score clamped to [1, 100], or None if absent
    """
    match = _SCORE_PATTERNS[name].search(raw_text or "")
    if not match:
        return None
    value = int(round(float(match.group(1))))
    return max(MIN_SCORE, min(MAX_SCORE, value))


def synthesize(raw_text: str, mode: AnalysisMode) -> AnalysisResult:
    """
    Build the degraded result for an unparseable response.

    Deterministic: the same raw text and mode always give the same result.

    Example:
        >>> result = synthesize('{"healthScore": 77, "analysis": ', AnalysisMode.PHOTO)
        >>> assert result.health_score == 77 and result.is_fallback
    """
    health = extract_score(raw_text, "health")
    health_score = health if health is not None else DEFAULT_SCORE

    if mode == AnalysisMode.PHOTO:
        result = AnalysisResult(
            health_score=health_score,
            analysis=FALLBACK_ANALYSIS,
            pros=[FALLBACK_PRO],
            cons=[FALLBACK_CON],
            recommendations=[FALLBACK_RECOMMENDATION],
            calorie_estimation_type=CalorieEstimationType.PER_100G,
            calories_estimate=FALLBACK_CALORIES_ESTIMATE,
            is_fallback=True,
            mode=mode,
        )
    else:
        sustainability = extract_score(raw_text, "sustainability")
        result = AnalysisResult(
            health_score=health_score,
            sustainability_score=sustainability if sustainability is not None else DEFAULT_SCORE,
            analysis=FALLBACK_ANALYSIS,
            sustainability_analysis=FALLBACK_SUSTAINABILITY_ANALYSIS,
            pros=[FALLBACK_PRO],
            cons=[FALLBACK_CON],
            sustainability_pros=[FALLBACK_SUSTAINABILITY_PRO],
            sustainability_cons=[FALLBACK_SUSTAINABILITY_CON],
            recommendations=[FALLBACK_RECOMMENDATION],
            sustainability_recommendations=[FALLBACK_SUSTAINABILITY_RECOMMENDATION],
            is_fallback=True,
            mode=mode,
        )

    logger.info(
        "Fallback analysis synthesized",
        mode=mode.value,
        health_score=result.health_score,
        score_recovered=health is not None,
    )
    return result
