"""
Official score descriptions.

Standard pro/con/neutral items for Nutri-Score, Eco-Score and NOVA.
They replace anything the model might say about these scores (the
content filter drops model restatements).
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from nutriscan.domain.analysis.models import AnalysisMode, ProductSourceData, ScoreItem


class ItemKind(str, Enum):
    """Which list a standard item belongs to."""

    PRO = "pro"
    CON = "con"
    NEUTRAL = "neutral"


class StandardScoreItem(BaseModel):
    """Score item plus the list it belongs to."""

    model_config = ConfigDict(frozen=True)

    kind: ItemKind
    item: ScoreItem


def _std(kind: ItemKind, title: str, detail: str) -> StandardScoreItem:
    return StandardScoreItem(kind=kind, item=ScoreItem(title=title, detail=detail))


_NUTRI_SUFFIX = "secondo il sistema di valutazione europeo Nutri-Score."
_ECO_SUFFIX = "secondo il sistema di valutazione Eco-Score."
_NOVA_SUFFIX = "secondo la classificazione NOVA."

NUTRI_SCORE_DESCRIPTIONS: Dict[str, StandardScoreItem] = {
    "A": _std(ItemKind.PRO, "Nutri-Score A", f"Prodotto con profilo nutrizionale eccellente {_NUTRI_SUFFIX}"),
    "B": _std(ItemKind.PRO, "Nutri-Score B", f"Prodotto con buon profilo nutrizionale {_NUTRI_SUFFIX}"),
    "C": _std(ItemKind.NEUTRAL, "Nutri-Score C", f"Prodotto con profilo nutrizionale medio {_NUTRI_SUFFIX}"),
    "D": _std(ItemKind.CON, "Nutri-Score D", f"Prodotto con profilo nutrizionale scadente {_NUTRI_SUFFIX}"),
    "E": _std(ItemKind.CON, "Nutri-Score E", f"Prodotto con profilo nutrizionale molto scadente {_NUTRI_SUFFIX}"),
}

ECO_SCORE_DESCRIPTIONS: Dict[str, StandardScoreItem] = {
    "A": _std(ItemKind.PRO, "Eco-Score A", f"Prodotto con impatto ambientale molto basso {_ECO_SUFFIX}"),
    "B": _std(ItemKind.PRO, "Eco-Score B", f"Prodotto con basso impatto ambientale {_ECO_SUFFIX}"),
    "C": _std(ItemKind.NEUTRAL, "Eco-Score C", f"Prodotto con impatto ambientale moderato {_ECO_SUFFIX}"),
    "D": _std(ItemKind.CON, "Eco-Score D", f"Prodotto con alto impatto ambientale {_ECO_SUFFIX}"),
    "E": _std(ItemKind.CON, "Eco-Score E", f"Prodotto con impatto ambientale molto alto {_ECO_SUFFIX}"),
}

NOVA_DESCRIPTIONS: Dict[int, StandardScoreItem] = {
    1: _std(ItemKind.PRO, "NOVA Gruppo 1", f"Alimento non trasformato o minimamente trasformato {_NOVA_SUFFIX}"),
    2: _std(ItemKind.NEUTRAL, "NOVA Gruppo 2", f"Ingrediente culinario trasformato {_NOVA_SUFFIX}"),
    3: _std(ItemKind.CON, "NOVA Gruppo 3", f"Alimento trasformato {_NOVA_SUFFIX}"),
    4: _std(ItemKind.CON, "NOVA Gruppo 4", f"Alimento ultra-trasformato {_NOVA_SUFFIX}"),
}


def nutri_score_item(grade: Optional[str]) -> Optional[StandardScoreItem]:
    """Standard item for a Nutri-Score grade, None if unknown."""
    return NUTRI_SCORE_DESCRIPTIONS.get((grade or "").strip().upper())


def eco_score_item(grade: Optional[str]) -> Optional[StandardScoreItem]:
    """Standard item for an Eco-Score grade, None if unknown."""
    return ECO_SCORE_DESCRIPTIONS.get((grade or "").strip().upper())


def nova_item(group: Optional[int]) -> Optional[StandardScoreItem]:
    """Standard item for a NOVA group, None if unknown."""
    if group is None:
        return None
    return NOVA_DESCRIPTIONS.get(group)


class StandardItems(BaseModel):
    """Standard items grouped by section, ready for the UI."""

    model_config = ConfigDict(frozen=True)

    health: List[StandardScoreItem]
    sustainability: List[StandardScoreItem]


def standard_items_for(product: ProductSourceData, mode: AnalysisMode) -> StandardItems:
    """
    Standard items for a product's official scores.

    Photo analyses have no official scores: both sections are empty.

    Example:
        >>> product = ProductSourceData(nutrition_grade="b", nova_group=4)
        >>> items = standard_items_for(product, AnalysisMode.TEXT)
        >>> [i.item.title for i in items.health]
        ['Nutri-Score B', 'NOVA Gruppo 4']
    """
    if mode == AnalysisMode.PHOTO:
        return StandardItems(health=[], sustainability=[])

    health = [
        item
        for item in (nutri_score_item(product.nutrition_grade), nova_item(product.nova_group))
        if item is not None
    ]
    eco = eco_score_item(product.ecoscore_grade)
    return StandardItems(health=health, sustainability=[eco] if eco else [])
