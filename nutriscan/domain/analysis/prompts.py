"""
Prompts for nutrition analysis.

IMPORTANT: System prompts are cacheable by OpenAI.
Keep static instructions in the *_SYSTEM_PROMPT constants and dynamic
content (product data, hints, user goals) in user messages.
"""

from typing import List, Optional, Sequence

from nutriscan.domain.analysis.models import (
    AnalysisMode,
    ImageSourceData,
    ProductSourceData,
    SourceData,
    UserProfile,
)
from nutriscan.domain.shared.errors import ValidationError


# ═══════════════════════════════════════════════════════════
# SYSTEM PROMPTS (Cacheable - static instructions)
# ═══════════════════════════════════════════════════════════

ANALYSIS_SYSTEM_PROMPT = """Sei un nutrizionista esperto che valuta alimenti con criteri scientifici (WHO/FAO/EFSA).

Rispondi SOLO con un oggetto JSON valido UTF-8. Niente testo extra, niente markdown, niente code fences.

REGOLE GENERALI:
- "healthScore": intero 1-100 basato SOLO sull'impatto nutrizionale e sanitario
- Usa punteggi precisi (23, 47, 68, 84, 93), non multipli di 5
- "analysis": massimo 2 frasi, massimo 200 caratteri, dritto al punto
- Titoli di pro/contro/neutri: semplici e discorsivi, massimo 4-5 parole, niente parentesi
- Massimo 2 righe per ogni campo "detail"
- NON creare pro/contro/neutri per Nutri-Score, NOVA o Eco-Score:
  l'app mostra automaticamente le descrizioni ufficiali di questi punteggi
- MAI indicare "0g di X" come contro, MAI neutri per l'ASSENZA di un nutriente
- MAI commentare sapore, aspetto o effetti psicologici
- Caso speciale: ACQUA PURA NATURALE (senza additivi, aromi, vitamine) ha SEMPRE healthScore 100
"""

INGREDIENT_SYSTEM_PROMPT = """Sei un nutrizionista che stima i valori nutrizionali di un singolo ingrediente.

Rispondi SOLO con un oggetto JSON valido. Niente testo extra.

METODO:
1. Identifica l'alimento e correggi errori di battitura (es. "pomodoroo" -> "pomodoro")
2. Usa valori di database ufficiali (USDA/CREA), distinguendo crudo e cotto
3. Calorie come numero intero, proteine/carboidrati/grassi con 1 decimale
4. Controlla la coerenza: calorie ~ proteine*4 + carboidrati*4 + grassi*9
"""


# ═══════════════════════════════════════════════════════════
# SCORE RULES (text mode)
# ═══════════════════════════════════════════════════════════

NUTRI_SCORE_RANGES = {
    "E": (1, 20),
    "D": (21, 40),
    "C": (41, 60),
    "B": (61, 90),
    "A": (91, 100),
}

ECO_SCORE_RANGES = {
    "A": (84, 97),
    "B": (63, 83),
    "C": (39, 62),
    "D": (16, 38),
    "E": (1, 15),
}

NOVA_PENALTIES = {1: 0, 2: -5, 3: -15, 4: -25}

ADDITIVES_SAFE = "E300-E309 (antiossidanti naturali), E330 (acido citrico), E440 (pectine), probiotici"
ADDITIVES_NEUTRAL = "E322 (lecitina), E415 (gomma di xantano), E412 (gomma di guar), E471 (mono/digliceridi)"
ADDITIVES_CONTROVERSIAL = (
    "E250/E252 (nitriti/nitrati), E621 (glutammato), E102/E110/E122/E124/E129 (coloranti azoici), "
    "E320/E321 (BHA/BHT), E951 (aspartame), E220-E228 (solfiti), E200-E203 (acido sorbico)"
)

_MISSING_GRADES = {"", "unknown", "not-applicable", "null", "undefined"}
_FLAVOURED_WATER_MARKERS = ("aromatizzata", "gassata con", "vitaminizzata")

NOT_AVAILABLE = "N/A"


def has_nutri_score(product: ProductSourceData) -> bool:
    grade = (product.nutrition_grade or "").strip().lower()
    return grade not in _MISSING_GRADES


def has_eco_score(product: ProductSourceData) -> bool:
    grade = (product.ecoscore_grade or "").strip().lower()
    return grade not in _MISSING_GRADES


def is_plain_water(product: ProductSourceData) -> bool:
    """Natural water: named "acqua", no flavouring, no energy."""
    name = (product.product_name or "").lower()
    if "acqua" not in name:
        return False
    if any(marker in name for marker in _FLAVOURED_WATER_MARKERS):
        return False
    energy = product.nutriments.energy_kcal_100g
    return not energy


def _fmt(value: object, unit: str = "") -> str:
    if value is None or value == "":
        return NOT_AVAILABLE
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) if value else NOT_AVAILABLE
    return f"{value}{unit}"


def build_user_profile_block(profile: Optional[UserProfile]) -> str:
    """
    User goals section, empty string when there is nothing to personalise.

    Example:
        >>> block = build_user_profile_block(
        ...     UserProfile(user_id="u1", health_goals=["Mantenere peso forma"])
        ... )
        >>> assert "OBIETTIVI DI SALUTE" in block
    """
    if profile is None:
        return ""
    lines: List[str] = ["PROFILO UTENTE:", f"- ID Utente: {profile.user_id}", ""]
    if profile.health_goals:
        lines.append("OBIETTIVI DI SALUTE:")
        lines.extend(f"{i}. {goal}" for i, goal in enumerate(profile.health_goals, start=1))
        lines.append("")
        lines.append(
            "PERSONALIZZA il punteggio in base agli obiettivi (±15 punti) "
            "e collega ogni pro/contro agli obiettivi dell'utente."
        )
    else:
        lines.append("Nessun obiettivo di salute specifico impostato.")
    return "\n".join(lines) + "\n\n"


def _range_lines(ranges: dict, label: str) -> Sequence[str]:
    return [f"- {label} {grade} -> {low}-{high} punti" for grade, (low, high) in ranges.items()]


# ═══════════════════════════════════════════════════════════
# USER MESSAGES (Dynamic content)
# ═══════════════════════════════════════════════════════════


def build_product_prompt(
    product: ProductSourceData, profile: Optional[UserProfile] = None
) -> str:
    """
    Build user message for text (barcode) analysis.

    Args:
        product: Product data (name, ingredients, nutrition table, scores)
        profile: Optional user profile for personalisation

    Returns:
        Prompt asking for the full health + sustainability JSON
    """
    n = product.nutriments
    missing_table = n.is_missing()
    with_nutri = has_nutri_score(product)
    with_eco = has_eco_score(product)

    parts: List[str] = [build_user_profile_block(profile)]
    parts.append(
        f"PRODOTTO: {_fmt(product.product_name)} | {_fmt(product.brands)}\n"
        f"INGREDIENTI: {_fmt(product.ingredients_text)}\n"
        f"ADDITIVI: {_fmt(product.additives_tags)}\n"
        f"ETICHETTE: {_fmt(product.labels)}\n"
        f"VALORI/100g: {_fmt(n.energy_kcal_100g, 'kcal')} | Grassi: {_fmt(n.fat_100g, 'g')} | "
        f"Carbo: {_fmt(n.carbohydrates_100g, 'g')} | Proteine: {_fmt(n.proteins_100g, 'g')} | "
        f"Sale: {_fmt(n.salt_100g, 'g')}\n"
        f"SCORE ESISTENTI: Nutri: {_fmt((product.nutrition_grade or '').upper() or None)} | "
        f"Nova: {_fmt(product.nova_group)} | Eco: {_fmt((product.ecoscore_grade or '').upper() or None)}\n"
    )

    if is_plain_water(product):
        parts.append("\nCASO SPECIALE: il prodotto sembra ACQUA PURA NATURALE, assegna healthScore 100.\n")

    if with_nutri:
        parts.append("\nMAPPATURA NUTRI-SCORE UFFICIALE (usa ESATTAMENTE questi intervalli):\n")
        parts.append("\n".join(_range_lines(NUTRI_SCORE_RANGES, "Nutri-Score")) + "\n")
        parts.append("Affina il punteggio nell'intervallo considerando NOVA, additivi e qualità degli ingredienti.\n")
    else:
        parts.append(
            "\nRIFERIMENTI (nessun Nutri-Score disponibile):\n"
            "- Alimenti naturali integrali: 85-100\n"
            "- Minimamente processati: 65-84\n"
            "- Processati: 35-64\n"
            "- Ultra-processati: 10-34\n"
            "- Ad alto rischio nutrizionale: 1-9\n"
        )

    penalties = ", ".join(f"{group}={points:+d}" for group, points in NOVA_PENALTIES.items())
    parts.append(f"\nNOVA (modifica il punteggio base): Gruppo {penalties} punti\n")

    parts.append(
        "\nVALUTAZIONE ADDITIVI (EFSA/FDA):\n"
        f"- SICURI/BENEFICI: {ADDITIVES_SAFE}\n"
        f"- NEUTRI/STANDARD: {ADDITIVES_NEUTRAL}\n"
        f"- CONTROVERSI/DANNOSI: {ADDITIVES_CONTROVERSIAL}\n"
        "Crea un contro o neutro per ogni additivo rilevante, con il codice E nel titolo. "
        "Sottrai 10 punti per ogni additivo controverso e 5 per ogni additivo neutro.\n"
    )

    if with_eco:
        parts.append("\nSOSTENIBILITÀ (Eco-Score disponibile):\n")
        parts.append("\n".join(_range_lines(ECO_SCORE_RANGES, "Eco-Score")) + "\n")
        parts.append(
            "Genera sustainabilityPros/Cons/Neutrals SOLO per aspetti ambientali diversi "
            "dall'Eco-Score stesso (packaging, origine, trasporto).\n"
        )
    else:
        parts.append(
            "\nSOSTENIBILITÀ: Eco-Score non disponibile. sustainabilityScore = 0 e "
            "sustainabilityPros/Cons/Neutrals/Recommendations devono essere array VUOTI [].\n"
        )

    if missing_table:
        parts.append(
            "\nTABELLA NUTRIZIONALE ASSENTE: stima anche i valori per 100g nei campi "
            '"estimated_energy_kcal_100g", "estimated_proteins_100g", '
            '"estimated_carbs_100g", "estimated_fats_100g".\n'
        )

    sustainability_score = "numero 1-100" if with_eco else "0"
    estimates = (
        ',\n  "estimated_energy_kcal_100g": [numero], "estimated_proteins_100g": [numero],'
        ' "estimated_carbs_100g": [numero], "estimated_fats_100g": [numero]'
        if missing_table
        else ""
    )
    parts.append(
        "\nJSON:\n"
        "{\n"
        '  "healthScore": [numero 1-100],\n'
        f'  "sustainabilityScore": [{sustainability_score}],\n'
        '  "analysis": "[max 2 frasi]",\n'
        '  "sustainabilityAnalysis": "[max 2 frasi o vuoto]",\n'
        '  "pros": [{"title": "...", "detail": "..."}],\n'
        '  "cons": [{"title": "...", "detail": "..."}],\n'
        '  "neutrals": [{"title": "...", "detail": "..."}],\n'
        '  "recommendations": ["max 2 consigli"],\n'
        '  "sustainabilityPros": [],\n'
        '  "sustainabilityCons": [],\n'
        '  "sustainabilityNeutrals": [],\n'
        '  "sustainabilityRecommendations": [],\n'
        '  "suggestedPortionGrams": [numero intero]'
        f"{estimates}\n"
        "}"
    )
    return "".join(parts)


def build_photo_prompt(
    image: ImageSourceData, profile: Optional[UserProfile] = None
) -> str:
    """
    Build user message for photo (vision) analysis.

    The image itself travels as a separate content part; only the hint is
    embedded here.

    Args:
        image: Image payload (hint used for context)
        profile: Optional user profile for personalisation

    Returns:
        Prompt asking for health analysis + calorie estimation JSON
    """
    hint = image.hint.strip() if image.hint and image.hint.strip() else "cibo nella foto"
    return (
        f"{build_user_profile_block(profile)}"
        f"ANALISI VISIVA CIBO: {hint}\n\n"
        "Identifica il cibo, stima la composizione nutrizionale e valuta il processamento visibile (NOVA).\n"
        "SOSTENIBILITÀ: non disponibile per analisi foto, sustainabilityScore = 0 e array vuoti.\n\n"
        "TIPOLOGIA - DETERMINA CORRETTAMENTE:\n\n"
        "PASTO (piatti cucinati, fatti in casa, preparati dal vivo):\n"
        '- "calorie_estimation_type": "breakdown"\n'
        '- "ingredients_breakdown": un elemento per ingrediente, con id numerico progressivo\n'
        "- Pesi realistici (pasta ~180g, carne 100-150g, formaggio grattugiato 10-20g, olio 5-15g)\n"
        "- Non dimenticare olio di cottura, burro e condimenti visibili\n"
        '- "calories_estimate": "Totale: ~[numero] kcal"\n'
        "- Nomi ingredienti puliti, senza peso nel nome (il peso va in estimated_weight_g)\n\n"
        "PRODOTTO CONFEZIONATO (marca, confezione, etichetta visibile):\n"
        '- "calorie_estimation_type": "per_100g"\n'
        '- NON includere "ingredients_breakdown"\n'
        '- Includi "estimated_energy_kcal_100g", "estimated_proteins_100g", '
        '"estimated_carbs_100g", "estimated_fats_100g"\n'
        '- "calories_estimate": "~[numero] kcal per 100g"\n\n'
        "REGOLA: se vedi una MARCA è un prodotto confezionato, NON un pasto.\n\n"
        "JSON PER PASTI:\n"
        "{\n"
        '  "productNameFromVision": "Pasta al pomodoro",\n'
        '  "brandFromVision": null,\n'
        '  "healthScore": [numero 1-100],\n'
        '  "analysis": "[max 2 frasi]",\n'
        '  "pros": [{"title": "...", "detail": "..."}],\n'
        '  "cons": [{"title": "...", "detail": "..."}],\n'
        '  "neutrals": [{"title": "...", "detail": "..."}],\n'
        '  "calorie_estimation_type": "breakdown",\n'
        '  "ingredients_breakdown": [\n'
        '    {"id": 1, "name": "Pasta", "estimated_weight_g": 125, "estimated_calories_kcal": 135,'
        ' "estimated_proteins_g": 4.5, "estimated_carbs_g": 27, "estimated_fats_g": 1.1},\n'
        '    {"id": 2, "name": "Pomodoro", "estimated_weight_g": 80, "estimated_calories_kcal": 14,'
        ' "estimated_proteins_g": 0.9, "estimated_carbs_g": 2.7, "estimated_fats_g": 0.2},\n'
        '    {"id": 3, "name": "Olio oliva", "estimated_weight_g": 8, "estimated_calories_kcal": 72,'
        ' "estimated_proteins_g": 0, "estimated_carbs_g": 0, "estimated_fats_g": 8}\n'
        "  ],\n"
        '  "calories_estimate": "Totale: ~221 kcal",\n'
        '  "suggestedPortionGrams": [numero intero],\n'
        '  "sustainabilityScore": 0\n'
        "}\n\n"
        "JSON PER PRODOTTI CONFEZIONATI:\n"
        "{\n"
        '  "productNameFromVision": "[nome]",\n'
        '  "brandFromVision": "[marca]",\n'
        '  "healthScore": [numero 1-100],\n'
        '  "analysis": "[max 2 frasi]",\n'
        '  "pros": [], "cons": [], "neutrals": [],\n'
        '  "calorie_estimation_type": "per_100g",\n'
        '  "estimated_energy_kcal_100g": 450, "estimated_proteins_100g": 6.5,'
        ' "estimated_carbs_100g": 68, "estimated_fats_100g": 17,\n'
        '  "calories_estimate": "~450 kcal per 100g",\n'
        '  "sustainabilityScore": 0\n'
        "}"
    )


def build_single_ingredient_prompt(name: str, weight_g: Optional[float] = None) -> str:
    """
    Build user message for a single ingredient estimate.

    Args:
        name: Ingredient name as typed by the user
        weight_g: Weight in grams, None (or <=0) for an average portion

    Example:
        >>> prompt = build_single_ingredient_prompt("mela", None)
        >>> assert "porzione media" in prompt
    """
    if weight_g is not None and weight_g > 0:
        weight_text = f"per un peso di {weight_g:g} grammi"
    else:
        weight_text = (
            "per una porzione media (se non riesci a stimare una porzione media specifica "
            "per questo ingrediente, considera un peso generico di 100g per la stima nutrizionale)"
        )
    return (
        f'INGREDIENTE: "{name.strip()}"\n'
        f"PESO: {weight_text}\n\n"
        "JSON:\n"
        "{\n"
        '  "corrected_name": "[nome corretto e specifico]",\n'
        '  "estimated_calories_kcal": [numero intero o null],\n'
        '  "estimated_proteins_g": [numero con 1 decimale o null],\n'
        '  "estimated_carbs_g": [numero con 1 decimale o null],\n'
        '  "estimated_fats_g": [numero con 1 decimale o null],\n'
        '  "error_message": "[vuoto se OK, descrivi il problema se presente]"\n'
        "}"
    )


def build_analysis_prompt(
    source: SourceData, mode: AnalysisMode, profile: Optional[UserProfile] = None
) -> str:
    """
    Build the mode-specific analysis prompt.

    Raises:
        ValidationError: If source data does not match the mode
    """
    if mode == AnalysisMode.TEXT:
        if not isinstance(source, ProductSourceData):
            raise ValidationError("Text analysis requires ProductSourceData")
        return build_product_prompt(source, profile)
    if not isinstance(source, ImageSourceData):
        raise ValidationError("Photo analysis requires ImageSourceData")
    return build_photo_prompt(source, profile)
