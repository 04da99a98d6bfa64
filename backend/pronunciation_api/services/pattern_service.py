import json
import logging
from typing import Tuple

from ..models_api.schemas import PatternEntry, PatternMatch, PatternTables

logger = logging.getLogger(__name__)

# Used when the pattern document is missing or malformed
DEFAULT_PATTERN_TABLES = PatternTables(
    tensification=(
        PatternEntry(pattern="만나서 반갑습니다", correct="만나서 빤갑습니다"),
        PatternEntry(pattern="반갑습니다", correct="빤갑습니다"),
    ),
    h_liaison=(
        PatternEntry(pattern="좋은", correct="조은"),
        PatternEntry(pattern="하루", correct="아루"),
    ),
    vowel_confusion=(
        PatternEntry(pattern="여보세여", correct="여보세요", incorrect="여보세여"),
    ),
)

# "좋은 하루" chains ㅎ liaison (좋은 → 조은) and ㅎ weakening (하루 → 아루)
COMBINED_H_PHRASES = ("좋은 하루", "좋은하루")
COMBINED_H_ENTRY = PatternEntry(
    pattern="좋은 하루",
    correct="조은 아루",
    romanized="Jo-eun a-ru bo-nae-se-yo",
    rule="ㅎ Liaison and Weakening",
    explanation='"좋은" (\'ㅎ\' liaison) → "조은"\n"하루" (\'ㅎ\' weakening) → "아루"',
)


def load_pattern_tables(path: str) -> PatternTables:
    """
    Loads the tensification / ㅎ liaison / vowel confusion tables.

    Never raises: a missing or malformed document falls back to DEFAULT_PATTERN_TABLES.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and data.get("vowelConfusionPatterns") is None:
            # The vowel confusion table is optional; null counts as empty
            data = {**data, "vowelConfusionPatterns": []}
        tables = PatternTables.model_validate(data)
        if "tensificationPatterns" not in data or "hLiaisonPatterns" not in data:
            raise ValueError("document lacks tensificationPatterns or hLiaisonPatterns")
    except Exception as e:
        logger.warning(f"Error loading pronunciation patterns from {path}: {e}. Using built-in defaults.")
        return DEFAULT_PATTERN_TABLES

    logger.info(
        f"Loaded pronunciation patterns: {len(tables.tensification)} tensification, "
        f"{len(tables.h_liaison)} ㅎ liaison, {len(tables.vowel_confusion)} vowel confusion"
    )
    return tables


def _find(text: str, table: Tuple[PatternEntry, ...]) -> Tuple[PatternEntry, ...]:
    return tuple(entry for entry in table if entry.pattern and entry.pattern in text)


def match_patterns(text: str, tables: PatternTables) -> PatternMatch:
    """
    Checks the tables in priority order and returns every hit of the first table that matches.

    Tensification beats ㅎ liaison, which beats vowel confusion. The combined
    "좋은 하루" phrase is checked ahead of the generic ㅎ liaison table.
    """
    matches = _find(text, tables.tensification)
    if matches:
        return PatternMatch(pattern_type="tensification", matches=matches)

    if any(phrase in text for phrase in COMBINED_H_PHRASES):
        return PatternMatch(pattern_type="h_liaison", matches=(COMBINED_H_ENTRY,), special_case=True)

    matches = _find(text, tables.h_liaison)
    if matches:
        return PatternMatch(pattern_type="h_liaison", matches=matches)

    matches = _find(text, tables.vowel_confusion)
    if matches:
        return PatternMatch(pattern_type="vowel_confusion", matches=matches)

    return PatternMatch()
