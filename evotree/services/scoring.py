# evotree/services/scoring.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .names import (
    normalize_name_text,
    has_vernacular_token_match,
)

log = logging.getLogger(__name__)

# Umbral mínimo para aceptar un match por nombre común
COMMON_NAME_MIN_SCORE = 90

RANK_PRIORITY: Dict[str, int] = {
    "SPECIES": 0,
    "SUBSPECIES": 1,
    "VARIETY": 2,
    "FORM": 3,
    "GENUS": 4,
    "FAMILY": 5,
    "ORDER": 6,
    "CLASS": 7,
    "PHYLUM": 8,
    "KINGDOM": 9,
}
DEFAULT_RANK_PRIORITY = 20

# --------------------- Términos comunes ---------------------
def _base_terms(candidate: Dict[str, Any]) -> int:
    """rango + estatus + linaje."""
    rank = str(candidate.get("rank") or "").upper()
    rank_score = 30 - RANK_PRIORITY.get(rank, DEFAULT_RANK_PRIORITY)
    status_score = 25 if candidate.get("status") == "ACCEPTED" else 0
    lineage_score = 10 if candidate.get("parentKey") else 0
    return rank_score + status_score + lineage_score

def _kingdom_term(candidate: Dict[str, Any]) -> int:
    return 70 if str(candidate.get("kingdom") or "").lower() == "animalia" else -60

def usable_candidates(results: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Solo resultados con key."""
    return [r for r in (results or []) if isinstance(r, dict) and r.get("key")]

# --------------------- Puntaje por consulta única ---------------------
def score_search_candidate(
    candidate: Dict[str, Any],
    query: str,
    prefer_common_animal_match: bool = False,
) -> int:
    q = (query or "").lower()
    canonical = str(candidate.get("canonicalName") or "").lower()
    scientific = str(candidate.get("scientificName") or "").lower()
    vernacular = str(candidate.get("vernacularName") or "").lower()

    text_score = 0
    if canonical == q or vernacular == q:
        text_score = 35
    elif q in canonical or q in scientific or q in vernacular:
        text_score = 15

    total = _base_terms(candidate) + text_score

    if prefer_common_animal_match:
        if vernacular == q:
            total += 140
        elif q in vernacular:
            total += 80

        total += _kingdom_term(candidate)

        # nombres cortos deben coincidir en el vernáculo, no en fragmentos latinos
        if len(q) <= 4 and not has_vernacular_token_match(vernacular, q):
            total -= 220

        # p. ej. "cat" dentro de un nombre latino cualquiera
        if len(q) <= 4 and vernacular != q and q in canonical:
            total -= 80

    return total

def pick_best_search_key(
    results: Optional[Iterable[Dict[str, Any]]],
    query: str,
    prefer_common_animal_match: bool = False,
):
    """
    Ordena por puntaje. En modo "animal común" el primero debe llegar a
    COMMON_NAME_MIN_SCORE; si no, se rechaza todo el conjunto.
    """
    usable = usable_candidates(results)
    if not usable:
        return None

    ranked = sorted(
        ((score_search_candidate(c, query, prefer_common_animal_match), c["key"]) for c in usable),
        key=lambda x: x[0],
        reverse=True,
    )
    top_score, top_key = ranked[0]
    if log.isEnabledFor(logging.DEBUG):
        log.debug("pick_best_search_key q=%r top=%s score=%s (n=%d)", query, top_key, top_score, len(ranked))

    if prefer_common_animal_match and top_score < COMMON_NAME_MIN_SCORE:
        return None
    return top_key

# --------------------- Puntaje por conjunto de variantes ---------------------
def score_common_candidate(candidate: Dict[str, Any], variants: Iterable[str]) -> int:
    variant_set = [v for v in dict.fromkeys(normalize_name_text(v) for v in variants) if v]
    vernacular = normalize_name_text(candidate.get("vernacularName"))
    canonical = normalize_name_text(candidate.get("canonicalName"))
    scientific = normalize_name_text(candidate.get("scientificName"))

    text_score = 0
    if vernacular and vernacular in variant_set:
        text_score = 180
    elif any(vernacular.startswith(f"{v} ") or vernacular.endswith(f" {v}") for v in variant_set):
        text_score = 95
    elif any(f" {v} " in vernacular for v in variant_set):
        text_score = 70
    elif any(canonical == v or scientific.startswith(v) for v in variant_set):
        text_score = 15

    total = text_score + _base_terms(candidate) + _kingdom_term(candidate)

    query_is_short = any(len(v) <= 4 for v in variant_set)
    if query_is_short and not any(has_vernacular_token_match(vernacular, v) for v in variant_set):
        total -= 220

    return total

def score_alias_list(aliases: List[str], variants: List[str]) -> int:
    """+250 exacto, +120 token, +75 subcadena (variantes > 4 chars), 0 si nada."""
    if not aliases or not variants:
        return 0

    alias_set = set(aliases)
    if any(v in alias_set for v in variants):
        return 250

    if any(has_vernacular_token_match(a, v) for v in variants for a in aliases):
        return 120

    long_variants = [v for v in variants if len(v) > 4]
    if any(v in a for v in long_variants for a in aliases):
        return 75

    return 0

# --------------------- Selección por nombre científico ---------------------
def pick_exact_scientific_key(results: Optional[Iterable[Dict[str, Any]]], scientific_name: str):
    """canónico exacto > prefijo del científico > primer resultado."""
    target = (scientific_name or "").lower()
    usable = usable_candidates(results)
    if not usable:
        return None

    for c in usable:
        if str(c.get("canonicalName") or "").lower() == target:
            return c["key"]

    for c in usable:
        if str(c.get("scientificName") or "").lower().startswith(target):
            return c["key"]

    return usable[0]["key"]
