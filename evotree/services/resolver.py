# evotree/services/resolver.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..clients import gbif
from .names import is_likely_scientific_name, build_common_name_variants
from .scoring import pick_best_search_key, pick_exact_scientific_key
from .aliases import AliasCache, pick_best_common_name_key

log = logging.getLogger(__name__)

# --------------------- Constantes del servicio remoto ---------------------
ANIMALIA_KINGDOM_KEY = 1
VERNACULAR_SEARCH_LIMIT = 100
SCIENTIFIC_SEARCH_LIMIT = 50
BROAD_SEARCH_LIMIT = 100

# Atajos deterministas para palabras comunes muy ambiguas
COMMON_NAME_OVERRIDES: Dict[str, str] = {
    "cat": "Felis catus",
    "cats": "Felis catus",
    "dog": "Canis lupus familiaris",
    "dogs": "Canis lupus familiaris",
}

def _results(payload: Any) -> List[dict]:
    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        return payload["results"]
    return []

class SpeciesResolver:
    """
    Resuelve un nombre libre (científico o común) a una clave de taxón.

    Etapas, en orden, cortando en la primera que devuelve clave:
      1) override determinista ("cat" -> "Felis catus")
      2) ruta científica: match directo -> búsqueda SPECIES/ACCEPTED -> búsqueda amplia
      3) ruta común: variantes x búsqueda vernácula (Animalia, luego sin reino)
         con enriquecimiento de alias
      4) búsqueda amplia por el texto crudo con ponderación "animal común"
    Devuelve None si todo se agota. RemoteServiceError se propaga.
    """

    def __init__(self, client=None, alias_cache: Optional[AliasCache] = None):
        self.client = client or gbif
        self.alias_cache = alias_cache if alias_cache is not None else AliasCache()

    async def resolve(self, raw_name: str):
        value = (raw_name or "").strip()
        if not value:
            return None

        override = COMMON_NAME_OVERRIDES.get(value.lower())
        if override:
            if log.isEnabledFor(logging.DEBUG):
                log.debug("Override %r -> %r", value, override)
            return await self.resolve_scientific_name(override)

        if is_likely_scientific_name(value):
            return await self.resolve_scientific_name(value)

        key = await self.resolve_common_name(value)
        if key:
            return key

        key = await self._broad_fallback(value)
        if not key:
            # sin fallback léxico sin puntaje: se prefiere "no encontrado" a un falso positivo
            log.info("Sin resultados para %r", value)
        return key

    # ---------------- Ruta científica ----------------
    async def resolve_scientific_name(self, scientific_name: str):
        m = await self.client.species_match(scientific_name) or {}
        direct = m.get("speciesKey") or m.get("acceptedUsageKey")
        if direct:
            return direct

        narrow = await self.client.species_search(
            scientific_name, rank="SPECIES", status="ACCEPTED", limit=SCIENTIFIC_SEARCH_LIMIT
        )
        key = pick_exact_scientific_key(_results(narrow), scientific_name)
        if key:
            return key

        broad = await self.client.species_search(scientific_name, limit=SCIENTIFIC_SEARCH_LIMIT)
        return pick_exact_scientific_key(_results(broad), scientific_name)

    # ---------------- Ruta nombre común ----------------
    async def _vernacular_candidates(self, variants: List[str], animals_only: bool) -> List[dict]:
        """Unión por clave (primera aparición gana) de las búsquedas por variante."""
        by_key: Dict[Any, dict] = {}
        for variant in variants:
            payload = await self.client.species_search(
                variant,
                q_field="VERNACULAR",
                rank="SPECIES",
                status="ACCEPTED",
                kingdom_key=ANIMALIA_KINGDOM_KEY if animals_only else None,
                limit=VERNACULAR_SEARCH_LIMIT,
            )
            for item in _results(payload):
                k = item.get("key") if isinstance(item, dict) else None
                if k and k not in by_key:
                    by_key[k] = item
        return list(by_key.values())

    async def resolve_common_name(self, value: str):
        variants = build_common_name_variants(value)
        if not variants:
            return None

        for animals_only in (True, False):
            candidates = await self._vernacular_candidates(variants, animals_only)
            key = await pick_best_common_name_key(self.client, candidates, variants, self.alias_cache)
            if key:
                return key
        return None

    # ---------------- Fallback amplio ----------------
    async def _broad_fallback(self, value: str):
        for kingdom_key in (ANIMALIA_KINGDOM_KEY, None):
            payload = await self.client.species_search(
                value,
                rank="SPECIES",
                status="ACCEPTED",
                kingdom_key=kingdom_key,
                limit=BROAD_SEARCH_LIMIT,
            )
            key = pick_best_search_key(_results(payload), value, prefer_common_animal_match=True)
            if key:
                return key
        return None
