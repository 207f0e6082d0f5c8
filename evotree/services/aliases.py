# evotree/services/aliases.py
from __future__ import annotations

import os
import time
import asyncio
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple

from .names import normalize_name_text, is_english_like_language
from .scoring import (
    COMMON_NAME_MIN_SCORE,
    score_common_candidate,
    score_alias_list,
    usable_candidates,
)
from ..errors import EnrichmentLookupError

log = logging.getLogger(__name__)

VERNACULAR_PAGE_SIZE = 100
VERNACULAR_MAX_PAGES = 3
MAX_VERNACULAR_ENRICH_CANDIDATES = 8

# 0 = sin expiración
_DEFAULT_TTL = float(os.getenv("ALIAS_CACHE_TTL", "0"))
_DEFAULT_MAX = int(os.getenv("ALIAS_CACHE_MAX", "10000"))

# --------- Caché de alias por clave de taxón ---------
class AliasCache:
    """
    Mapa clave_taxón -> filas vernáculas. LRU simple con TTL opcional;
    el reloj es inyectable (tests).
    """

    def __init__(
        self,
        ttl: Optional[float] = _DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = _DEFAULT_MAX,
    ):
        self.ttl = ttl or None
        self.clock = clock
        self.max_entries = max_entries
        self._data: "OrderedDict[Any, Tuple[float, List[dict]]]" = OrderedDict()

    def get(self, key) -> Optional[List[dict]]:
        hit = self._data.get(key)
        if hit is None:
            return None
        stored_at, rows = hit
        if self.ttl is not None and self.clock() - stored_at > self.ttl:
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return rows

    def put(self, key, rows: List[dict]):
        self._data[key] = (self.clock(), rows)
        self._data.move_to_end(key)
        if len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def __contains__(self, key) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._data)

async def fetch_vernacular_aliases(client, key, cache: AliasCache) -> List[dict]:
    """
    Todas las filas vernáculas de un taxón (paginado: hasta 3 páginas de 100,
    corta con endOfRecords o página vacía). Resultado cacheado por clave.
    """
    if not key:
        return []

    cached = cache.get(key)
    if cached is not None:
        return cached

    rows: List[dict] = []
    offset = 0
    for _ in range(VERNACULAR_MAX_PAGES):
        data = await client.vernacular_names(key, limit=VERNACULAR_PAGE_SIZE, offset=offset) or {}
        page = data.get("results") if isinstance(data.get("results"), list) else []
        rows.extend(page)
        if data.get("endOfRecords") or not page:
            break
        offset += data.get("limit") or VERNACULAR_PAGE_SIZE

    cache.put(key, rows)
    return rows

def alias_pool(rows: List[dict]) -> List[str]:
    """Alias normalizados; se prefieren los de idioma inglés (o sin etiqueta) si existen."""
    preferred = [
        normalize_name_text(r.get("vernacularName"))
        for r in rows
        if isinstance(r, dict) and is_english_like_language(r.get("language"))
    ]
    preferred = [a for a in preferred if a]
    if preferred:
        return preferred
    fallback = [normalize_name_text(r.get("vernacularName")) for r in rows if isinstance(r, dict)]
    return [a for a in fallback if a]

async def _alias_bonus(client, key, variants: List[str], cache: AliasCache) -> int:
    try:
        rows = await fetch_vernacular_aliases(client, key, cache)
    except Exception as e:
        raise EnrichmentLookupError(key, e) from e
    return score_alias_list(alias_pool(rows), variants)

async def pick_best_common_name_key(
    client,
    results,
    variants: List[str],
    cache: AliasCache,
):
    """
    Puntaje base por variantes; los 8 mejores se enriquecen en paralelo con
    sus alias. Un lookup fallido deja el puntaje base. El ganador debe
    llegar a COMMON_NAME_MIN_SCORE.
    """
    usable = usable_candidates(results)
    if not usable:
        return None

    variants = [v for v in dict.fromkeys(normalize_name_text(v) for v in variants) if v]

    ranked: List[Dict[str, Any]] = sorted(
        ({"key": c["key"], "score": score_common_candidate(c, variants)} for c in usable),
        key=lambda x: x["score"],
        reverse=True,
    )
    top = ranked[:MAX_VERNACULAR_ENRICH_CANDIDATES]

    # join de ancho fijo: se espera a todos, los errores se capturan por tarea
    bonuses = await asyncio.gather(
        *(_alias_bonus(client, c["key"], variants, cache) for c in top),
        return_exceptions=True,
    )
    for cand, bonus in zip(top, bonuses):
        if isinstance(bonus, BaseException):
            if log.isEnabledFor(logging.DEBUG):
                log.debug("Enriquecimiento de alias omitido: %s", bonus)
            continue
        cand["score"] += bonus

    top.sort(key=lambda x: x["score"], reverse=True)
    winner = top[0]
    if log.isEnabledFor(logging.DEBUG):
        log.debug("alias winner=%s score=%s variants=%s", winner["key"], winner["score"], variants)
    return winner["key"] if winner["score"] >= COMMON_NAME_MIN_SCORE else None
