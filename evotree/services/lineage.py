# evotree/services/lineage.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..clients import gbif
from .names import normalize_name_text

log = logging.getLogger(__name__)

MAIN_TAXONOMY_RANK_ORDER = [
    "DOMAIN",
    "KINGDOM",
    "PHYLUM",
    "CLASS",
    "ORDER",
    "FAMILY",
    "GENUS",
    "SPECIES",
]
MAIN_TAXONOMY_RANK_SET = set(MAIN_TAXONOMY_RANK_ORDER)

# --- Mapa reino -> dominio (GBIF no publica el rango DOMAIN) ---
DOMAIN_BY_KINGDOM_NAME: Dict[str, str] = {
    "animalia": "Eukaryota",
    "fungi": "Eukaryota",
    "plantae": "Eukaryota",
    "chromista": "Eukaryota",
    "protista": "Eukaryota",
    "protozoa": "Eukaryota",
    "bacteria": "Bacteria",
    "archaea": "Archaea",
}

def infer_domain(kingdom_name: Optional[str]) -> Optional[str]:
    return DOMAIN_BY_KINGDOM_NAME.get(normalize_name_text(kingdom_name))

def keep_main_taxonomy_ranks(path: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Filtra a los 8 rangos principales (primer nodo por rango), infiere el
    dominio desde el reino si falta y reordena DOMAIN..SPECIES.
    """
    by_rank: Dict[str, Dict[str, Any]] = {}
    for node in path or []:
        rank = str(node.get("rank") or "").upper()
        if rank in MAIN_TAXONOMY_RANK_SET and rank not in by_rank:
            by_rank[rank] = node

    if "DOMAIN" not in by_rank:
        domain = infer_domain((by_rank.get("KINGDOM") or {}).get("name"))
        if domain:
            by_rank["DOMAIN"] = {
                "name": domain,
                "rank": "DOMAIN",
                "key": f"inferred-domain-{normalize_name_text(domain)}",
            }

    return [by_rank[r] for r in MAIN_TAXONOMY_RANK_ORDER if r in by_rank]

async def fetch_lineage(key, client=None) -> List[Dict[str, Any]]:
    """
    Sube por parentKey desde la clave resuelta hasta la raíz, armando
    [{name, rank, key, commonName?}] y luego filtra con keep_main_taxonomy_ranks.
    Errores remotos se propagan.
    """
    client = client or gbif
    path: List[Dict[str, Any]] = []
    current = key
    seen = set()
    species_seen = False

    while current and current not in seen:
        seen.add(current)
        data = await client.species_get(current) or {}
        rank = str(data.get("rank") or "").upper()

        node: Dict[str, Any] = {
            "name": data.get("canonicalName") or data.get("scientificName") or "Unknown",
            "rank": rank,
            "key": current,
        }
        # solo el primer registro de rango SPECIES aporta nombre común
        if rank == "SPECIES" and not species_seen:
            species_seen = True
            if data.get("vernacularName"):
                node["commonName"] = data["vernacularName"]
        path.insert(0, node)

        current = data.get("parentKey")

    if log.isEnabledFor(logging.DEBUG):
        log.debug("Cadena cruda para %s: %s", key, [(n["rank"], n["name"]) for n in path])
    return keep_main_taxonomy_ranks(path)
