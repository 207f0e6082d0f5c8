from __future__ import annotations

import os
import tempfile

# evotree.db exige DATABASE_URL al importarse
_TMP_DIR = tempfile.mkdtemp(prefix="evotree-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'evotree.db')}"
os.environ.pop("API_KEY", None)

from typing import Any, Callable, Dict, List, Optional

import pytest

from evotree.errors import PersistenceError


class FakeGbif:
    """Doble en memoria de evotree.clients.gbif; registra cada llamada."""

    def __init__(
        self,
        matches: Optional[Dict[str, dict]] = None,
        searches: Optional[Dict[tuple, List[dict]]] = None,
        taxa: Optional[Dict[Any, dict]] = None,
        vernaculars: Optional[Dict[Any, Any]] = None,
    ):
        self.matches = matches or {}
        # (q, q_field, kingdom_key[, rank, status]) -> results; la clave de 5 gana
        self.searches = searches or {}
        self.taxa = taxa or {}
        # key -> lista de filas | Exception | callable(offset) -> payload
        self.vernaculars = vernaculars or {}
        self.calls: List[tuple] = []

    async def species_match(self, name: str) -> dict:
        self.calls.append(("match", name))
        return self.matches.get(name, {"matchType": "NONE"})

    async def species_search(self, q, q_field=None, rank=None, status=None, kingdom_key=None, limit=50) -> dict:
        self.calls.append(("search", q, q_field, rank, status, kingdom_key))
        hit = self.searches.get((q, q_field, kingdom_key, rank, status))
        if hit is None:
            hit = self.searches.get((q, q_field, kingdom_key), [])
        return {"results": list(hit)}

    async def species_get(self, key) -> dict:
        self.calls.append(("get", key))
        return self.taxa[key]

    async def vernacular_names(self, key, limit=100, offset=0) -> dict:
        self.calls.append(("vernacular", key, offset))
        entry = self.vernaculars.get(key, [])
        if isinstance(entry, Exception):
            raise entry
        if callable(entry):
            return entry(offset)
        return {"results": list(entry), "endOfRecords": True, "limit": limit}

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)


class MemoryKV:
    """Almacén clave-valor en memoria con el contrato de SqlKeyValueStore."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, bytes] = {}
        self.fail = fail
        self.sets = 0

    def get(self, key):
        if self.fail:
            raise PersistenceError("get caído")
        return self.data.get(key)

    def set(self, key, value):
        if self.fail:
            raise PersistenceError("set caído")
        self.sets += 1
        self.data[key] = value

    def delete(self, key):
        if self.fail:
            raise PersistenceError("delete caído")
        self.data.pop(key, None)


def _species(key, canonical, vernacular=None, kingdom="Animalia", rank="SPECIES", status="ACCEPTED", parent=1, **extra):
    d = {
        "key": key,
        "canonicalName": canonical,
        "scientificName": extra.pop("scientificName", canonical),
        "rank": rank,
        "status": status,
        "kingdom": kingdom,
        "parentKey": parent,
    }
    if vernacular is not None:
        d["vernacularName"] = vernacular
    d.update(extra)
    return d


# Cadena real abreviada de Panthera leo en el backbone (con un rango intermedio que se filtra)
LION_TAXA = {
    5219404: {"key": 5219404, "canonicalName": "Panthera leo", "scientificName": "Panthera leo (Linnaeus, 1758)",
              "rank": "SPECIES", "vernacularName": "Lion", "parentKey": 5219397},
    5219397: {"key": 5219397, "canonicalName": "Panthera", "rank": "GENUS", "parentKey": 6164},
    6164: {"key": 6164, "canonicalName": "Pantherinae", "rank": "SUBFAMILY", "parentKey": 9703},
    9703: {"key": 9703, "canonicalName": "Felidae", "rank": "FAMILY", "parentKey": 732},
    732: {"key": 732, "canonicalName": "Carnivora", "rank": "ORDER", "parentKey": 359},
    359: {"key": 359, "canonicalName": "Mammalia", "rank": "CLASS", "parentKey": 44},
    44: {"key": 44, "canonicalName": "Chordata", "rank": "PHYLUM", "parentKey": 1},
    1: {"key": 1, "canonicalName": "Animalia", "rank": "KINGDOM"},
}

CAT_TAXA = {
    2435035: {"key": 2435035, "canonicalName": "Felis catus", "rank": "SPECIES",
              "vernacularName": "Domestic Cat", "parentKey": 2435022},
    2435022: {"key": 2435022, "canonicalName": "Felis", "rank": "GENUS", "parentKey": 9703},
    9703: LION_TAXA[9703],
    732: LION_TAXA[732],
    359: LION_TAXA[359],
    44: LION_TAXA[44],
    1: LION_TAXA[1],
}


@pytest.fixture
def species() -> Callable[..., dict]:
    return _species


@pytest.fixture
def lion_gbif() -> FakeGbif:
    taxa = dict(LION_TAXA)
    taxa.update(CAT_TAXA)
    return FakeGbif(
        matches={
            "Panthera leo": {"usageKey": 5219404, "speciesKey": 5219404, "matchType": "EXACT"},
            "Felis catus": {"usageKey": 2435035, "speciesKey": 2435035, "matchType": "EXACT"},
        },
        taxa=taxa,
    )


@pytest.fixture
def memory_kv() -> MemoryKV:
    return MemoryKV()
