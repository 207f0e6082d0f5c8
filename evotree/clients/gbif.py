# evotree/clients/gbif.py
from __future__ import annotations

import os
import logging
from typing import Any, Dict, Optional

import httpx

from ._utils import _json_or_raise
from ..errors import RemoteServiceError

log = logging.getLogger(__name__)

BASE = os.getenv("GBIF_BASE_URL", "https://api.gbif.org/v1").rstrip("/")
TIMEOUT = float(os.getenv("GBIF_TIMEOUT", "30"))

_http_client: httpx.AsyncClient | None = None

def _get_http_client() -> httpx.AsyncClient:
    """Cliente httpx global con HTTP/2 y límites de pool (se crea perezosamente)."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            http2=True,
            timeout=TIMEOUT,
            headers={"Accept": "application/json"},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
            ),
        )
    return _http_client

async def close_http_client():
    """Llamar en el shutdown global para cerrar el pool."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None

async def fetch_json(path: str, params: dict | None = None) -> Any:
    """GET contra GBIF. Un solo intento; cualquier falla -> RemoteServiceError."""
    url = f"{BASE}{path}"
    # httpx serializa None como "", así que se omiten los filtros vacíos
    clean = {k: v for k, v in (params or {}).items() if v is not None}
    try:
        r = await _get_http_client().get(url, params=clean)
    except httpx.HTTPError as e:
        raise RemoteServiceError(url, f"{e.__class__.__name__}: {e}") from e
    if log.isEnabledFor(logging.DEBUG):
        log.debug("GBIF %s params=%s -> %s", path, clean, r.status_code)
    if r.status_code >= 400:
        raise RemoteServiceError(url, f"HTTP {r.status_code}")
    return _json_or_raise(r)

async def species_match(name: str) -> Dict[str, Any]:
    return await fetch_json("/species/match", {"name": name}) or {}

async def species_search(
    q: str,
    q_field: Optional[str] = None,
    rank: Optional[str] = None,
    status: Optional[str] = None,
    kingdom_key: Optional[int] = None,
    limit: int = 50,
) -> Dict[str, Any]:
    params = {
        "q": q,
        "qField": q_field,
        "rank": rank,
        "status": status,
        "kingdomKey": kingdom_key,
        "limit": limit,
    }
    return await fetch_json("/species/search", params) or {}

async def species_get(key: int) -> Dict[str, Any]:
    return await fetch_json(f"/species/{key}") or {}

async def vernacular_names(key: int, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
    return await fetch_json(f"/species/{key}/vernacularNames", {"limit": limit, "offset": offset}) or {}
