from __future__ import annotations

import json
import time
import httpx
import asyncio
from typing import Optional, Dict, Any

from .clients import gbif
from .errors import PersistenceError

TIMEOUT = 10.0
DEFAULT_HEADERS = {
    "User-Agent": "evotree/0.1 (+https://example.org)",
    "Accept": "application/json",
}
SAMPLE_NAME = "Panthera leo"

def _safe_text(obj: Any) -> str:
    try:
        s = str(obj)
    except UnicodeError:
        s = repr(obj)
    return s.encode("utf-8", errors="replace").decode("utf-8")

def _elapsed(t0: float) -> float:
    return round(time.perf_counter() - t0, 3)

async def _ping(url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """GET crudo con cliente propio (no usa el pool global)."""
    t0 = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=TIMEOUT, headers=DEFAULT_HEADERS, follow_redirects=True) as client:
            r = await client.get(url, params=params or {})
    except httpx.HTTPError as e:
        return {"status": "FALLA", "detalle": f"{e.__class__.__name__}: {_safe_text(e)}",
                "tiempo_seg": _elapsed(t0), "via": "http"}
    out = {"status": "OK" if r.status_code < 400 else "FALLA", "http": r.status_code,
           "tiempo_seg": _elapsed(t0), "via": "http"}
    if r.status_code >= 400:
        out["body"] = _safe_text(r.text)[:300]
    return out

# ---- GBIF: vía cliente, con fallback a ping crudo
async def check_gbif() -> Dict[str, Any]:
    t0 = time.perf_counter()
    try:
        r = await gbif.species_match(SAMPLE_NAME)
    except Exception as e:
        fb = await _ping(f"{gbif.BASE}/species/match", {"name": SAMPLE_NAME})
        fb["error_client"] = _safe_text(e)
        return fb
    return {
        "status": "OK" if r.get("usageKey") else "FALLA",
        "via": "client",
        "sample": SAMPLE_NAME,
        "clave": r.get("usageKey"),
        "tiempo_seg": _elapsed(t0),
    }

# ---- Almacén del árbol (lectura sin modificar)
def check_store(kv, key: str) -> Dict[str, Any]:
    t0 = time.perf_counter()
    try:
        raw = kv.get(key)
    except PersistenceError as e:
        return {"status": "FALLA", "detalle": _safe_text(e), "tiempo_seg": _elapsed(t0)}
    return {"status": "OK", "clave": key, "bytes": len(raw or b""), "tiempo_seg": _elapsed(t0)}

async def _main() -> Dict[str, Any]:
    from .db import SessionLocal
    from .services.store import MAIN_TREE_KEY, SqlKeyValueStore
    try:
        return {
            "gbif": await check_gbif(),
            "almacen": check_store(SqlKeyValueStore(SessionLocal), MAIN_TREE_KEY),
        }
    finally:
        await gbif.close_http_client()

if __name__ == "__main__":
    out = asyncio.run(_main())
    print(json.dumps(out, ensure_ascii=False, indent=2))
