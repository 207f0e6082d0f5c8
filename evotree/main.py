from __future__ import annotations

# ------------------------------------------------------------
# Importaciones estándar y de terceros
# ------------------------------------------------------------
import os, logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Depends, Query, HTTPException, Security, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security.api_key import APIKeyHeader

# ------------------------------------------------------------
# Importaciones internas del proyecto
# ------------------------------------------------------------
from .db import SessionLocal, engine
from .models import Base
from .schemas import (
    ResolverOut, LinajeOut, ArbolOut, VistaPreviaIn, VistaPreviaOut, ConfirmarOut,
)
from .errors import RemoteServiceError
from .clients import gbif
from .diagnostics import check_gbif, check_store
from .services.resolver import SpeciesResolver
from .services.lineage import fetch_lineage
from .services.store import SqlKeyValueStore, TreeStore
from .services.tree import count_species, tree_depth
from .services.workspace import TreeWorkspace

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

NOT_FOUND_MSG = "Especie no encontrada. Intenta con el nombre científico (por ejemplo: Panthera leo)."
REMOTE_FAIL_MSG = "No se pudo consultar el servicio taxonómico. Intenta de nuevo más tarde."

# ------------------------------------------------------------
# Metadatos de tags para la documentación
# ------------------------------------------------------------
TAGS_METADATA = [
    {"name": "Salud", "description": "Verificación del servicio y del conector GBIF."},
    {"name": "Taxonomía", "description": "Resolución de nombres (científicos o comunes) y linajes."},
    {"name": "Árbol", "description": "Vista previa, confirmación y limpieza del árbol de la vida."},
]

app = FastAPI(
    title="Árbol de la vida (EvoTree)",
    description="Resuelve nombres de especies contra GBIF y los integra en un árbol taxonómico persistente.",
    version="0.1.0",
    openapi_tags=TAGS_METADATA,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ------------------------------------------------------------
# Inicializa tablas si no existen
# ------------------------------------------------------------
Base.metadata.create_all(bind=engine)

# ------------------------------------------------------------
# Seguridad por API Key (opcional)
# ------------------------------------------------------------
API_KEY = os.getenv("API_KEY")
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

async def require_key(api_key: str = Security(api_key_header)):
    if not API_KEY:
        return True
    if api_key == API_KEY:
        return True
    raise HTTPException(status_code=401, detail="API key inválida")

# ------------------------------------------------------------
# Workspace global (un único escritor del árbol por proceso)
# ------------------------------------------------------------
_workspace: Optional[TreeWorkspace] = None

def build_workspace() -> TreeWorkspace:
    ws = TreeWorkspace(SpeciesResolver(), TreeStore(SqlKeyValueStore(SessionLocal)))
    ws.load()
    return ws

def get_workspace() -> TreeWorkspace:
    global _workspace
    if _workspace is None:
        _workspace = build_workspace()
    return _workspace

@app.on_event("startup")
async def _startup():
    get_workspace()

# ---------------- Salud ----------------
@app.get("/health", tags=["Salud"])
async def health():
    return {"status": "ok"}

@app.get("/debug/gbif", tags=["Salud"], dependencies=[Depends(require_key)])
async def debug_gbif():
    return await check_gbif()

@app.get("/debug/almacen", tags=["Salud"], dependencies=[Depends(require_key)])
async def debug_almacen(ws: TreeWorkspace = Depends(get_workspace)):
    return check_store(ws.store.kv, ws.store.key)

# ---------------- Resolución ----------------
@app.get("/resolver", response_model=ResolverOut, tags=["Taxonomía"])
async def resolver(
    q: str = Query(..., description="Nombre científico o común, p. ej., 'Panthera leo' o 'lion'"),
    ws: TreeWorkspace = Depends(get_workspace),
):
    try:
        key = await ws.resolver.resolve(q)
    except RemoteServiceError as e:
        log.error("Resolución falló para %r: %s", q, e)
        raise HTTPException(status_code=502, detail=REMOTE_FAIL_MSG)
    if not key:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MSG)
    return ResolverOut(consulta=q, clave=key)

@app.get("/linaje/{clave}", response_model=LinajeOut, tags=["Taxonomía"])
async def linaje(clave: int, ws: TreeWorkspace = Depends(get_workspace)):
    try:
        path = await fetch_lineage(clave, ws.resolver.client)
    except RemoteServiceError as e:
        log.error("Linaje falló para %s: %s", clave, e)
        raise HTTPException(status_code=502, detail=REMOTE_FAIL_MSG)
    return LinajeOut(clave=clave, linaje=path)

# ---------------- Árbol ----------------
@app.get("/arbol", response_model=ArbolOut, tags=["Árbol"])
async def arbol(ws: TreeWorkspace = Depends(get_workspace)):
    return ArbolOut(
        arbol=ws.main_tree,
        especies=count_species(ws.main_tree),
        profundidad=tree_depth(ws.main_tree),
    )

@app.post("/arbol/vista-previa", response_model=VistaPreviaOut, tags=["Árbol"])
async def vista_previa(
    payload: VistaPreviaIn = Body(...),
    ws: TreeWorkspace = Depends(get_workspace),
):
    try:
        res = await ws.preview(payload.nombre)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteServiceError as e:
        log.error("Vista previa falló para %r: %s", payload.nombre, e)
        raise HTTPException(status_code=502, detail=REMOTE_FAIL_MSG)
    if res is None:
        raise HTTPException(status_code=404, detail=NOT_FOUND_MSG)
    return VistaPreviaOut(
        especie=res.matched_name,
        renombrado=res.renamed,
        mensaje=f"Vista previa como {res.matched_name}." if res.renamed else None,
        linaje=res.path,
        arbol=res.tree,
    )

@app.delete("/arbol/vista-previa", tags=["Árbol"])
async def limpiar_vista_previa(ws: TreeWorkspace = Depends(get_workspace)):
    ws.clear_preview()
    return {"status": "ok"}

@app.post("/arbol/confirmar", response_model=ConfirmarOut, tags=["Árbol"], dependencies=[Depends(require_key)])
async def confirmar(ws: TreeWorkspace = Depends(get_workspace)):
    added = ws.confirm()
    if not added:
        raise HTTPException(
            status_code=409,
            detail="Nada que agregar: primero genera una vista previa de una especie.",
        )
    return ConfirmarOut(
        agregado=added,
        mensaje=f"{added} fue agregada a tu árbol principal.",
        especies=count_species(ws.main_tree),
    )

@app.delete("/arbol", tags=["Árbol"], dependencies=[Depends(require_key)])
async def limpiar_arbol(ws: TreeWorkspace = Depends(get_workspace)):
    if not ws.clear_main():
        raise HTTPException(status_code=500, detail="No se pudo borrar el árbol guardado.")
    return {"status": "ok"}

# ------------------------------------------------------------
# Shutdown: guardar pendiente y liberar cliente HTTP
# ------------------------------------------------------------
@app.on_event("shutdown")
async def _shutdown():
    if _workspace is not None:
        await _workspace.flush()
    await gbif.close_http_client()

# ---------------- Main ----------------
if __name__ == "__main__":
    uvicorn.run("evotree.main:app", host="0.0.0.0", port=8000, reload=True)
