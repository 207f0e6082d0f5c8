import os, sys, logging
import pandas as pd
from evotree.db import SessionLocal, engine
from evotree.models import Base
from evotree.errors import RemoteServiceError
from evotree.clients import gbif
from evotree.services.resolver import SpeciesResolver
from evotree.services.lineage import fetch_lineage, MAIN_TAXONOMY_RANK_ORDER
from evotree.services.store import SqlKeyValueStore, TreeStore
from evotree.services.tree import create_empty_tree, merge_into_tree, count_species

log = logging.getLogger("etl.build_tree_file")

NAME_COLUMNS = ("nombre", "name", "scientific_name", "nombre_cientifico")

def _pick_column(df: pd.DataFrame) -> str:
    cols = {str(c).strip().lower(): c for c in df.columns}
    for c in NAME_COLUMNS:
        if c in cols:
            return cols[c]
    raise ValueError("El archivo debe tener una columna 'nombre', 'name', 'scientific_name' o 'nombre_cientifico'.")

def _read_any(path: str) -> pd.DataFrame:
    if path.lower().endswith((".xlsx", ".xls")):
        return pd.read_excel(path)
    return pd.read_csv(path)

async def build(nombres, resolver: SpeciesResolver, tree: dict) -> list[dict]:
    """Resuelve en serie cada nombre y fusiona su linaje en tree (muta tree)."""
    filas = []
    for nombre in nombres:
        nombre = str(nombre or "").strip()
        if not nombre:
            continue
        fila = {"nombre_original": nombre, "clave": None, "especie": None, "nombre_comun": None}
        fila.update({r.lower(): None for r in MAIN_TAXONOMY_RANK_ORDER})
        try:
            key = await resolver.resolve(nombre)
            if not key:
                fila["estado"] = "NO_ENCONTRADO"
                filas.append(fila)
                continue
            path = await fetch_lineage(key, resolver.client)
        except RemoteServiceError as e:
            log.error("Error con %s: %s", nombre, e)
            fila["estado"] = "ERROR"
            filas.append(fila)
            continue

        merge_into_tree(tree, path)
        for node in path:
            fila[node["rank"].lower()] = node["name"]
        fila["clave"] = key
        fila["especie"] = path[-1]["name"] if path else None
        fila["nombre_comun"] = path[-1].get("commonName") if path else None
        fila["estado"] = "OK"
        filas.append(fila)
    return filas

def run(input_path: str, output_path: str):
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    Base.metadata.create_all(bind=engine)

    df = _read_any(input_path)
    nombres = df[_pick_column(df)].fillna("")

    store = TreeStore(SqlKeyValueStore(SessionLocal))
    tree = store.load() or create_empty_tree()

    filas = asyncio_run(_build_and_close(nombres, tree))

    if not store.save(tree):
        print("Aviso: no se pudo guardar el árbol principal.")

    out = pd.DataFrame(filas)
    if output_path.lower().endswith(".xlsx"):
        out.to_excel(output_path, index=False)
    else:
        out.to_csv(output_path, index=False)
    print(f"Exportado: {output_path} ({count_species(tree)} especies en el árbol)")

async def _build_and_close(nombres, tree: dict) -> list[dict]:
    try:
        return await build(nombres, SpeciesResolver(), tree)
    finally:
        await gbif.close_http_client()

def asyncio_run(coro):
    import asyncio
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    return asyncio.run(coro)

if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Uso: python etl/build_tree_file.py data/especies.csv data/salida.csv")
        sys.exit(1)
    run(sys.argv[1], sys.argv[2])
