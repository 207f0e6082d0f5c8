# evotree/services/store.py
from __future__ import annotations

import os
import json
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models import KeyValueEntry
from ..errors import PersistenceError
from .tree import normalize_legacy_tree

log = logging.getLogger(__name__)

MAIN_TREE_KEY = os.getenv("MAIN_TREE_KEY", "evotree_main_tree_v1")

# --------------------- Almacén clave-valor (SQLAlchemy) ---------------------
class SqlKeyValueStore:
    """get/set/delete sobre la tabla kv_entry; una sesión corta por operación."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[bytes]:
        try:
            with self.session_factory() as db:
                row = db.get(KeyValueEntry, key)
                return bytes(row.value) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"get {key}: {e}") from e

    def set(self, key: str, value: bytes):
        try:
            with self.session_factory() as db:
                row = db.get(KeyValueEntry, key)
                if row is None:
                    db.add(KeyValueEntry(key=key, value=value))
                else:
                    row.value = value
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"set {key}: {e}") from e

    def delete(self, key: str):
        try:
            with self.session_factory() as db:
                row = db.get(KeyValueEntry, key)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"delete {key}: {e}") from e

# --------------------- Persistencia del árbol principal ---------------------
class TreeStore:
    """
    Frontera de persistencia del árbol: todo es "best effort".
    load() -> árbol reparado o None; save()/clear() -> bool.
    """

    def __init__(self, kv, key: str = MAIN_TREE_KEY):
        self.kv = kv
        self.key = key

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.kv.get(self.key)
            if not raw:
                return None
            parsed = json.loads(raw.decode("utf-8"))
        except (PersistenceError, ValueError) as e:
            log.warning("No se pudo leer el árbol guardado (%s); se usa árbol vacío", e)
            return None
        if not isinstance(parsed, dict) or not parsed.get("name"):
            log.warning("Árbol guardado sin raíz válida; se ignora")
            return None
        return normalize_legacy_tree(parsed)

    def save(self, tree: Dict[str, Any]) -> bool:
        try:
            self.kv.set(self.key, json.dumps(tree, ensure_ascii=False).encode("utf-8"))
            return True
        except PersistenceError as e:
            # se reintenta en la próxima mutación
            log.warning("No se pudo guardar el árbol: %s", e)
            return False

    def clear(self) -> bool:
        try:
            self.kv.delete(self.key)
            return True
        except PersistenceError as e:
            log.warning("No se pudo borrar el árbol guardado: %s", e)
            return False
