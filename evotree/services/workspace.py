# evotree/services/workspace.py
from __future__ import annotations

import os
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .resolver import SpeciesResolver
from .lineage import fetch_lineage
from .store import TreeStore
from .tree import create_empty_tree, clone_tree, merge_into_tree

log = logging.getLogger(__name__)

TREE_SAVE_DEBOUNCE = float(os.getenv("TREE_SAVE_DEBOUNCE", "0.35"))


@dataclass
class PreviewResult:
    path: List[Dict[str, Any]]
    tree: Dict[str, Any]
    matched_name: str
    renamed: bool


class TreeWorkspace:
    """
    Estado de trabajo: árbol principal (persistido) + vista previa temporal.
    Flujo: preview(nombre) -> confirm() fusiona la vista previa en el principal
    y agenda un guardado con debounce.
    """

    def __init__(self, resolver: SpeciesResolver, store: TreeStore, debounce: float = TREE_SAVE_DEBOUNCE):
        self.resolver = resolver
        self.store = store
        self.debounce = debounce
        self.main_tree: Dict[str, Any] = create_empty_tree()
        self.preview_tree: Dict[str, Any] = create_empty_tree()
        self.preview_path: List[Dict[str, Any]] = []
        self._save_task: Optional[asyncio.Task] = None

    def load(self) -> Dict[str, Any]:
        """Lee el árbol una vez al arrancar; si falla, queda vacío."""
        self.main_tree = self.store.load() or create_empty_tree()
        return self.main_tree

    # ---------------- Vista previa ----------------
    async def preview(self, raw_name: str) -> Optional[PreviewResult]:
        value = (raw_name or "").strip()
        if not value:
            raise ValueError("Ingresa primero un nombre de especie.")

        key = await self.resolver.resolve(value)
        if not key:
            return None

        path = await fetch_lineage(key, self.resolver.client)
        matched = path[-1]["name"] if path else ""

        self.preview_tree = merge_into_tree(create_empty_tree(), path)
        self.preview_path = path
        renamed = bool(matched) and matched.lower() != value.lower()
        if renamed:
            log.info("%r se previsualiza como %r", value, matched)
        return PreviewResult(path=path, tree=self.preview_tree, matched_name=matched, renamed=renamed)

    def clear_preview(self):
        self.preview_tree = create_empty_tree()
        self.preview_path = []

    # ---------------- Árbol principal ----------------
    def confirm(self) -> Optional[str]:
        """Fusiona la vista previa en el árbol principal; devuelve el nombre agregado."""
        if not self.preview_path:
            return None
        self.main_tree = merge_into_tree(clone_tree(self.main_tree), self.preview_path)
        self._schedule_save()
        return self.preview_path[-1].get("name") or "species"

    def clear_main(self) -> bool:
        """Borra primero lo guardado; si falla, memoria y almacén quedan intactos."""
        if not self.store.clear():
            return False
        self._cancel_pending()
        self.main_tree = create_empty_tree()
        return True

    # ---------------- Guardado con debounce ----------------
    def _cancel_pending(self):
        if self._save_task is not None and not self._save_task.done():
            self._save_task.cancel()
        self._save_task = None

    def _schedule_save(self):
        self._cancel_pending()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # sin loop (scripts síncronos): guardar de inmediato
            self.store.save(self.main_tree)
            return
        self._save_task = loop.create_task(self._delayed_save())

    async def _delayed_save(self):
        await asyncio.sleep(self.debounce)
        self.store.save(self.main_tree)

    async def flush(self) -> bool:
        """Fuerza el guardado pendiente (shutdown)."""
        if self._save_task is None:
            return True
        self._cancel_pending()
        return self.store.save(self.main_tree)
