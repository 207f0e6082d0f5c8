# evotree/services/tree.py
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Optional

from .lineage import DOMAIN_BY_KINGDOM_NAME

ROOT_NAME = "Life"

def create_empty_tree() -> Dict[str, Any]:
    return {"name": ROOT_NAME, "children": []}

def clone_tree(tree: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return copy.deepcopy(tree) if tree else create_empty_tree()

def _children(node: Dict[str, Any]) -> list:
    ch = node.get("children")
    if not isinstance(ch, list):
        ch = node["children"] = []
    return ch

# ----------------------------- Fusión de linajes -----------------------------
def merge_into_tree(tree: Dict[str, Any], path: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Inserta un linaje bajo la raíz. Hermanos se comparan por nombre exacto
    (sensible a mayúsculas); el nombre común se rellena si faltaba.
    Muta y devuelve tree. Idempotente.
    """
    current = tree
    for taxon in path:
        name = taxon.get("name")
        common = taxon.get("commonName")
        children = _children(current)

        child = next((c for c in children if c.get("name") == name), None)
        if child is None:
            child = {"name": name, "children": []}
            if common:
                child["commonName"] = common
            children.append(child)
        elif common and not child.get("commonName"):
            child["commonName"] = common

        current = child
    return tree

# ----------------------------- Reparación de árboles viejos -----------------------------
def _norm(value: Any) -> str:
    return str(value or "").strip().lower()

def _merge_nodes(target: Dict[str, Any], source: Dict[str, Any]):
    """Une source dentro de target (nombres sin distinguir mayúsculas); target conserva su commonName."""
    if source.get("commonName") and not target.get("commonName"):
        target["commonName"] = source["commonName"]

    for src_child in source.get("children") or []:
        tgt_children = _children(target)
        existing = next((c for c in tgt_children if _norm(c.get("name")) == _norm(src_child.get("name"))), None)
        if existing is None:
            tgt_children.append(src_child)
        else:
            _merge_nodes(existing, src_child)

def _drop_invalid_nodes(node: Dict[str, Any]):
    """Descarta hijos que no son objetos (null, números...) en todo el subárbol."""
    children = node.get("children")
    node["children"] = [c for c in children if isinstance(c, dict)] if isinstance(children, list) else []
    for child in node["children"]:
        _drop_invalid_nodes(child)

def normalize_legacy_tree(tree: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Árboles guardados antes de existir el nivel Dominio tenían reinos colgando
    de la raíz. Los mueve bajo su dominio (creándolo si falta) y fusiona
    duplicados. Trabaja sobre una copia; aplicarlo dos veces no cambia nada.
    """
    root = clone_tree(tree)
    _drop_invalid_nodes(root)
    children = root["children"]
    if not children:
        return root

    keep, pending = [], []
    for child in children:
        name = _norm(child.get("name"))
        domain = DOMAIN_BY_KINGDOM_NAME.get(name)
        if domain and _norm(domain) != name:
            pending.append((child, domain))
        else:
            keep.append(child)

    if not pending:
        return root

    root["children"] = keep
    for child, domain in pending:
        domain_node = next((c for c in keep if _norm(c.get("name")) == _norm(domain)), None)
        if domain_node is None:
            domain_node = {"name": domain, "children": []}
            keep.append(domain_node)

        dom_children = _children(domain_node)
        existing = next((c for c in dom_children if _norm(c.get("name")) == _norm(child.get("name"))), None)
        if existing is None:
            dom_children.append(child)
        else:
            _merge_nodes(existing, child)

    return root

# ----------------------------- Resumen -----------------------------
def build_node_label(node: Dict[str, Any]) -> str:
    """'Panthera leo (Lion)' si hay nombre común útil; sin nombre -> 'Unknown'."""
    name = str(node.get("name") or "").strip() or "Unknown"
    common = str(node.get("commonName") or "").strip()
    if common and common.lower() not in (name.lower(), "unknown"):
        return f"{name} ({common})"
    return name

def count_species(tree: Optional[Dict[str, Any]]) -> int:
    """Hojas bajo la raíz (la raíz vacía cuenta 0)."""
    if not tree:
        return 0
    stack = list(tree.get("children") or [])
    n = 0
    while stack:
        node = stack.pop()
        ch = node.get("children") or []
        if ch:
            stack.extend(ch)
        else:
            n += 1
    return n

def tree_depth(tree: Optional[Dict[str, Any]]) -> int:
    """Niveles bajo la raíz."""
    if not tree or not tree.get("children"):
        return 0
    return 1 + max(tree_depth(c) for c in tree["children"])
