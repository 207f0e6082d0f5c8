# evotree/services/names.py
from __future__ import annotations

import re
from typing import List, Optional

# Género Capitalizado + 1 o 2 epítetos en minúscula (se admiten guiones)
_SCIENTIFIC_RE = re.compile(r"^[A-Z][a-z-]+(\s+[a-z-]+){1,2}$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

def is_likely_scientific_name(value: Optional[str]) -> bool:
    """
    Heurística: "Panthera leo" / "Panthera leo persica" -> True.
    Cualquier otra forma se trata como nombre común.
    """
    return bool(_SCIENTIFIC_RE.match((value or "").strip()))

def normalize_name_text(value: Optional[str]) -> str:
    """minúsculas, corridas no alfanuméricas -> un espacio, sin bordes."""
    return _NON_ALNUM_RE.sub(" ", str(value or "").lower()).strip()

def is_english_like_language(value: Optional[str]) -> bool:
    # sin etiqueta cuenta como inglés
    s = str(value or "").lower().strip()
    return not s or s == "eng" or s.startswith("en")

def has_vernacular_token_match(vernacular: Optional[str], query: Optional[str]) -> bool:
    """True si query aparece como palabra completa dentro de vernacular."""
    if not vernacular or not query:
        return False
    return (
        vernacular == query
        or vernacular.startswith(f"{query} ")
        or vernacular.endswith(f" {query}")
        or f" {query} " in vernacular
    )

def build_common_name_variants(value: Optional[str]) -> List[str]:
    """
    Variantes léxicas de un nombre común:
      - forma normalizada
      - singular ingenuo: -ies -> -y, -es, -s (no -ss)
      - grey <-> gray
    Sin duplicados ni vacíos; el orden es el de generación.
    """
    base = normalize_name_text(value)
    variants: List[str] = []

    def add(v: str):
        v = v.strip()
        if v and v not in variants:
            variants.append(v)

    add(base)

    if base.endswith("ies") and len(base) > 5:
        add(base[:-3] + "y")
    if base.endswith("es") and len(base) > 4:
        add(base[:-2])
    # >= 4 a propósito (no > 4): "cats" debe dar "cat"
    if base.endswith("s") and len(base) >= 4 and not base.endswith("ss"):
        add(base[:-1])

    if "grey" in base:
        add(base.replace("grey", "gray"))
    if "gray" in base:
        add(base.replace("gray", "grey"))

    return variants
