# evotree/schemas.py
from __future__ import annotations

from typing import List, Optional, Union
from pydantic import BaseModel, Field

# ------------------ Modelos de apoyo ------------------

class TaxonNodeOut(BaseModel):
    name: str
    rank: str
    key: Union[int, str]
    commonName: Optional[str] = None

class TreeNodeOut(BaseModel):
    name: str
    commonName: Optional[str] = None
    children: List["TreeNodeOut"] = Field(default_factory=list)

TreeNodeOut.model_rebuild()

# ------------------ Modelos que usa main.py ------------------

class ResolverOut(BaseModel):
    consulta: str
    clave: Union[int, str]

class LinajeOut(BaseModel):
    clave: Union[int, str]
    linaje: List[TaxonNodeOut] = Field(default_factory=list)

class ArbolOut(BaseModel):
    arbol: TreeNodeOut
    especies: int = 0
    profundidad: int = 0

class VistaPreviaIn(BaseModel):
    nombre: str = Field(..., description="Nombre científico o común, p. ej., 'Panthera leo' o 'lion'")

class VistaPreviaOut(BaseModel):
    especie: str
    renombrado: bool = False
    mensaje: Optional[str] = None
    linaje: List[TaxonNodeOut] = Field(default_factory=list)
    arbol: TreeNodeOut

class ConfirmarOut(BaseModel):
    agregado: str
    mensaje: str
    especies: int = 0

__all__ = [
    "TaxonNodeOut", "TreeNodeOut", "ResolverOut", "LinajeOut",
    "ArbolOut", "VistaPreviaIn", "VistaPreviaOut", "ConfirmarOut",
]
