from __future__ import annotations
import json
from typing import Any

from ..errors import RemoteServiceError

def _json_or_raise(r) -> Any:
    """
    Devuelve el JSON de una Response httpx.
    Si .json() falla intenta con .text; si tampoco es JSON, RemoteServiceError.
    """
    url = str(getattr(r, "url", "") or "")
    try:
        return r.json()
    except ValueError:
        t = (getattr(r, "text", "") or "").strip()
        if not t:
            raise RemoteServiceError(url, "respuesta vacía")
        try:
            return json.loads(t)
        except ValueError as e:
            raise RemoteServiceError(url, f"JSON inválido: {e}") from e
