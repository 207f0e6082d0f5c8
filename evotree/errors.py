# evotree/errors.py
from __future__ import annotations


class EvotreeError(Exception):
    """Base de errores del proyecto."""


class RemoteServiceError(EvotreeError):
    """Falla de red/HTTP/JSON contra el servicio taxonómico remoto (aborta la resolución)."""

    def __init__(self, url: str, detail: str = ""):
        self.url = url
        self.detail = detail
        super().__init__(f"{url}: {detail}" if detail else url)


class EnrichmentLookupError(EvotreeError):
    """Falló la lectura de alias vernáculos de un candidato; se absorbe localmente."""

    def __init__(self, key, cause: Exception | None = None):
        self.key = key
        self.cause = cause
        super().__init__(f"alias lookup falló para {key}: {cause}")


class PersistenceError(EvotreeError):
    """Falla al leer/escribir el almacén clave-valor."""
