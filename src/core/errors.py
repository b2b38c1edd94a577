"""Jerarquía de errores del reporter.

Reglas:
- El Core lanza estos tipos; los adaptadores encadenan (`raise ... from`) la
  excepción original de httpx/OS.
- Ningún mensaje incluye el token de SonarQube.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from core.domain.report import ReportResult


class ReporterError(Exception):
    """Base de todas las excepciones propias del reporter."""


class ConfigurationError(ReporterError, ValueError):
    """URL, token, umbral o formato CSV inválidos. Se detecta antes de tocar la red."""


class ValidationError(ReporterError, ValueError):
    """Entrada mal formada para clasificación o generación del CSV."""


class DataSourceError(ReporterError):
    """Fallo de red, autenticación o servidor al consultar SonarQube."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(DataSourceError):
    """SonarQube rechazó el token."""


class PersistenceError(ReporterError):
    """No se pudo escribir el reporte en disco."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ReportPhase(str, Enum):
    """Fases de la máquina de estados del orquestador."""

    IDLE = "idle"
    CONFIG = "config"
    AUTHENTICATE = "authenticate"
    FETCH = "fetch"
    FILTER = "filter"
    CLASSIFY = "classify"
    GENERATE = "generate"
    PERSIST = "persist"
    DONE = "done"


class ReportError(ReporterError):
    """Fallo de una fase del pipeline, con la causa original adjunta.

    `result` solo está presente cuando falla la persistencia: el CSV ya se
    generó y el llamador puede seguir usándolo.
    """

    def __init__(
        self,
        message: str,
        *,
        phase: ReportPhase,
        cause: BaseException | None = None,
        result: ReportResult | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.cause = cause
        self.result = result

    def root_cause(self) -> BaseException:
        current: BaseException = self
        while isinstance(current, ReportError) and current.cause is not None:
            current = current.cause
        return current


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "DataSourceError",
    "PersistenceError",
    "ReportError",
    "ReportPhase",
    "ReporterError",
    "ValidationError",
]
