"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Normaliza lo que llega de SonarQube (coverage ausente, fechas en ISO 8601)
  en el borde, una sola vez.
- `frozen=True`: los filtros devuelven listas nuevas y la clasificación
  produce registros nuevos; nadie muta un proyecto in-place.

Nota:
- Estos modelos describen *qué* es un proyecto analizado, no *cómo* se obtiene.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator
from pydantic.config import ConfigDict

from core.domain.category import CoverageCategory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _freeze(value: Any) -> Any:
    """Copia de solo lectura: dicts -> MappingProxyType, listas -> tuplas."""

    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (tuple, frozenset)):
        return [_thaw(v) for v in value]
    return value


class ProjectData(BaseModel):
    """Un repositorio analizado por SonarQube en un momento dado."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Nombre visible del proyecto.",
    )
    key: str = Field(
        ...,
        min_length=1,
        description="Project key (identificador estable en SonarQube).",
    )
    coverage_percent: float = Field(
        default=0.0,
        description="Coverage (0..100). Ausente, no numérico o no finito se normaliza a 0.",
    )
    metadata: Mapping[str, Any] = Field(
        default_factory=dict,
        validate_default=True,
        description="Atributos auxiliares (lenguajes, quality gate, errores). Solo lectura.",
    )
    last_analysis: datetime = Field(
        default_factory=_utcnow,
        description="Fecha del último análisis (UTC si la fuente no la informa).",
    )

    @field_validator("coverage_percent", mode="before")
    @classmethod
    def _normalize_coverage(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return 0.0
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return 0.0
        try:
            coverage = float(value)
        except (TypeError, ValueError):
            return 0.0
        return coverage if math.isfinite(coverage) else 0.0

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @field_serializer("metadata")
    def _dump_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return _thaw(value)

    @field_validator("last_analysis", mode="before")
    @classmethod
    def _default_last_analysis(cls, value: Any) -> Any:
        if value is None or value == "":
            return _utcnow()
        return value


class CategorizedProject(BaseModel):
    """Terna (proyecto, categoría, umbral usado)."""

    model_config = ConfigDict(frozen=True)

    project: ProjectData
    category: CoverageCategory
    threshold: float


class ClassificationConfig(BaseModel):
    """Parámetros de clasificación.

    `strict_zero_classification` se conserva por compatibilidad: 0% siempre
    cae en "Sin coverage".
    """

    threshold: float = Field(
        default=50.0,
        description="Coverage mínimo esperado (inclusive).",
    )
    strict_zero_classification: bool = True


class ClassificationResult(BaseModel):
    """Resultado auditable de una clasificación."""

    model_config = ConfigDict(frozen=True)

    category: CoverageCategory
    threshold: float
    metadata: dict[str, Any] = Field(default_factory=dict)
