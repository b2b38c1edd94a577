"""Configuración y resultado de un reporte.

Por qué es un módulo separado:
- Son contratos de la orquestación, no del proyecto analizado.
- `SonarQubeConfig.token` es `SecretStr`: repr/str/dumps nunca lo exponen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr

from core.domain.filtering import FilterConfig
from core.domain.models import ClassificationConfig

DEFAULT_HEADERS: tuple[str, str, str] = ("repository", "coverage_percent", "category")


class NumberFormat(BaseModel):
    decimal_places: int = Field(default=2, ge=0, le=10)
    include_percent_sign: bool = False


class CsvConfig(BaseModel):
    """Formato del CSV de salida."""

    headers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HEADERS),
        description="Encabezados (repositorio, coverage, categoría).",
    )
    delimiter: str = Field(default=",", description="Separador de un solo carácter.")
    include_headers: bool = True
    column_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Renombra encabezados de salida sin alterar orden ni valores.",
    )
    number_format: NumberFormat = Field(default_factory=NumberFormat)


class CsvResult(BaseModel):
    content: str
    row_count: int = Field(..., ge=0)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    config: CsvConfig


class SonarQubeConfig(BaseModel):
    """Conexión con SonarQube."""

    base_url: str = Field(default="", description="URL base del servidor SonarQube.")
    token: SecretStr = Field(default=SecretStr(""), description="Token (Bearer).")
    timeout_seconds: float = Field(default=30.0, gt=0)


class ReportConfig(BaseModel):
    """Configuración completa de una ejecución del reporte."""

    sonarqube: SonarQubeConfig
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    csv: CsvConfig = Field(default_factory=CsvConfig)
    filters: list[FilterConfig] = Field(default_factory=list)
    output_path: Path | None = Field(
        default=None,
        description="Destino del CSV. None: no se persiste.",
    )
    sort_by_name: bool = Field(
        default=True,
        description="Ordena por nombre de repositorio (ascendente) antes de clasificar.",
    )


class ReportResult(BaseModel):
    csv_content: str
    project_count: int = Field(..., ge=0)
    category_counts: dict[str, int] = Field(default_factory=dict)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: float = 0.0
    config: ReportConfig
    output_path: Path | None = None
