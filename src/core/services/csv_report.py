"""Generación del CSV categorizado.

Contrato de salida:
- Columnas fijas: repositorio, coverage formateado, categoría (etiqueta exacta).
- Cada fila termina en un único `\\n`; el encabezado va primero si está activo.
- Entrada vacía: solo la línea de encabezado (o `""` sin encabezados).
- No reordena filas: el orden lo decide el orquestador.

La escritura a disco vive en `adapters.csv_exporter`.
"""

from __future__ import annotations

import csv
import io
import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from core.domain.models import CategorizedProject
from core.domain.report import DEFAULT_HEADERS, CsvConfig, CsvResult, NumberFormat
from core.errors import ConfigurationError, ValidationError


def check_csv_config(config: CsvConfig) -> None:
    """Lanza `ConfigurationError` si la configuración no produce un CSV válido."""

    if len(config.delimiter) != 1 or config.delimiter in ('"', "\r", "\n"):
        raise ConfigurationError(f"CSV delimiter must be a single character, got {config.delimiter!r}")

    if config.column_mapping:
        if len(config.headers) < len(DEFAULT_HEADERS):
            raise ConfigurationError("CSV headers must name at least the 3 standard columns")
    elif len(config.headers) != len(DEFAULT_HEADERS):
        raise ConfigurationError(
            f"CSV headers must have exactly {len(DEFAULT_HEADERS)} entries, got {len(config.headers)}"
        )

    if any(not isinstance(h, str) or not h for h in config.headers):
        raise ConfigurationError("CSV headers must be non-empty strings")


def format_coverage(coverage: float, number_format: NumberFormat) -> str:
    formatted = f"{coverage:.{number_format.decimal_places}f}"
    return f"{formatted}%" if number_format.include_percent_sign else formatted


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


class CsvReporter:
    """Transforma `CategorizedProject` en texto delimitado."""

    def __init__(self, config: CsvConfig | None = None) -> None:
        self.config = config or CsvConfig()

    def validate_data(self, data: Any) -> bool:
        if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
            return False
        for item in data:
            project = getattr(item, "project", None)
            if project is None:
                return False
            name = getattr(project, "name", None)
            if not isinstance(name, str) or not name:
                return False
            if not _is_number(getattr(project, "coverage_percent", None)):
                return False
            if not isinstance(getattr(item, "category", None), str):
                return False
            if not _is_number(getattr(item, "threshold", None)):
                return False
        return True

    def header_row(self, config: CsvConfig | None = None) -> list[str]:
        config = config or self.config
        return [config.column_mapping.get(h, h) for h in config.headers[: len(DEFAULT_HEADERS)]]

    def _row(self, item: CategorizedProject, config: CsvConfig) -> list[str]:
        category = item.category
        label = category.label() if hasattr(category, "label") else str(category)
        return [
            item.project.name,
            format_coverage(item.project.coverage_percent, config.number_format),
            label,
        ]

    def generate_detailed(
        self,
        data: Sequence[CategorizedProject],
        config: CsvConfig | None = None,
    ) -> CsvResult:
        config = config or self.config
        check_csv_config(config)
        if not self.validate_data(data):
            raise ValidationError("Invalid data provided for CSV generation")

        buffer = io.StringIO()
        writer = csv.writer(
            buffer,
            delimiter=config.delimiter,
            quotechar='"',
            quoting=csv.QUOTE_MINIMAL,
            lineterminator="\n",
        )
        if config.include_headers:
            writer.writerow(self.header_row(config))
        for item in data:
            writer.writerow(self._row(item, config))

        return CsvResult(
            content=buffer.getvalue(),
            row_count=len(data),
            generated_at=datetime.now(timezone.utc),
            config=config,
        )

    def generate(
        self,
        data: Sequence[CategorizedProject],
        config: CsvConfig | None = None,
    ) -> str:
        return self.generate_detailed(data, config).content
