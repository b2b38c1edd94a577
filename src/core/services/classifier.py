"""Clasificación de coverage en categorías.

Funciones puras, sin estado ni I/O. El orden de las reglas importa:
1. coverage == 0            -> "Sin coverage"
2. coverage >= threshold    -> "Si pasa el mínimo esperado" (umbral inclusive)
3. resto                    -> "No pasa del mínimo esperado"

El llamador es responsable de normalizar coverage ausente a 0
(`ProjectData` ya lo hace).
"""

from __future__ import annotations

import math
from typing import Any

from core.domain.category import CoverageCategory
from core.domain.models import ClassificationConfig, ClassificationResult
from core.errors import ValidationError


def _coverage_problem(coverage: Any) -> str | None:
    if isinstance(coverage, bool) or not isinstance(coverage, (int, float)):
        return "coverage must be a number"
    if math.isnan(coverage):
        return "coverage cannot be NaN"
    if math.isinf(coverage):
        return "coverage must be a finite number"
    if coverage < 0:
        return "coverage cannot be negative"
    if coverage > 100:
        return "coverage cannot exceed 100%"
    return None


def validate_coverage(coverage: Any) -> bool:
    """True si `coverage` es un número finito dentro de [0, 100]."""

    return _coverage_problem(coverage) is None


def zero_coverage_category() -> CoverageCategory:
    return CoverageCategory.SIN_COVERAGE


def classify(coverage: float, threshold: float) -> CoverageCategory:
    """Asigna la categoría de `coverage` respecto a `threshold`.

    Lanza `ValidationError` si `coverage` no es un número en [0, 100].
    `threshold` no se valida aquí (se valida al construir la configuración).
    """

    problem = _coverage_problem(coverage)
    if problem is not None:
        raise ValidationError(f"Invalid coverage value {coverage!r}: {problem}")

    if coverage == 0:
        return zero_coverage_category()
    if coverage >= threshold:
        return CoverageCategory.SI_PASA_MINIMO
    return CoverageCategory.NO_PASA_MINIMO


def classify_detailed(
    coverage: float,
    config: ClassificationConfig | None = None,
) -> ClassificationResult:
    """Igual que `classify`, pero devuelve umbral y entrada para auditoría."""

    config = config or ClassificationConfig()
    category = classify(coverage, config.threshold)
    return ClassificationResult(
        category=category,
        threshold=config.threshold,
        metadata={
            "original_coverage": coverage,
            "strict_zero_classification": config.strict_zero_classification,
            "config_used": config.model_dump(),
        },
    )
