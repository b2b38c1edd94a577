"""Categorías de coverage.

Las etiquetas van en español y se reproducen tal cual en el CSV (con tildes).
Centralizarlas en un Enum cerrado evita que un typo cree una cuarta
"categoría" por comparación de strings.
"""

from __future__ import annotations

from enum import Enum


class CoverageCategory(str, Enum):
    """Las tres categorías posibles de un proyecto."""

    SIN_COVERAGE = "Sin coverage"
    NO_PASA_MINIMO = "No pasa del mínimo esperado"
    SI_PASA_MINIMO = "Si pasa el mínimo esperado"

    @classmethod
    def all(cls) -> list["CoverageCategory"]:
        """Todas las categorías en orden de declaración."""

        return list(cls)

    def label(self) -> str:
        """Texto visible en reportes."""

        return self.value
