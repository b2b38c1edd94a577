"""Descriptores declarativos de filtros.

Un `FilterConfig` describe un filtro sin construirlo; `core.services.filters`
lo traduce a una estrategia (post-fetch) o a parámetros de la API (query).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict


class FilterType(str, Enum):
    COVERAGE = "coverage"
    NAME = "name"
    DATE = "date"
    LANGUAGE = "language"
    KEYS = "keys"
    PREDICATE = "predicate"

    @classmethod
    def parse(cls, value: "FilterType | str") -> "FilterType":
        """Resuelve un tipo o alias (`namePattern`, `dateRange`, ...).

        Lanza `ValueError` si el tipo no existe.
        """

        if isinstance(value, FilterType):
            return value
        normalized = str(value).strip()
        member = _ALIASES.get(normalized) or _ALIASES.get(normalized.lower())
        if member is None:
            raise ValueError(f"Unknown filter type: {value!r}")
        return member


_ALIASES: dict[str, FilterType] = {
    "coverage": FilterType.COVERAGE,
    "name": FilterType.NAME,
    "namePattern": FilterType.NAME,
    "namepattern": FilterType.NAME,
    "date": FilterType.DATE,
    "dateRange": FilterType.DATE,
    "daterange": FilterType.DATE,
    "language": FilterType.LANGUAGE,
    "languages": FilterType.LANGUAGE,
    "keys": FilterType.KEYS,
    "key": FilterType.KEYS,
    "projects": FilterType.KEYS,
    "predicate": FilterType.PREDICATE,
    "custom": FilterType.PREDICATE,
}


class FilterConfig(BaseModel):
    """Descriptor `{type, params, applyAtQuery}`."""

    model_config = ConfigDict(populate_by_name=True)

    type: FilterType
    params: dict[str, Any] = Field(default_factory=dict)
    apply_at_query: bool = Field(
        default=False,
        alias="applyAtQuery",
        description="True: se envía como parámetro a SonarQube. False: post-fetch.",
    )

    @field_validator("type", mode="before")
    @classmethod
    def _resolve_alias(cls, value: Any) -> FilterType:
        return FilterType.parse(value)
