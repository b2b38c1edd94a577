"""Filtros a nivel de query (se resuelven en SonarQube).

`api/projects/search` acepta:
- `q`: substring sobre nombre/key.
- `projects`: lista de keys separada por comas.
- `analyzedBefore`: fecha `YYYY-MM-DD`, exclusiva (no existe un `analyzedAfter`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Sequence

from core.interfaces.filtering import QueryFilter


@dataclass(frozen=True)
class ProjectNameQueryFilter:
    query: str

    def api_params(self) -> dict[str, str]:
        return {"q": self.query}


@dataclass(frozen=True)
class ProjectKeyQueryFilter:
    keys: tuple[str, ...]

    def api_params(self) -> dict[str, str]:
        return {"projects": ",".join(self.keys)}


@dataclass(frozen=True)
class AnalyzedBeforeQueryFilter:
    before: date

    def api_params(self) -> dict[str, str]:
        day = self.before.date() if isinstance(self.before, datetime) else self.before
        return {"analyzedBefore": day.isoformat()}


def combine_query_params(filters: Iterable[QueryFilter]) -> dict[str, str]:
    """Une los parámetros en orden; ante claves repetidas gana el último."""

    params: dict[str, str] = {}
    for query_filter in filters:
        params.update(query_filter.api_params())
    return params


def key_query(keys: Sequence[str]) -> ProjectKeyQueryFilter:
    return ProjectKeyQueryFilter(keys=tuple(k.strip() for k in keys if k and k.strip()))
