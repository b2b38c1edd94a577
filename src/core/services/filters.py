"""Motor de filtrado (Strategy + Builder).

- Cada estrategia es inmutable y sin efectos: `apply` devuelve una lista
  nueva que preserva el orden relativo de la entrada.
- `AndFilterStrategy` encadena (la salida de una es la entrada de la
  siguiente); `OrFilterStrategy` aplica cada una sobre la colección original
  y une resultados sin duplicados (por `key`, primer visto gana).
- `ProjectFilterBuilder.build()`: sin estrategias -> pass-through; una -> esa
  misma; varias -> AND.
- Los descriptores `FilterConfig` se enrutan con una tabla indexada por
  `FilterType`.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from core.domain.filtering import FilterConfig, FilterType
from core.domain.models import ProjectData
from core.errors import ConfigurationError
from core.interfaces.filtering import FilterStrategy, ProjectPredicate, QueryFilter
from core.services.query_filters import (
    AnalyzedBeforeQueryFilter,
    ProjectNameQueryFilter,
    key_query,
)

logger = logging.getLogger(__name__)


class BaseFilterStrategy(ABC):
    """Base común: `can_handle` por pertenencia a `handles`."""

    handles: frozenset[FilterType] = frozenset()

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def apply(self, projects: list[ProjectData]) -> list[ProjectData]: ...

    def can_handle(self, filter_type: FilterType | str) -> bool:
        try:
            return FilterType.parse(filter_type) in self.handles
        except ValueError:
            return False

    def __repr__(self) -> str:
        return f"<{self.name}>"


class CoverageFilterStrategy(BaseFilterStrategy):
    """Rango de coverage, ambos extremos inclusivos y opcionales."""

    handles = frozenset({FilterType.COVERAGE})

    def __init__(self, *, min_coverage: float | None = None, max_coverage: float | None = None) -> None:
        self.min_coverage = min_coverage
        self.max_coverage = max_coverage

    @property
    def name(self) -> str:
        return "CoverageFilter"

    def _keep(self, project: ProjectData) -> bool:
        coverage = project.coverage_percent
        if self.min_coverage is not None and coverage < self.min_coverage:
            return False
        if self.max_coverage is not None and coverage > self.max_coverage:
            return False
        return True

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if self._keep(p)]


class NamePatternFilterStrategy(BaseFilterStrategy):
    handles = frozenset({FilterType.NAME})

    def __init__(self, pattern: str, *, case_sensitive: bool = True) -> None:
        try:
            self._regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as exc:
            raise ConfigurationError(f"Invalid name pattern {pattern!r}: {exc}") from exc
        self.pattern = pattern
        self.case_sensitive = case_sensitive

    @property
    def name(self) -> str:
        return "NamePatternFilter"

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if self._regex.search(p.name)]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DateRangeFilterStrategy(BaseFilterStrategy):
    """`last_analysis` dentro de [start_date, end_date], ambos opcionales."""

    handles = frozenset({FilterType.DATE})

    def __init__(self, *, start_date: datetime | None = None, end_date: datetime | None = None) -> None:
        self.start_date = _as_utc(start_date) if start_date else None
        self.end_date = _as_utc(end_date) if end_date else None

    @property
    def name(self) -> str:
        return "DateRangeFilter"

    def _keep(self, project: ProjectData) -> bool:
        analyzed = _as_utc(project.last_analysis)
        if self.start_date is not None and analyzed < self.start_date:
            return False
        if self.end_date is not None and analyzed > self.end_date:
            return False
        return True

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if self._keep(p)]


def extract_languages(metadata: Mapping[str, Any]) -> set[str]:
    """Lenguajes de un proyecto según su metadata.

    Prioridad: `languages` (lista) > `language` (str) > `qualityGate.languages`.
    """

    languages = metadata.get("languages")
    if isinstance(languages, (list, tuple, set, frozenset)):
        return {lang for lang in languages if isinstance(lang, str)}

    language = metadata.get("language")
    if isinstance(language, str):
        return {language}

    quality_gate = metadata.get("qualityGate")
    if isinstance(quality_gate, Mapping):
        gate_languages = quality_gate.get("languages")
        if isinstance(gate_languages, (list, tuple, set, frozenset)):
            return {lang for lang in gate_languages if isinstance(lang, str)}
        if isinstance(gate_languages, str):
            return {gate_languages}

    return set()


class LanguageFilterStrategy(BaseFilterStrategy):
    handles = frozenset({FilterType.LANGUAGE})

    def __init__(self, languages: Iterable[str]) -> None:
        self.languages = frozenset(languages)

    @property
    def name(self) -> str:
        return "LanguageFilter"

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if extract_languages(p.metadata) & self.languages]


class KeyFilterStrategy(BaseFilterStrategy):
    handles = frozenset({FilterType.KEYS})

    def __init__(self, keys: Iterable[str]) -> None:
        self.keys = frozenset(keys)

    @property
    def name(self) -> str:
        return "KeyFilter"

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if p.key in self.keys]


class PredicateFilterStrategy(BaseFilterStrategy):
    """Envuelve una función booleana arbitraria."""

    handles = frozenset({FilterType.PREDICATE})

    def __init__(self, predicate: ProjectPredicate, name: str = "PredicateFilter") -> None:
        self.predicate = predicate
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        return [p for p in projects if self.predicate(p)]


class AndFilterStrategy(BaseFilterStrategy):
    def __init__(self, strategies: Sequence[FilterStrategy]) -> None:
        self.strategies = tuple(strategies)

    @property
    def name(self) -> str:
        return f"AndFilter({', '.join(s.name for s in self.strategies)})"

    def can_handle(self, filter_type: FilterType | str) -> bool:
        return filter_type in ("and", "combined")

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        filtered = list(projects)
        for strategy in self.strategies:
            filtered = strategy.apply(filtered)
        return filtered


class OrFilterStrategy(BaseFilterStrategy):
    def __init__(self, strategies: Sequence[FilterStrategy]) -> None:
        self.strategies = tuple(strategies)

    @property
    def name(self) -> str:
        return f"OrFilter({', '.join(s.name for s in self.strategies)})"

    def can_handle(self, filter_type: FilterType | str) -> bool:
        return filter_type == "or"

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]:
        if not self.strategies:
            return list(projects)

        seen: set[str] = set()
        merged: list[ProjectData] = []
        for strategy in self.strategies:
            for project in strategy.apply(projects):
                if project.key in seen:
                    continue
                seen.add(project.key)
                merged.append(project)
        return merged


def _pass_through(_: ProjectData) -> bool:
    return True


class ProjectFilterBuilder:
    """Acumula estrategias y produce una sola."""

    def __init__(self) -> None:
        self._strategies: list[FilterStrategy] = []

    def add_strategy(self, strategy: FilterStrategy) -> ProjectFilterBuilder:
        self._strategies.append(strategy)
        return self

    def add_predicate(self, predicate: ProjectPredicate, name: str = "PredicateFilter") -> ProjectFilterBuilder:
        self._strategies.append(PredicateFilterStrategy(predicate, name))
        return self

    def and_(self, strategies: Sequence[FilterStrategy]) -> ProjectFilterBuilder:
        self._strategies.append(AndFilterStrategy(strategies))
        return self

    def or_(self, strategies: Sequence[FilterStrategy]) -> ProjectFilterBuilder:
        self._strategies.append(OrFilterStrategy(strategies))
        return self

    def build(self) -> FilterStrategy:
        if not self._strategies:
            return PredicateFilterStrategy(_pass_through, "NoOpFilter")
        if len(self._strategies) == 1:
            return self._strategies[0]
        return AndFilterStrategy(self._strategies)

    @classmethod
    def coverage_above(cls, threshold: float) -> ProjectFilterBuilder:
        return cls().add_strategy(CoverageFilterStrategy(min_coverage=threshold))

    @classmethod
    def coverage_below(cls, threshold: float) -> ProjectFilterBuilder:
        return cls().add_strategy(CoverageFilterStrategy(max_coverage=threshold))

    @classmethod
    def name_matches(cls, pattern: str, case_sensitive: bool = True) -> ProjectFilterBuilder:
        return cls().add_strategy(NamePatternFilterStrategy(pattern, case_sensitive=case_sensitive))

    @classmethod
    def analyzed_after(cls, start: datetime) -> ProjectFilterBuilder:
        return cls().add_strategy(DateRangeFilterStrategy(start_date=start))

    @classmethod
    def has_languages(cls, languages: Iterable[str]) -> ProjectFilterBuilder:
        return cls().add_strategy(LanguageFilterStrategy(languages))


# ---------------------------------------------------------------------------
# Descriptores declarativos -> estrategias
# ---------------------------------------------------------------------------


def _param(params: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if params.get(name) is not None:
            return params[name]
    return None


def _as_float(value: Any, field: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Filter parameter {field!r} must be a number, got {value!r}") from exc


def _as_datetime(value: Any, field: str, *, end_of_day: bool = False) -> datetime | None:
    """Acepta datetime, date o string ISO. Una fecha sin hora cubre el día completo."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return _as_datetime(date.fromisoformat(text), field, end_of_day=end_of_day)
            return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError as exc:
            raise ConfigurationError(f"Filter parameter {field!r} is not a valid date: {value!r}") from exc
    raise ConfigurationError(f"Filter parameter {field!r} is not a valid date: {value!r}")


def _as_str_list(value: Any, field: str) -> list[str]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        raise ConfigurationError(f"Filter parameter {field!r} must be a list of strings")
    cleaned = [str(item).strip() for item in items if str(item).strip()]
    if not cleaned:
        raise ConfigurationError(f"Filter parameter {field!r} cannot be empty")
    return cleaned


def _coverage_from(params: Mapping[str, Any]) -> FilterStrategy:
    return CoverageFilterStrategy(
        min_coverage=_as_float(_param(params, "min_coverage", "minCoverage"), "min_coverage"),
        max_coverage=_as_float(_param(params, "max_coverage", "maxCoverage"), "max_coverage"),
    )


def _name_from(params: Mapping[str, Any]) -> FilterStrategy:
    pattern = _param(params, "pattern")
    if not isinstance(pattern, str):
        raise ConfigurationError("Name filter requires a 'pattern' string")
    case_sensitive = _param(params, "case_sensitive", "caseSensitive")
    return NamePatternFilterStrategy(pattern, case_sensitive=True if case_sensitive is None else bool(case_sensitive))


def _date_from(params: Mapping[str, Any]) -> FilterStrategy:
    return DateRangeFilterStrategy(
        start_date=_as_datetime(_param(params, "start_date", "startDate"), "start_date"),
        end_date=_as_datetime(_param(params, "end_date", "endDate"), "end_date", end_of_day=True),
    )


def _language_from(params: Mapping[str, Any]) -> FilterStrategy:
    return LanguageFilterStrategy(_as_str_list(_param(params, "languages", "language"), "languages"))


def _keys_from(params: Mapping[str, Any]) -> FilterStrategy:
    return KeyFilterStrategy(_as_str_list(_param(params, "keys", "projects"), "keys"))


def _predicate_from(params: Mapping[str, Any]) -> FilterStrategy:
    predicate = _param(params, "predicate")
    if not callable(predicate):
        raise ConfigurationError("Predicate filter requires a callable 'predicate'")
    return PredicateFilterStrategy(predicate, str(_param(params, "name") or "PredicateFilter"))


_STRATEGY_FACTORIES: dict[FilterType, Callable[[Mapping[str, Any]], FilterStrategy]] = {
    FilterType.COVERAGE: _coverage_from,
    FilterType.NAME: _name_from,
    FilterType.DATE: _date_from,
    FilterType.LANGUAGE: _language_from,
    FilterType.KEYS: _keys_from,
    FilterType.PREDICATE: _predicate_from,
}


def strategy_from_config(config: FilterConfig) -> FilterStrategy:
    """Construye la estrategia post-fetch de un descriptor."""

    return _STRATEGY_FACTORIES[config.type](config.params)


def _query_filters_from(config: FilterConfig) -> tuple[list[QueryFilter], FilterStrategy | None]:
    params = config.params
    if config.type is FilterType.NAME:
        query = _param(params, "query", "pattern")
        if not isinstance(query, str) or not query.strip():
            raise ConfigurationError("Query-level name filter requires a 'query' string")
        return [ProjectNameQueryFilter(query=query.strip())], None

    if config.type is FilterType.KEYS:
        return [key_query(_as_str_list(_param(params, "keys", "projects"), "keys"))], None

    if config.type is FilterType.DATE:
        query_filters: list[QueryFilter] = []
        end = _as_datetime(_param(params, "end_date", "endDate"), "end_date", end_of_day=True)
        if end is not None:
            # analyzedBefore es exclusivo: se pide el día siguiente y el límite
            # exacto (inclusive) se vuelve a aplicar post-fetch.
            query_filters.append(AnalyzedBeforeQueryFilter(before=end.date() + timedelta(days=1)))
        start = _as_datetime(_param(params, "start_date", "startDate"), "start_date")
        # SonarQube no tiene analyzedAfter: el inicio se aplica post-fetch.
        remainder = None
        if start is not None or end is not None:
            remainder = DateRangeFilterStrategy(start_date=start, end_date=end)
        return query_filters, remainder

    raise ConfigurationError(f"Filter type {config.type.value!r} cannot be applied at query level")


def split_filter_configs(
    configs: Iterable[FilterConfig],
    base: Iterable[FilterStrategy] = (),
) -> tuple[list[QueryFilter], FilterStrategy]:
    """Separa descriptores en filtros de query y una estrategia post-fetch.

    `base` son estrategias ya construidas (inyectadas en el orquestador); van
    primero en la combinación AND.
    """

    builder = ProjectFilterBuilder()
    for strategy in base:
        builder.add_strategy(strategy)

    query_filters: list[QueryFilter] = []
    for config in configs:
        if config.apply_at_query:
            extra_queries, remainder = _query_filters_from(config)
            query_filters.extend(extra_queries)
            if remainder is not None:
                builder.add_strategy(remainder)
        else:
            builder.add_strategy(strategy_from_config(config))

    strategy = builder.build()
    logger.debug("Post-fetch filter: %s; query filters: %d", strategy.name, len(query_filters))
    return query_filters, strategy
