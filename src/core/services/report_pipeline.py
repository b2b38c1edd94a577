"""Orquestación del reporte de coverage.

Máquina de estados lineal:

    idle -> config -> authenticate -> fetch -> filter -> classify
         -> generate -> (persist) -> done

Cualquier fallo se envuelve en `ReportError` con la fase y la causa original
y se relanza; nunca se continúa después de una fase fallida. Los efectos de
UI (progreso, spinners) quedan fuera: la CLI se engancha vía `ReportHooks`.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Sequence
from urllib.parse import urlparse

from adapters.csv_exporter import write_report_csv
from core.domain.category import CoverageCategory
from core.domain.models import CategorizedProject, ProjectData
from core.domain.report import ReportConfig, ReportResult
from core.errors import ConfigurationError, ReportError, ReportPhase
from core.interfaces.filtering import FilterStrategy
from core.interfaces.source import ProjectSource
from core.services.classifier import classify
from core.services.csv_report import CsvReporter, check_csv_config
from core.services.filters import split_filter_configs

logger = logging.getLogger(__name__)

Classifier = Callable[[float, float], CoverageCategory]
ReportSink = Callable[[str, Path], Awaitable[Path]]


@dataclass
class ReportHooks:
    """Callbacks opcionales para capas de UI (progreso)."""

    on_phase: Callable[[ReportPhase], None] | None = None
    on_fetching_projects: Callable[[], None] | None = None
    on_filtering: Callable[[int, int], None] | None = None
    on_project_processed: Callable[[CategorizedProject, int, int], None] | None = None
    on_generating_csv: Callable[[], None] | None = None
    on_complete: Callable[[ReportResult], None] | None = None


@dataclass(frozen=True)
class ReportDependencies:
    client: ProjectSource
    filters: tuple[FilterStrategy, ...]
    classifier: Classifier
    reporter: CsvReporter
    sink: ReportSink = field(default=write_report_csv)


def _wrap(phase: ReportPhase, exc: BaseException) -> ReportError:
    if isinstance(exc, ReportError):
        return exc
    return ReportError(f"Error in {phase.value} phase: {exc}", phase=phase, cause=exc)


def _is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sort_by_name(projects: Sequence[ProjectData]) -> list[ProjectData]:
    return sorted(projects, key=lambda p: (p.name, p.key))


def count_categories(records: Sequence[CategorizedProject]) -> dict[str, int]:
    """Cantidad por etiqueta; solo aparecen las categorías presentes."""

    return dict(Counter(record.category.label() for record in records))


class ReportOrchestrator:
    """Coordina fuente -> filtros -> clasificador -> CSV -> (archivo).

    Las dependencias se inyectan por constructor; `filters` son estrategias ya
    construidas que se combinan (AND) con los descriptores de `ReportConfig`.
    """

    def __init__(
        self,
        client: ProjectSource,
        filters: Sequence[FilterStrategy] = (),
        *,
        classifier: Classifier = classify,
        reporter: CsvReporter | None = None,
        sink: ReportSink = write_report_csv,
    ) -> None:
        self._deps = ReportDependencies(
            client=client,
            filters=tuple(filters),
            classifier=classifier,
            reporter=reporter or CsvReporter(),
            sink=sink,
        )
        self.phase = ReportPhase.IDLE

    def dependencies(self) -> ReportDependencies:
        return self._deps

    def _enter(self, phase: ReportPhase, hooks: ReportHooks) -> None:
        logger.debug("Report phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        if hooks.on_phase:
            hooks.on_phase(phase)

    def validate_config(self, config: ReportConfig) -> bool:
        """Valida URL, token, umbral y formato CSV sin tocar la red."""

        try:
            sonar = config.sonarqube
            if not sonar.base_url:
                raise ConfigurationError("SonarQube base URL is required")
            if not sonar.token.get_secret_value():
                raise ConfigurationError("SonarQube token is required")
            if not _is_valid_url(sonar.base_url):
                raise ConfigurationError(f"Invalid SonarQube base URL: {sonar.base_url!r}")

            threshold = config.classification.threshold
            if not 0 <= threshold <= 100:
                raise ConfigurationError(f"Classification threshold must be between 0 and 100, got {threshold}")

            check_csv_config(config.csv)
        except Exception as exc:
            raise _wrap(ReportPhase.CONFIG, exc) from exc
        return True

    async def generate_report(self, config: ReportConfig, hooks: ReportHooks | None = None) -> ReportResult:
        hooks = hooks or ReportHooks()
        deps = self._deps
        started = time.perf_counter()

        self._enter(ReportPhase.CONFIG, hooks)
        self.validate_config(config)
        try:
            query_filters, strategy = split_filter_configs(config.filters, deps.filters)
        except Exception as exc:
            raise _wrap(ReportPhase.CONFIG, exc) from exc

        try:
            self._enter(ReportPhase.AUTHENTICATE, hooks)
            await deps.client.authenticate()

            self._enter(ReportPhase.FETCH, hooks)
            if hooks.on_fetching_projects:
                hooks.on_fetching_projects()
            projects = await deps.client.fetch_projects(query_filters)
        except Exception as exc:
            raise _wrap(ReportPhase.FETCH, exc) from exc

        self._enter(ReportPhase.FILTER, hooks)
        try:
            before = len(projects)
            filtered = strategy.apply(list(projects))
            logger.debug("Filter %s: %d -> %d projects", strategy.name, before, len(filtered))
            if hooks.on_filtering:
                hooks.on_filtering(before, len(filtered))
        except Exception as exc:
            raise _wrap(ReportPhase.FILTER, exc) from exc

        self._enter(ReportPhase.CLASSIFY, hooks)
        threshold = config.classification.threshold
        try:
            ordered = sort_by_name(filtered) if config.sort_by_name else filtered
            total = len(ordered)
            categorized: list[CategorizedProject] = []
            for index, project in enumerate(ordered, start=1):
                record = CategorizedProject(
                    project=project,
                    category=deps.classifier(project.coverage_percent, threshold),
                    threshold=threshold,
                )
                categorized.append(record)
                if hooks.on_project_processed:
                    hooks.on_project_processed(record, index, total)
        except Exception as exc:
            raise _wrap(ReportPhase.CLASSIFY, exc) from exc

        self._enter(ReportPhase.GENERATE, hooks)
        try:
            if hooks.on_generating_csv:
                hooks.on_generating_csv()
            csv_content = deps.reporter.generate(categorized, config.csv)
            result = ReportResult(
                csv_content=csv_content,
                project_count=len(categorized),
                category_counts=count_categories(categorized),
                processing_time_ms=(time.perf_counter() - started) * 1000,
                config=config,
            )
        except Exception as exc:
            raise _wrap(ReportPhase.GENERATE, exc) from exc

        if config.output_path is not None:
            self._enter(ReportPhase.PERSIST, hooks)
            try:
                written = await deps.sink(csv_content, config.output_path)
            except Exception as exc:
                raise ReportError(
                    f"Error in {ReportPhase.PERSIST.value} phase: {exc}",
                    phase=ReportPhase.PERSIST,
                    cause=exc,
                    result=result,
                ) from exc
            result = result.model_copy(
                update={
                    "output_path": written,
                    "processing_time_ms": (time.perf_counter() - started) * 1000,
                }
            )

        self._enter(ReportPhase.DONE, hooks)
        if hooks.on_complete:
            hooks.on_complete(result)
        return result
