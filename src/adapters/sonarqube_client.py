"""Cliente de la Web API de SonarQube.

Endpoints usados:
- `api/authentication/validate`   -> valida el token.
- `api/projects/search`           -> listado paginado (p/ps) de proyectos.
- `api/measures/component`        -> coverage + distribución de lenguajes.
- `api/components/show`           -> datos del componente.
- `api/qualitygates/project_status` -> estado del quality gate.

Reglas:
- Un fallo al obtener el detalle de *un* proyecto no aborta el lote: se
  registra un warning y el proyecto entra degradado (coverage 0).
- Un fallo del listado o de autenticación sí aborta (`DataSourceError`).
- El token viaja solo en el header `Authorization`; nunca en mensajes.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.models import ProjectData
from core.domain.report import SonarQubeConfig
from core.errors import AuthenticationError, DataSourceError
from core.interfaces.filtering import QueryFilter
from core.services.query_filters import combine_query_params

logger = logging.getLogger(__name__)

COVERAGE_METRIC = "coverage"
LANGUAGES_METRIC = "ncloc_language_distribution"

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


class SonarQubeApiError(DataSourceError):
    """Error HTTP/red contra la API de SonarQube."""


def parse_sonar_datetime(value: Any) -> datetime:
    """Parsea fechas de SonarQube (`2024-01-31T10:00:00+0000`).

    Ausente o inválida: ahora (UTC).
    """

    if not isinstance(value, str) or not value.strip():
        return datetime.now(timezone.utc)
    text = _COMPACT_OFFSET.sub(r"\1:\2", value.strip().replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_coverage(value: Any) -> float:
    """Coverage de una medida; ausente, no numérico, negativo o no finito -> 0."""

    if value is None:
        return 0.0
    try:
        coverage = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(coverage) or coverage < 0:
        return 0.0
    return coverage


def parse_language_distribution(value: Any) -> list[str]:
    """`"java=120;ts=40"` -> `["java", "ts"]`."""

    if not isinstance(value, str):
        return []
    languages: list[str] = []
    for chunk in value.split(";"):
        language = chunk.split("=", 1)[0].strip()
        if language and language not in languages:
            languages.append(language)
    return languages


class SonarQubeClient:
    """Implementa `core.interfaces.source.ProjectSource` sobre httpx."""

    def __init__(
        self,
        config: SonarQubeConfig,
        settings: AppSettings | None = None,
        *,
        max_concurrency: int | None = None,
        page_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> None:
        self._config = config
        self._settings = settings or AppSettings()
        self._max_concurrency = max(1, max_concurrency or self._settings.max_concurrency)
        self._page_size = page_size or self._settings.page_size
        self._transport = transport
        self._on_warning = on_warning

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _client(self) -> httpx.AsyncClient:
        return build_async_client(
            self._settings,
            base_url=self._config.base_url,
            token=self._config.token.get_secret_value(),
            timeout_seconds=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            resp = await client.get(endpoint, params=params)
        except httpx.HTTPError as exc:
            raise SonarQubeApiError(f"Network error on {endpoint}: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"SonarQube rejected the credentials (HTTP {resp.status_code}) on {endpoint}",
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise SonarQubeApiError(
                f"HTTP {resp.status_code} on {endpoint}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise SonarQubeApiError(
                f"Invalid JSON from {endpoint}",
                status_code=resp.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise SonarQubeApiError(f"Unexpected payload from {endpoint}", status_code=resp.status_code)
        return data

    async def authenticate(self) -> None:
        async with self._client() as client:
            data = await self._get_json(client, "/api/authentication/validate")
        if not data.get("valid"):
            raise AuthenticationError("SonarQube token validation failed")

    async def server_status(self) -> str:
        """Estado reportado por `api/system/status` (UP, STARTING, ...)."""

        async with self._client() as client:
            data = await self._get_json(client, "/api/system/status")
        return str(data.get("status") or "UNKNOWN")

    async def _list_components(
        self,
        client: httpx.AsyncClient,
        params: dict[str, str],
    ) -> list[dict[str, Any]]:
        components: list[dict[str, Any]] = []
        page = 1
        while True:
            data = await self._get_json(
                client,
                "/api/projects/search",
                {**params, "p": str(page), "ps": str(self._page_size)},
            )
            batch = data.get("components")
            if not isinstance(batch, list) or not batch:
                break
            components.extend(c for c in batch if isinstance(c, dict) and c.get("key"))

            paging = data.get("paging") if isinstance(data.get("paging"), dict) else {}
            total = paging.get("total")
            logger.debug("Listed page %d (%d components, total=%s)", page, len(batch), total)
            if not isinstance(total, int) or page * self._page_size >= total:
                break
            page += 1
        return components

    async def _fetch_measures(self, client: httpx.AsyncClient, project_key: str) -> tuple[float, list[str]]:
        data = await self._get_json(
            client,
            "/api/measures/component",
            {"component": project_key, "metricKeys": f"{COVERAGE_METRIC},{LANGUAGES_METRIC}"},
        )
        component = data.get("component") if isinstance(data.get("component"), dict) else {}
        measures = component.get("measures") if isinstance(component.get("measures"), list) else []

        coverage = 0.0
        languages: list[str] = []
        for measure in measures:
            if not isinstance(measure, dict):
                continue
            if measure.get("metric") == COVERAGE_METRIC:
                coverage = parse_coverage(measure.get("value"))
            elif measure.get("metric") == LANGUAGES_METRIC:
                languages = parse_language_distribution(measure.get("value"))
        return coverage, languages

    async def _fetch_metadata(self, client: httpx.AsyncClient, project_key: str) -> dict[str, Any]:
        details, gate = await asyncio.gather(
            self._get_json(client, "/api/components/show", {"component": project_key}),
            self._get_json(client, "/api/qualitygates/project_status", {"projectKey": project_key}),
        )
        component = details.get("component")
        metadata: dict[str, Any] = dict(component) if isinstance(component, dict) else {}
        status = gate.get("projectStatus")
        metadata["qualityGate"] = status if isinstance(status, dict) else {}
        return metadata

    async def fetch_coverage(self, project_key: str) -> float:
        async with self._client() as client:
            coverage, _ = await self._fetch_measures(client, project_key)
        return coverage

    async def fetch_project_metadata(self, project_key: str) -> dict[str, Any]:
        async with self._client() as client:
            return await self._fetch_metadata(client, project_key)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._on_warning:
            self._on_warning(message)

    async def _build_project(self, client: httpx.AsyncClient, component: dict[str, Any]) -> ProjectData:
        key = str(component["key"])
        name = str(component.get("name") or key)
        last_analysis = parse_sonar_datetime(component.get("lastAnalysisDate"))

        try:
            (coverage, languages), metadata = await asyncio.gather(
                self._fetch_measures(client, key),
                self._fetch_metadata(client, key),
            )
        except DataSourceError as exc:
            self._warn(f"Failed to fetch data for project {key}: {exc}")
            return ProjectData(
                name=name,
                key=key,
                coverage_percent=0.0,
                metadata={"error": "Failed to fetch additional data", "detail": str(exc)},
                last_analysis=last_analysis,
            )

        if languages:
            metadata["languages"] = languages
        return ProjectData(
            name=name,
            key=key,
            coverage_percent=coverage,
            metadata=metadata,
            last_analysis=last_analysis,
        )

    async def fetch_projects(self, query_filters: Sequence[QueryFilter] = ()) -> list[ProjectData]:
        params = combine_query_params(query_filters)
        async with self._client() as client:
            components = await self._list_components(client, params)
            logger.info("Fetched %d projects from %s", len(components), self._config.base_url)

            sem = asyncio.Semaphore(self._max_concurrency)

            async def load(component: dict[str, Any]) -> ProjectData:
                async with sem:
                    return await self._build_project(client, component)

            return list(await asyncio.gather(*(load(c) for c in components)))
