import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest
from pydantic import SecretStr

from adapters.sonarqube_client import (
    SonarQubeApiError,
    SonarQubeClient,
    parse_coverage,
    parse_language_distribution,
    parse_sonar_datetime,
)
from core.config import AppSettings
from core.domain.filtering import FilterConfig
from core.domain.report import SonarQubeConfig
from core.errors import AuthenticationError, DataSourceError
from core.interfaces.source import ProjectSource
from core.services.filters import split_filter_configs
from core.services.query_filters import ProjectKeyQueryFilter, ProjectNameQueryFilter

TOKEN = "squ_very_secret"


def _config() -> SonarQubeConfig:
    return SonarQubeConfig(base_url="https://sonar.example.com", token=SecretStr(TOKEN))


def _settings() -> AppSettings:
    return AppSettings(_env_file=None)


class FakeSonar:
    """Servidor SonarQube mínimo sobre httpx.MockTransport."""

    def __init__(self, projects: list[dict], *, failing_keys: set[str] = frozenset(), valid: bool = True) -> None:
        self.projects = projects
        self.failing_keys = failing_keys
        self.valid = valid
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if path == "/api/authentication/validate":
            return httpx.Response(200, json={"valid": self.valid})
        if path == "/api/system/status":
            return httpx.Response(200, json={"status": "UP"})
        if path == "/api/projects/search":
            page, size = int(params["p"]), int(params["ps"])
            selected = self.projects
            if "projects" in params:
                keys = params["projects"].split(",")
                selected = [p for p in selected if p["key"] in keys]
            if "analyzedBefore" in params:
                # SonarQube: solo proyectos analizados antes de esa fecha (exclusivo).
                cutoff = params["analyzedBefore"]
                selected = [p for p in selected if p.get("date") and p["date"][:10] < cutoff]
            chunk = selected[(page - 1) * size : page * size]
            components = [
                {"key": p["key"], "name": p["name"], "lastAnalysisDate": p.get("date")} for p in chunk
            ]
            return httpx.Response(
                200,
                json={"paging": {"pageIndex": page, "pageSize": size, "total": len(selected)}, "components": components},
            )

        key = params.get("component") or params.get("projectKey")
        if key in self.failing_keys:
            return httpx.Response(500, text="internal error")
        project = next(p for p in self.projects if p["key"] == key)

        if path == "/api/measures/component":
            measures = []
            if project.get("coverage") is not None:
                measures.append({"metric": "coverage", "value": project["coverage"]})
            if project.get("languages"):
                measures.append({"metric": "ncloc_language_distribution", "value": project["languages"]})
            return httpx.Response(200, json={"component": {"key": key, "measures": measures}})
        if path == "/api/components/show":
            return httpx.Response(200, json={"component": {"key": key, "qualifier": "TRK"}})
        if path == "/api/qualitygates/project_status":
            return httpx.Response(200, json={"projectStatus": {"status": "OK"}})
        return httpx.Response(404)

    def client(self, **kwargs) -> SonarQubeClient:
        return SonarQubeClient(_config(), _settings(), transport=httpx.MockTransport(self.handler), **kwargs)


PROJECTS = [
    {"key": "fe-app", "name": "fe-app", "coverage": "0.0", "date": "2024-01-31T10:00:00+0000"},
    {"key": "fe-lib", "name": "fe-lib", "coverage": "30.0", "languages": "ts=120;css=40"},
    {"key": "fe-core", "name": "fe-core", "coverage": "80.5"},
    {"key": "docs", "name": "docs"},
]


def test_client_satisfies_project_source() -> None:
    assert isinstance(FakeSonar([]).client(), ProjectSource)


def test_fetch_projects_resolves_coverage_and_metadata() -> None:
    server = FakeSonar(PROJECTS)

    projects = asyncio.run(server.client().fetch_projects())

    by_key = {p.key: p for p in projects}
    assert [p.key for p in projects] == ["fe-app", "fe-lib", "fe-core", "docs"]
    assert by_key["fe-lib"].coverage_percent == 30.0
    assert by_key["fe-core"].coverage_percent == 80.5
    assert by_key["docs"].coverage_percent == 0.0
    assert by_key["fe-lib"].metadata["languages"] == ("ts", "css")
    assert by_key["fe-app"].metadata["qualityGate"] == {"status": "OK"}
    assert "languages" not in by_key["fe-app"].metadata
    assert by_key["fe-app"].last_analysis == datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)


def test_fetch_projects_pages_through_results() -> None:
    many = [{"key": f"svc-{i:02d}", "name": f"svc-{i:02d}", "coverage": "50"} for i in range(7)]
    server = FakeSonar(many)

    projects = asyncio.run(server.client(page_size=3, max_concurrency=2).fetch_projects())

    assert [p.key for p in projects] == [p["key"] for p in many]
    pages = [r.url.params["p"] for r in server.requests if r.url.path == "/api/projects/search"]
    assert pages == ["1", "2", "3"]


def test_query_filters_are_sent_as_params() -> None:
    server = FakeSonar(PROJECTS)
    filters = [ProjectKeyQueryFilter(keys=("fe-lib", "docs")), ProjectNameQueryFilter(query="e")]

    projects = asyncio.run(server.client().fetch_projects(filters))

    assert [p.key for p in projects] == ["fe-lib", "docs"]
    search = next(r for r in server.requests if r.url.path == "/api/projects/search")
    assert search.url.params["projects"] == "fe-lib,docs"
    assert search.url.params["q"] == "e"


def test_failing_project_is_degraded_not_fatal() -> None:
    server = FakeSonar(PROJECTS, failing_keys={"fe-core"})
    warnings: list[str] = []

    projects = asyncio.run(server.client(on_warning=warnings.append).fetch_projects())

    degraded = next(p for p in projects if p.key == "fe-core")
    assert len(projects) == 4
    assert degraded.coverage_percent == 0.0
    assert degraded.metadata["error"] == "Failed to fetch additional data"
    assert "HTTP 500" in degraded.metadata["detail"]
    assert len(warnings) == 1
    assert "fe-core" in warnings[0]


def test_requests_carry_bearer_token() -> None:
    server = FakeSonar(PROJECTS[:1])

    asyncio.run(server.client().fetch_projects())

    assert server.requests
    for request in server.requests:
        assert request.headers["Authorization"] == f"Bearer {TOKEN}"
        assert request.headers["Accept"] == "application/json"
        assert TOKEN not in str(request.url)


def test_authenticate_valid_and_invalid() -> None:
    asyncio.run(FakeSonar([]).client().authenticate())

    with pytest.raises(AuthenticationError):
        asyncio.run(FakeSonar([], valid=False).client().authenticate())


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_credentials_raise_authentication_error(status: int) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"errors": []}))
    client = SonarQubeClient(_config(), _settings(), transport=transport)

    with pytest.raises(AuthenticationError) as excinfo:
        asyncio.run(client.fetch_projects())

    assert excinfo.value.status_code == status
    assert TOKEN not in str(excinfo.value)


def test_listing_failure_aborts_fetch() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway"))
    client = SonarQubeClient(_config(), _settings(), transport=transport)

    with pytest.raises(SonarQubeApiError) as excinfo:
        asyncio.run(client.fetch_projects())

    assert isinstance(excinfo.value, DataSourceError)
    assert excinfo.value.status_code == 502


def test_network_error_is_data_source_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = SonarQubeClient(_config(), _settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(DataSourceError, match="Network error"):
        asyncio.run(client.authenticate())


def test_invalid_json_is_data_source_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
    client = SonarQubeClient(_config(), _settings(), transport=transport)

    with pytest.raises(SonarQubeApiError, match="Invalid JSON"):
        asyncio.run(client.authenticate())


def test_server_status_and_single_project_helpers() -> None:
    client = FakeSonar(PROJECTS).client()

    assert asyncio.run(client.server_status()) == "UP"
    assert asyncio.run(client.fetch_coverage("fe-core")) == 80.5
    metadata = asyncio.run(client.fetch_project_metadata("fe-lib"))
    assert metadata["qualifier"] == "TRK"
    assert metadata["qualityGate"]["status"] == "OK"


def test_parse_sonar_datetime() -> None:
    assert parse_sonar_datetime("2024-01-31T10:00:00+0000") == datetime(2024, 1, 31, 10, tzinfo=timezone.utc)
    assert parse_sonar_datetime("2024-01-31T10:00:00Z") == datetime(2024, 1, 31, 10, tzinfo=timezone.utc)
    assert parse_sonar_datetime("2024-01-31T10:00:00").tzinfo is timezone.utc

    before = datetime.now(timezone.utc)
    for value in (None, "", "yesterday", 42):
        parsed = parse_sonar_datetime(value)
        assert parsed >= before
        assert parsed.tzinfo is not None


@pytest.mark.parametrize(
    ("value", "expected"),
    [("42.5", 42.5), (100, 100.0), (None, 0.0), ("", 0.0), ("n/a", 0.0), ("-3", 0.0), ("nan", 0.0), ("inf", 0.0)],
)
def test_parse_coverage(value, expected: float) -> None:
    assert parse_coverage(value) == expected


def test_parse_language_distribution() -> None:
    assert parse_language_distribution("java=120;ts=40;java=3") == ["java", "ts"]
    assert parse_language_distribution("") == []
    assert parse_language_distribution(None) == []


def test_degraded_detail_is_json_serializable() -> None:
    server = FakeSonar(PROJECTS[:1], failing_keys={"fe-app"})
    projects = asyncio.run(server.client().fetch_projects())
    dumped = json.loads(projects[0].model_dump_json())
    assert dumped["metadata"]["error"] == "Failed to fetch additional data"


def test_query_level_end_date_keeps_projects_analyzed_that_day() -> None:
    server = FakeSonar(
        [
            {"key": "p", "name": "p", "coverage": "60", "date": "2024-06-30T12:00:00+0000"},
            {"key": "late", "name": "late", "coverage": "60", "date": "2024-07-01T08:00:00+0000"},
        ]
    )
    query_filters, strategy = split_filter_configs(
        [FilterConfig(type="date", params={"end_date": "2024-06-30"}, applyAtQuery=True)]
    )

    fetched = asyncio.run(server.client().fetch_projects(query_filters))

    assert [p.key for p in strategy.apply(fetched)] == ["p"]
