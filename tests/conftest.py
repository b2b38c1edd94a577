from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import pytest
from pydantic import SecretStr

from core.domain.models import ProjectData
from core.domain.report import ReportConfig, SonarQubeConfig
from core.interfaces.filtering import QueryFilter

ProjectFactory = Callable[..., ProjectData]


@pytest.fixture
def make_project() -> ProjectFactory:
    def build(
        name: str,
        coverage: float | None = 0.0,
        *,
        key: str | None = None,
        metadata: dict[str, Any] | None = None,
        last_analysis: datetime | None = None,
    ) -> ProjectData:
        return ProjectData(
            name=name,
            key=key or name,
            coverage_percent=coverage,
            metadata=metadata or {},
            last_analysis=last_analysis or datetime(2024, 1, 15, tzinfo=timezone.utc),
        )

    return build


@pytest.fixture
def frontend_projects(make_project: ProjectFactory) -> list[ProjectData]:
    """fe-app (0%), fe-lib (30%), fe-core (80%)."""
    return [
        make_project("fe-app", 0),
        make_project("fe-lib", 30),
        make_project("fe-core", 80),
    ]


class FakeSource:
    """In-memory ProjectSource that records calls."""

    def __init__(
        self,
        projects: Sequence[ProjectData] = (),
        *,
        auth_error: Exception | None = None,
        fetch_error: Exception | None = None,
    ) -> None:
        self.projects = list(projects)
        self.auth_error = auth_error
        self.fetch_error = fetch_error
        self.authenticated = False
        self.query_filters: list[QueryFilter] | None = None

    async def authenticate(self) -> None:
        if self.auth_error is not None:
            raise self.auth_error
        self.authenticated = True

    async def fetch_projects(self, query_filters: Sequence[QueryFilter] = ()) -> list[ProjectData]:
        self.query_filters = list(query_filters)
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.projects)


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    return FakeSource


@pytest.fixture
def report_config() -> Callable[..., ReportConfig]:
    def build(**overrides: Any) -> ReportConfig:
        sonar = SonarQubeConfig(base_url="https://sonar.example.com", token=SecretStr("s3cr3t-token"))
        return ReportConfig(sonarqube=sonar, **overrides)

    return build
