"""Contratos de filtrado (Strategy)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from core.domain.filtering import FilterType
    from core.domain.models import ProjectData

ProjectPredicate = Callable[["ProjectData"], bool]


@runtime_checkable
class FilterStrategy(Protocol):
    """Filtro post-fetch sobre una colección de proyectos.

    - `apply` devuelve una subsecuencia (puede ser vacía) respetando el orden.
    - `can_handle` permite enrutar descriptores declarativos.
    - `name` es un identificador estable para logs/tests.
    """

    @property
    def name(self) -> str: ...

    def apply(self, projects: list[ProjectData]) -> list[ProjectData]: ...

    def can_handle(self, filter_type: FilterType | str) -> bool: ...


@runtime_checkable
class QueryFilter(Protocol):
    """Filtro que se resuelve en SonarQube como parámetros de la request."""

    def api_params(self) -> dict[str, str]: ...
