"""Contrato de la fuente de datos (SonarQube u otra).

Por qué Protocol:
- El orquestador depende de la forma, no de `SonarQubeClient`.
- Los tests inyectan fuentes en memoria sin levantar HTTP.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from core.domain.models import ProjectData
    from core.interfaces.filtering import QueryFilter


@runtime_checkable
class ProjectSource(Protocol):
    """Contrato mínimo de una fuente de proyectos.

    Reglas de diseño:
    - Ambos métodos son asíncronos porque hacen I/O (HTTP).
    - `fetch_projects` devuelve la colección completa y ordenada; los fallos de
      un proyecto individual se degradan a coverage 0, nunca se propagan.
    """

    async def authenticate(self) -> None:
        """Valida las credenciales; lanza `AuthenticationError` si se rechazan."""

        ...

    async def fetch_projects(self, query_filters: Sequence[QueryFilter] = ()) -> list[ProjectData]:
        """Devuelve los proyectos con coverage y metadata resueltos."""

        ...
