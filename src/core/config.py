"""Configuración del reporter.

Por qué un único módulo:
- Flags de la CLI, variables `SONAR_*` y archivos `.env` se resuelven en un
  solo lugar (pydantic-settings) y producen un `SonarQubeConfig` tipado.
- `doctor setup` persiste URL/token en el `.env` del usuario para no repetir
  flags en cada ejecución.

Precedencia: flag de CLI > variable de entorno > `.env` del proyecto > `.env`
del usuario.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.report import SonarQubeConfig
from core.errors import ConfigurationError

APP_DIR_NAME = "sonar-coverage-reporter"


def get_user_config_dir() -> Path:
    """Carpeta de configuración del usuario según la plataforma."""

    home = Path.home()
    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA") or home) / APP_DIR_NAME
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / APP_DIR_NAME
    return Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config") / APP_DIR_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _read_env_file(path: Path) -> dict[str, str]:
    """`CLAVE=valor` por línea; ignora comentarios y líneas sin `=`."""

    entries: dict[str, str] = {}
    if not path.exists():
        return entries
    for line in path.read_text(encoding="utf-8").splitlines():
        name, sep, raw = line.strip().partition("=")
        if not sep or name.startswith("#") or not name.strip():
            continue
        entries[name.strip()] = raw.strip().strip("\"'")
    return entries


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Agrega o actualiza claves en el `.env` del usuario (las demás se conservan)."""

    target = env_path or get_user_env_file()
    target.parent.mkdir(parents=True, exist_ok=True)

    merged = _read_env_file(target)
    merged.update((name, value) for name, value in values.items() if value is not None)

    body = "".join(f"{name}={merged[name]}\n" for name in sorted(merged))
    target.write_text(f"# {APP_DIR_NAME} (.env)\n{body}", encoding="utf-8")
    return target


class AppSettings(BaseSettings):
    """Settings de la aplicación (prefijo `SONAR_`).

    Los rangos se validan al cargar: un `SONAR_THRESHOLD=150` falla antes de
    construir cualquier cliente.
    """

    model_config = SettingsConfigDict(
        env_prefix="SONAR_",
        extra="ignore",
        case_sensitive=False,
        # El último gana: el .env del proyecto pisa al del usuario.
        env_file=(str(get_user_env_file()), ".env"),
        env_file_encoding="utf-8",
    )

    url: str | None = Field(
        default=None,
        description="URL base del servidor SonarQube.",
    )
    token: SecretStr | None = Field(
        default=None,
        description="Token de usuario SonarQube (Bearer).",
    )
    threshold: float = Field(
        default=50.0,
        ge=0,
        le=100,
        description="Coverage mínimo esperado por defecto.",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    user_agent: str = Field(
        default="sonar-coverage-reporter/0.1",
        min_length=1,
        description="User-Agent para peticiones a SonarQube.",
    )
    max_concurrency: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Proyectos consultados en paralelo (coverage + metadata).",
    )
    page_size: int = Field(
        default=500,
        ge=1,
        le=500,
        description="Tamaño de página de api/projects/search (máximo 500).",
    )

    def to_sonarqube_config(self, *, url: str | None = None, token: str | None = None) -> SonarQubeConfig:
        """Combina flags de CLI (ganan) con env/.env.

        Lanza `ConfigurationError` si falta URL o token.
        """

        resolved_url = (url or self.url or "").strip()
        resolved_token = token or (self.token.get_secret_value() if self.token else "")
        if not resolved_url:
            raise ConfigurationError("SonarQube URL is required. Use --sonar-url or set SONAR_URL.")
        if not resolved_token:
            raise ConfigurationError("SonarQube token is required. Use --sonar-token or set SONAR_TOKEN.")
        return SonarQubeConfig(
            base_url=resolved_url.rstrip("/"),
            token=SecretStr(resolved_token),
            timeout_seconds=self.http_timeout_seconds,
        )
