"""Exportación del CSV a disco.

Por qué está en adapters:
- Escribir archivos es infraestructura; el Core solo produce texto.

Garantías:
- UTF-8, contenido completo: se escribe a un temporal en el mismo directorio y
  se reemplaza con `os.replace`, así un lector nunca ve un archivo a medias.
- Cualquier `OSError` se convierte en `PersistenceError` (nunca se silencia).
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

from core.errors import PersistenceError


def export_report_csv(*, content: str, output_path: Path) -> Path:
    """Escribe `content` en `output_path` de forma atómica."""

    output_path = Path(output_path)
    tmp_name: str | None = None
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.",
            suffix=".tmp",
            dir=str(output_path.parent),
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, output_path)
        tmp_name = None
    except OSError as exc:
        raise PersistenceError(
            f"Failed to write CSV file to {output_path}: {exc.strerror or exc}",
            path=output_path,
        ) from exc
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
    return output_path


async def write_report_csv(content: str, output_path: Path) -> Path:
    """Versión asíncrona de `export_report_csv` (corre en un thread)."""

    return await asyncio.to_thread(export_report_csv, content=content, output_path=Path(output_path))
