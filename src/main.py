"""Script de ejecución (`python -m main` desde `src/`)."""

from __future__ import annotations

import sys

# Las etiquetas de categoría llevan tildes: en Windows (cp1252) stdout debe ser UTF-8.
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
