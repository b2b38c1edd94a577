"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en `report` y `doctor`.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.category import CoverageCategory
from core.domain.report import ReportResult


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (solo en modo interactivo)."""

    title = Text("SonarQube Coverage Reporter", style="bold cyan")
    subtitle = Text("Coverage • Categorías • CSV", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


_CATEGORY_STYLES: dict[CoverageCategory, str] = {
    CoverageCategory.SIN_COVERAGE: "red",
    CoverageCategory.NO_PASA_MINIMO: "yellow",
    CoverageCategory.SI_PASA_MINIMO: "green",
}


def build_summary_table(result: ReportResult) -> Table:
    """Resumen por categoría del reporte generado."""

    threshold = result.config.classification.threshold
    table = Table(title=f"Coverage report (threshold {threshold:g}%)")
    table.add_column("Category", no_wrap=True)
    table.add_column("Projects", justify="right")
    for category in CoverageCategory.all():
        count = result.category_counts.get(category.label(), 0)
        table.add_row(Text(category.label(), style=_CATEGORY_STYLES[category]), str(count))
    table.add_section()
    table.add_row(Text("Total", style="bold"), str(result.project_count))
    table.caption = f"{result.processing_time_ms:.0f} ms"
    if result.output_path is not None:
        table.caption += f" • {result.output_path}"
    return table
