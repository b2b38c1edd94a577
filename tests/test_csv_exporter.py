import asyncio
from pathlib import Path

import pytest

from adapters.csv_exporter import export_report_csv, write_report_csv
from core.errors import PersistenceError

CONTENT = "repository,coverage_percent,category\nfe-app,0.00,Sin coverage\n"


def test_export_writes_utf8_content(tmp_path: Path) -> None:
    output = tmp_path / "reports" / "coverage.csv"

    written = export_report_csv(content=CONTENT, output_path=output)

    assert written == output
    assert output.read_bytes() == CONTENT.encode("utf-8")
    assert [p.name for p in output.parent.iterdir()] == ["coverage.csv"]


def test_export_replaces_existing_file(tmp_path: Path) -> None:
    output = tmp_path / "coverage.csv"
    output.write_text("stale\n", encoding="utf-8")

    export_report_csv(content="fresh\n", output_path=output)

    assert output.read_text(encoding="utf-8") == "fresh\n"


def test_export_into_directory_path_is_persistence_error(tmp_path: Path) -> None:
    target = tmp_path / "already-a-dir"
    target.mkdir()

    with pytest.raises(PersistenceError) as excinfo:
        export_report_csv(content=CONTENT, output_path=target)

    assert excinfo.value.path == target
    assert isinstance(excinfo.value.__cause__, OSError)
    assert [p.name for p in target.iterdir()] == []


def test_export_under_a_file_is_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(PersistenceError, match="Failed to write CSV file"):
        export_report_csv(content=CONTENT, output_path=blocker / "coverage.csv")


def test_async_writer(tmp_path: Path) -> None:
    output = tmp_path / "async.csv"
    written = asyncio.run(write_report_csv(CONTENT, output))
    assert written == output
    assert output.read_text(encoding="utf-8") == CONTENT
