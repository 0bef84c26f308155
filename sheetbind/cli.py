"""Typer based command line entry points for sheetbind."""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from openpyxl.utils.exceptions import InvalidFileException

from .errors import HeaderRowIndexOutOfRangeError, SheetbindError
from .excel_reader import read_rows
from .utils.log import get_logger, set_log_level

logger = get_logger("cli")

app = typer.Typer(help="Inspect worksheets the way sheetbind reads them.")

_READ_ERRORS = (SheetbindError, FileNotFoundError, zipfile.BadZipFile, InvalidFileException)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    try:
        set_log_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    logger.debug("Log level set", extra={"level": log_level.upper()})


def _load_rows(path: Path, sheet_index: int, limit: Optional[int] = None) -> List[List[str]]:
    try:
        return read_rows(path, sheet_index, limit)
    except _READ_ERRORS as exc:
        typer.secho(f"Unable to read workbook: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


@app.command("headers")
def headers_command(
    path: Path = typer.Argument(..., help="Workbook to inspect."),
    sheet_index: int = typer.Option(0, "--sheet-index", help="Zero-based worksheet index."),
    header_row: int = typer.Option(0, "--header-row", help="Zero-based header row index."),
) -> None:
    """Print the header texts with their column index."""

    rows = _load_rows(path, sheet_index, header_row + 1)
    if header_row < 0 or header_row > len(rows) - 1:
        typer.secho(f"Unable to read headers: {HeaderRowIndexOutOfRangeError()}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for index, header in enumerate(rows[header_row]):
        typer.echo(f"{index}\t{header}")


@app.command("dump")
def dump_command(
    path: Path = typer.Argument(..., help="Workbook to inspect."),
    sheet_index: int = typer.Option(0, "--sheet-index", help="Zero-based worksheet index."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum number of rows to print."),
) -> None:
    """Print the raw cell text of each row as a table."""

    rows = _load_rows(path, sheet_index, limit)
    if not rows:
        typer.echo("(empty sheet)")
        return
    frame = pd.DataFrame(rows)
    typer.echo(frame.to_string(header=False))


def main() -> None:  # pragma: no cover - thin wrapper
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
