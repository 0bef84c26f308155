"""`sheetbind` top-level package exports the helpers that bind worksheet rows to dataclass records."""

# Module responsibilities:
# - Re-export the read/write entry points, configuration containers and errors so consumers have a stable API surface.
# - Provide package version for packaging.

from __future__ import annotations

from .cells import Cell
from .config import load_config, load_read_config, load_write_config
from .errors import (
    BindingError,
    ConfigError,
    ContentError,
    FieldError,
    ReadConfigError,
    RecordTypeError,
    SheetbindError,
)
from .excel_reader import read, read_binary, read_file, read_rows, read_workbook, walk_sheet
from .excel_writer import WorkbookWriter, write_file, write_rows, write_rows_to, write_to
from .record import column
from .schema import ReadConfig, UnmarshalErrorHandling, WriteConfig
from .value import UnmarshalParameters

__all__ = [
    "Cell",
    "UnmarshalParameters",
    "column",
    "ReadConfig",
    "WriteConfig",
    "UnmarshalErrorHandling",
    "load_config",
    "load_read_config",
    "load_write_config",
    "read",
    "read_binary",
    "read_file",
    "read_rows",
    "read_workbook",
    "walk_sheet",
    "write_file",
    "write_to",
    "write_rows",
    "write_rows_to",
    "WorkbookWriter",
    "SheetbindError",
    "ConfigError",
    "RecordTypeError",
    "ReadConfigError",
    "BindingError",
    "FieldError",
    "ContentError",
]

__version__ = "0.1.0"
