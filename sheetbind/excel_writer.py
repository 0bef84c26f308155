"""Excel output helpers for writing records and plain rows."""

# Module responsibilities:
# - Derive header rows from record field tags and emit one data row per record.
# - Write plain string rows and multi-sheet workbooks (records, mappings or scalars).
# - Keep strings that look like formulas as literal text.

from __future__ import annotations

import dataclasses
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, BinaryIO, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from openpyxl import Workbook
from openpyxl.cell.cell import Cell as OpenpyxlCell
from openpyxl.worksheet.worksheet import Worksheet

from .errors import RecordTypeError
from .record import RecordSchema, describe
from .schema import WriteConfig
from .utils.log import get_logger

logger = get_logger("excel_writer")

_NATIVE_TYPES = (str, bool, int, float, Decimal, datetime, date, time, timedelta)
UNNAMED_HEADER = "Unnamed"
# Tag value that keeps a field out of the written sheet.
IGNORE_TAG = "-"


def cell_value(value: Any) -> Any:
    """Normalize a field value into something openpyxl can store."""

    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, _NATIVE_TYPES):
        return value
    return str(value)


def _append(ws: Worksheet, values: Sequence[Any]) -> None:
    cells = []
    for value in values:
        cell = OpenpyxlCell(ws, value=cell_value(value))
        # openpyxl stores any "=..." string as a formula.
        if isinstance(cell.value, str) and cell.value.startswith("="):
            cell.data_type = "s"
        cells.append(cell)
    ws.append(cells)


def header_fields(schema: RecordSchema, config: WriteConfig) -> List[Tuple[str, str]]:
    """Return ``(field_name, header)`` pairs in declaration order."""

    columns: List[Tuple[str, str]] = []
    for spec in schema.fields:
        tag = spec.tag(config.tag_name)
        if tag == IGNORE_TAG:
            continue
        if tag is None:
            if config.ignore_fields_without_tag:
                continue
            tag = spec.name
        columns.append((spec.name, tag))
    return columns


def _resolve_schema(records: Sequence[Any], record_type: Optional[type]) -> RecordSchema:
    if record_type is None:
        if not records:
            raise RecordTypeError("record_type is required when writing an empty collection")
        record_type = type(records[0])
    return describe(record_type)


def _fill_sheet(ws: Worksheet, records: Sequence[Any], schema: RecordSchema, config: WriteConfig) -> None:
    columns = header_fields(schema, config)
    _append(ws, [header for _, header in columns])
    for record in records:
        _append(ws, [getattr(record, name, None) for name, _ in columns])


def _build_workbook(records: Sequence[Any], record_type: Optional[type], config: Optional[WriteConfig]) -> Workbook:
    config = config or WriteConfig()
    records = list(records)
    schema = _resolve_schema(records, record_type)
    wb = Workbook()
    ws = wb.active
    ws.title = config.sheet_name
    _fill_sheet(ws, records, schema, config)
    logger.info(
        "Records serialized",
        extra={
            "sheet": config.sheet_name,
            "record_type": schema.record_type.__name__,
            "records": len(records),
        },
    )
    return wb


def _rows_workbook(rows: Iterable[Sequence[str]]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = "Sheet1"
    count = 0
    for row in rows:
        _append(ws, [str(value) for value in row])
        count += 1
    logger.info("Rows serialized", extra={"rows": count})
    return wb


def _save(wb: Workbook, path: Union[str, Path]) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    wb.save(out)
    logger.info("Workbook written", extra={"output": str(out)})
    return out


def write_file(
    path: Union[str, Path],
    records: Iterable[Any],
    record_type: Optional[type] = None,
    config: Optional[WriteConfig] = None,
) -> Path:
    """Write records into a new workbook at ``path``.

    Args:
        path: Output workbook path; parent directories are created.
        records: Dataclass instances of one record type.
        record_type: Record type; required when ``records`` is empty.
        config: Sheet name and header derivation; defaults to :class:`WriteConfig`.

    Returns:
        The written path.

    Raises:
        RecordTypeError: When the record type is not a dataclass or cannot be determined.
    """

    return _save(_build_workbook(list(records), record_type, config), path)


def write_to(
    stream: BinaryIO,
    records: Iterable[Any],
    record_type: Optional[type] = None,
    config: Optional[WriteConfig] = None,
) -> None:
    """Write records as a workbook into a binary stream."""

    _build_workbook(list(records), record_type, config).save(stream)


def write_rows(path: Union[str, Path], rows: Iterable[Sequence[str]]) -> Path:
    """Write plain rows as text cells into ``Sheet1`` of a new workbook."""

    return _save(_rows_workbook(rows), path)


def write_rows_to(stream: BinaryIO, rows: Iterable[Sequence[str]]) -> None:
    _rows_workbook(rows).save(stream)


class WorkbookWriter:
    """Accumulates several sheets in one workbook before saving.

    ``write(sheet, data)`` appends to the sheet when it exists or creates it. ``data``
    is a sequence of dataclass records, mappings (headers come from the first row's
    keys) or scalar values (one ``Unnamed`` column).
    """

    def __init__(self, config: Optional[WriteConfig] = None) -> None:
        self.config = config or WriteConfig()
        self.workbook = Workbook()
        self._pristine = True

    def _sheet(self, name: str) -> Worksheet:
        if name in self.workbook.sheetnames:
            return self.workbook[name]
        if self._pristine:
            ws = self.workbook.active
            ws.title = name
            self._pristine = False
            return ws
        return self.workbook.create_sheet(name)

    def write(self, sheet: str, data: Sequence[Any]) -> None:
        if isinstance(data, (str, bytes, Mapping)) or not isinstance(data, Sequence):
            raise TypeError(f"not supported type: {type(data).__name__}")

        ws = self._sheet(sheet)
        rows = list(data)
        first = rows[0] if rows else None
        if dataclasses.is_dataclass(first) and not isinstance(first, type):
            _fill_sheet(ws, rows, describe(type(first)), self.config)
        elif isinstance(first, Mapping):
            keys = list(first.keys())
            _append(ws, [str(key) for key in keys])
            for row in rows:
                _append(ws, [row.get(key) for key in keys])
        else:
            _append(ws, [UNNAMED_HEADER])
            for value in rows:
                _append(ws, [value])

        logger.info("Sheet data written", extra={"sheet": sheet, "rows": len(rows)})

    def save_to(self, path: Union[str, Path]) -> Path:
        return _save(self.workbook, path)

    def write_to(self, stream: BinaryIO) -> None:
        self.workbook.save(stream)


__all__ = [
    "IGNORE_TAG",
    "WorkbookWriter",
    "cell_value",
    "header_fields",
    "write_file",
    "write_rows",
    "write_rows_to",
    "write_to",
]
