"""Excel input helpers."""

# Module responsibilities:
# - Open workbooks from paths, byte buffers, seekable files or streams.
# - Bind the header row to a record type once, then convert every data row into a record
#   under the configured unmarshal error policy.
# - Emit structured logs for traceability and future auditing.

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Any, BinaryIO, Callable, List, Optional, Sequence, Tuple, Union

from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .binding import FieldBinding, bind_columns, read_headers
from .cells import Cell, SheetView, is_workbook_1904
from .errors import (
    ContentError,
    DataStartRowIndexOutOfRangeError,
    FieldError,
    HeaderRowIndexOutOfRangeError,
    RecordTypeError,
    SheetIndexOutOfRangeError,
    SourceReadError,
)
from .record import RecordSchema, describe
from .schema import ReadConfig, RowFilter, UnmarshalErrorHandling
from .utils.log import get_logger
from .value import UnmarshalParameters

logger = get_logger("excel_reader")

PathOrFile = Union[str, Path, BinaryIO]
RowWalker = Callable[[int, List[Cell]], None]


def _open_workbook(source: Union[Path, BinaryIO]) -> Workbook:
    return load_workbook(source, data_only=True)


def _select_sheet(workbook: Workbook, config: ReadConfig) -> Worksheet:
    index = config.sheet_index
    if config.sheet_name:
        for idx, worksheet in enumerate(workbook.worksheets):
            if worksheet.title == config.sheet_name:
                index = idx
                break
    if index < 0 or index > len(workbook.worksheets) - 1:
        raise SheetIndexOutOfRangeError()
    return workbook.worksheets[index]


def _accept(record: Any, filters: Sequence[Optional[RowFilter]]) -> bool:
    for row_filter in filters:
        if row_filter is None:
            continue
        if not row_filter(record):
            return False
    return True


def _ingest(
    view: SheetView,
    schema: RecordSchema,
    bindings: Sequence[FieldBinding],
    config: ReadConfig,
    params: UnmarshalParameters,
    filters: Sequence[Optional[RowFilter]],
) -> List[Any]:
    """Convert every data row of ``view`` into a record.

    A field is assigned only when its coercion succeeds; on failure it keeps the
    value the fresh record was built with.
    """

    policy = config.unmarshal_error_handling
    collected: List[FieldError] = []
    records: List[Any] = []

    for row_index, cells in view.rows(start=config.data_start_row_index):
        record = schema.new_record()
        for binding in bindings:
            cell = cells[binding.column_index]
            if binding.unmarshal is None:
                if config.on_unused_column is not None:
                    config.on_unused_column(cell, record, binding)
                continue

            try:
                value = binding.unmarshal(cell, params)
            except Exception as exc:  # noqa: BLE001
                if policy is UnmarshalErrorHandling.IGNORE:
                    continue
                if config.on_unmarshal_error is not None:
                    config.on_unmarshal_error(cell, record, binding)
                    continue
                error = FieldError(row_index, binding.column_index, binding.header, exc)
                if policy is UnmarshalErrorHandling.ABORT:
                    logger.warning(
                        "Aborting read on unmarshal error",
                        extra={"row": row_index, "column": binding.header, "error": str(exc)},
                    )
                    raise error
                collected.append(error)
                if config.max_unmarshal_errors > 0 and len(collected) >= config.max_unmarshal_errors:
                    logger.warning(
                        "Unmarshal error limit reached",
                        extra={"errors": len(collected), "row": row_index},
                    )
                    raise ContentError(collected, limit_reached=True)
                continue

            setattr(record, binding.field_name, value)

        if _accept(record, filters):
            records.append(record)

    if collected:
        logger.warning("Unmarshal errors collected", extra={"errors": len(collected)})
        raise ContentError(collected, limit_reached=False)
    return records


def read_workbook(
    workbook: Workbook,
    record_type: type,
    *filters: Optional[RowFilter],
    config: Optional[ReadConfig] = None,
) -> List[Any]:
    """Read one worksheet of an already opened workbook into records.

    Args:
        workbook: Workbook loaded with ``data_only=True``.
        record_type: Non-frozen dataclass whose tagged fields receive the columns.
        *filters: Row filters; a record is kept only when every filter accepts it.
        config: Layout and error policy; defaults to :class:`ReadConfig`.

    Returns:
        Records in row order.

    Raises:
        RecordTypeError: The record type is not a mutable dataclass.
        ReadConfigError: Sheet, header row or data start row is out of range.
        BindingError: A header column cannot be bound under the configured policy.
        FieldError: First coercion failure in abort mode.
        ContentError: Coercion failures collected in collect mode.
    """

    config = config or ReadConfig()
    schema = describe(record_type)
    if schema.frozen:
        raise RecordTypeError(f"record type {record_type.__name__} is frozen and cannot be filled")

    worksheet = _select_sheet(workbook, config)
    date1904 = is_workbook_1904(workbook)
    view = SheetView(worksheet, date1904)
    if config.header_row_index < 0 or config.header_row_index > view.max_row - 1:
        raise HeaderRowIndexOutOfRangeError()
    if config.data_start_row_index < 0 or config.data_start_row_index > view.max_row - 1:
        raise DataStartRowIndexOutOfRangeError()

    headers = read_headers(view.row(config.header_row_index))
    bindings = bind_columns(headers, schema, config)

    logger.info(
        "Reading worksheet",
        extra={
            "sheet": view.name,
            "record_type": record_type.__name__,
            "rows": view.max_row,
            "columns": headers,
            "error_handling": config.unmarshal_error_handling.value,
        },
    )
    records = _ingest(view, schema, bindings, config, config.unmarshal_parameters(date1904), filters)
    logger.info("Worksheet read", extra={"sheet": view.name, "records": len(records)})
    return records


def _read_opened(source: Union[Path, BinaryIO], record_type: type, filters: Tuple, config: Optional[ReadConfig]) -> List[Any]:
    workbook = _open_workbook(source)
    try:
        return read_workbook(workbook, record_type, *filters, config=config)
    finally:
        workbook.close()


def read_binary(
    data: bytes,
    record_type: type,
    *filters: Optional[RowFilter],
    config: Optional[ReadConfig] = None,
) -> List[Any]:
    """Read records from an in-memory workbook."""

    return _read_opened(BytesIO(data), record_type, filters, config)


def read_file(
    source: PathOrFile,
    record_type: type,
    *filters: Optional[RowFilter],
    config: Optional[ReadConfig] = None,
) -> List[Any]:
    """Read records from a workbook path or a seekable binary file object.

    Raises:
        FileNotFoundError: When the workbook path does not exist.
    """

    if hasattr(source, "read") and hasattr(source, "seek"):
        logger.info("Reading Excel workbook", extra={"source": getattr(source, "name", "<stream>")})
        return _read_opened(source, record_type, filters, config)  # type: ignore[arg-type]

    path = Path(source)  # type: ignore[arg-type]
    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")
    logger.info("Reading Excel workbook", extra={"path": str(path)})
    return _read_opened(path, record_type, filters, config)


def read(
    stream: BinaryIO,
    record_type: type,
    *filters: Optional[RowFilter],
    config: Optional[ReadConfig] = None,
) -> List[Any]:
    """Read records from a forward-only stream.

    The workbook archive needs random access, so the stream is buffered in full first.

    Raises:
        SourceReadError: When the stream cannot be read to the end.
    """

    try:
        data = stream.read()
    except OSError as exc:
        logger.error("Failed to buffer workbook stream", extra={"error": str(exc)})
        raise SourceReadError(f"error reading workbook stream: {exc}") from exc
    return read_binary(data, record_type, *filters, config=config)


def walk_sheet(path: Union[str, Path], sheet_index: int, walk: RowWalker) -> None:
    """Call ``walk(index, cells)`` for every physical row of one worksheet.

    Raises:
        FileNotFoundError: When the workbook path does not exist.
        SheetIndexOutOfRangeError: When ``sheet_index`` names no worksheet.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source workbook not found: {path}")

    workbook = _open_workbook(path)
    try:
        if sheet_index < 0 or sheet_index > len(workbook.worksheets) - 1:
            raise SheetIndexOutOfRangeError()
        view = SheetView(workbook.worksheets[sheet_index], is_workbook_1904(workbook))
        logger.info("Walking worksheet", extra={"path": str(path), "sheet": view.name, "rows": view.max_row})
        for index, cells in view.rows():
            walk(index, cells)
    finally:
        workbook.close()


def read_rows(path: Union[str, Path], sheet_index: int = 0, limit: Optional[int] = None) -> List[List[str]]:
    """Collect the raw text of each row, stopping after ``limit`` rows when given."""

    rows: List[List[str]] = []

    def _collect(index: int, cells: List[Cell]) -> None:
        if limit is None or len(rows) < limit:
            rows.append([cell.raw_text for cell in cells])

    walk_sheet(path, sheet_index, _collect)
    return rows


__all__ = [
    "read",
    "read_binary",
    "read_file",
    "read_workbook",
    "read_rows",
    "walk_sheet",
]
