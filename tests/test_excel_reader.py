"""Reading worksheets into dataclass records."""

# Module responsibilities:
# - Cover the happy path through every public read entry point.
# - Assert the unmarshal error policies, callbacks, filters and layout validation.

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, List, Optional, Tuple

import numpy as np
import pytest
from openpyxl import Workbook, load_workbook
from openpyxl.utils.datetime import CALENDAR_MAC_1904

from sheetbind.cells import Cell
from sheetbind.errors import (
    CellParseError,
    ContentError,
    DataStartRowIndexOutOfRangeError,
    FieldError,
    HeaderRowIndexOutOfRangeError,
    NegativeUnsignedError,
    NoDestinationFieldError,
    NumericOverflowError,
    RecordTypeError,
    SheetIndexOutOfRangeError,
    SourceReadError,
)
from sheetbind.excel_reader import read, read_binary, read_file, read_rows, read_workbook, walk_sheet
from sheetbind.excel_writer import write_file
from sheetbind.record import column
from sheetbind.schema import ReadConfig, UnmarshalErrorHandling
from sheetbind.value import UnmarshalParameters


@dataclass
class Person:
    name: str = column("Name")
    age: np.uint8 = column("Age")
    score: float = column("Score")
    active: bool = column("Active")
    joined: datetime = column("Joined")


@dataclass
class Named:
    name: str = column("Name")


@dataclass
class Counter:
    id: int = column("ID")


@dataclass
class Unsigned:
    value: np.uint32 = column("Value")


@dataclass
class Tiny:
    value: np.int8 = column("Value")


@dataclass
class MaybeCount:
    count: Optional[int] = column("Count")


@dataclass(frozen=True)
class FrozenNamed:
    name: str = column("Name")


class Strict:
    @classmethod
    def unmarshal_excel(cls, cell: Cell, params: UnmarshalParameters) -> "Strict":
        raise RuntimeError(f"refusing {cell.raw_text}")


@dataclass
class StrictHolder:
    strict: Optional[Strict] = column("Strict")


PEOPLE_ROWS = [
    ["Name", "Age", "Score", "Active", "Joined"],
    ["Alice", 30, 9.5, True, datetime(2024, 1, 2, 3, 4, 5)],
    ["Bob", 41, 7, False, datetime(2023, 12, 31)],
]

BAD_IDS = [["ID"], ["a"], ["b"], ["c"]]


def test_read_file_maps_columns_to_fields(make_workbook) -> None:
    path = make_workbook(PEOPLE_ROWS)

    people = read_file(path, Person)

    assert people == [
        Person("Alice", np.uint8(30), 9.5, True, datetime(2024, 1, 2, 3, 4, 5)),
        Person("Bob", np.uint8(41), 7.0, False, datetime(2023, 12, 31)),
    ]
    assert isinstance(people[0].age, np.uint8)


def test_all_entry_points_agree(make_workbook) -> None:
    path = make_workbook(PEOPLE_ROWS)
    expected = read_file(path, Person)

    assert read_binary(path.read_bytes(), Person) == expected
    assert read(io.BytesIO(path.read_bytes()), Person) == expected
    with path.open("rb") as handle:
        assert read_file(handle, Person) == expected
    assert read_workbook(load_workbook(path, data_only=True), Person) == expected


def test_read_file_missing_path(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_file(tmp_path / "absent.xlsx", Person)


def test_stream_failures_are_wrapped() -> None:
    class BrokenStream(io.RawIOBase):
        def read(self, size: int = -1) -> bytes:
            raise OSError("disk gone")

    with pytest.raises(SourceReadError, match="disk gone"):
        read(BrokenStream(), Person)


def test_trim_space(make_workbook) -> None:
    path = make_workbook([["Name"], ["  x  "]])

    assert read_file(path, Named)[0].name == "  x  "
    assert read_file(path, Named, config=ReadConfig(trim_space=True))[0].name == "x"


def test_unknown_columns(make_workbook) -> None:
    path = make_workbook([["Name1", "Name2"], ["a", "b"]])

    @dataclass
    class OnlyFirst:
        name1: str = column("Name1")

    assert read_file(path, OnlyFirst) == [OnlyFirst("a")]
    with pytest.raises(NoDestinationFieldError, match='column "Name2" at index 1'):
        read_file(path, OnlyFirst, config=ReadConfig(skip_unknown_columns=False))


def test_negative_value_for_unsigned_field(make_workbook) -> None:
    assert read_file(make_workbook([["Value"], [123]]), Unsigned) == [Unsigned(np.uint32(123))]

    with pytest.raises(FieldError) as excinfo:
        read_file(make_workbook([["Value"], [-123]]), Unsigned)
    assert isinstance(excinfo.value.unwrap(), NegativeUnsignedError)


def test_int8_overflow(make_workbook) -> None:
    with pytest.raises(FieldError) as excinfo:
        read_file(make_workbook([["Value"], [128]]), Tiny)

    assert isinstance(excinfo.value.err, NumericOverflowError)
    assert isinstance(excinfo.value.__cause__, NumericOverflowError)


class Level(IntEnum):
    LOW = 1
    HIGH = 2


class Score(int):
    pass


@dataclass
class Graded:
    score: Score = column("Score", default=Score(0))
    level: Level = column("Level", default=Level.LOW)


def test_int_subclasses_and_enums_are_coerced(make_workbook) -> None:
    records = read_file(make_workbook([["Score", "Level"], [5, 2]]), Graded)

    assert records == [Graded(Score(5), Level.HIGH)]
    assert type(records[0].score) is Score
    with pytest.raises(FieldError) as excinfo:
        read_file(make_workbook([["Score", "Level"], [5, 9]]), Graded)
    assert isinstance(excinfo.value.unwrap(), CellParseError)


def test_integers_beyond_double_precision_fail_to_parse(tmp_path: Path) -> None:
    # Cells hold doubles, so 2**62 comes back in exponent notation.
    path = write_file(tmp_path / "big.xlsx", [Counter(2**62)])

    with pytest.raises(FieldError) as excinfo:
        read_file(path, Counter)
    assert isinstance(excinfo.value.unwrap(), CellParseError)


def test_abort_reports_the_first_failing_cell(make_workbook) -> None:
    path = make_workbook(BAD_IDS)

    with pytest.raises(FieldError) as excinfo:
        read_file(path, Counter)

    error = excinfo.value
    assert (error.row_index, error.column_index, error.column_header) == (1, 0, "ID")
    assert isinstance(error.err, CellParseError)
    assert str(error).startswith('error unmarshalling column "ID" in row 2: ')


def test_collect_stops_at_the_limit(make_workbook) -> None:
    path = make_workbook(BAD_IDS)
    config = ReadConfig(unmarshal_error_handling=UnmarshalErrorHandling.COLLECT, max_unmarshal_errors=2)

    with pytest.raises(ContentError) as excinfo:
        read_file(path, Counter, config=config)

    assert excinfo.value.limit_reached
    assert [e.row_index for e in excinfo.value.unwrap()] == [1, 2]
    assert str(excinfo.value) == "too many (2) errors reading data from Excel"


def test_collect_without_limit_reports_every_error(make_workbook) -> None:
    path = make_workbook(BAD_IDS)
    config = ReadConfig(unmarshal_error_handling="collect", max_unmarshal_errors=0)

    with pytest.raises(ContentError) as excinfo:
        read_file(path, Counter, config=config)

    assert not excinfo.value.limit_reached
    assert len(excinfo.value) == 3
    assert str(excinfo.value) == "3 errors reading data from Excel"


def test_ignore_leaves_zero_values(make_workbook) -> None:
    path = make_workbook([["ID"], ["a"], [5]])
    config = ReadConfig(unmarshal_error_handling=UnmarshalErrorHandling.IGNORE)

    assert read_file(path, Counter, config=config) == [Counter(0), Counter(5)]


def test_optional_fields_stay_none_on_failure(make_workbook) -> None:
    path = make_workbook([["Count"], [None], [4]])
    config = ReadConfig(unmarshal_error_handling=UnmarshalErrorHandling.IGNORE)

    assert read_file(path, MaybeCount, config=config) == [MaybeCount(None), MaybeCount(4)]


def test_custom_unmarshaler_exceptions_become_field_errors(make_workbook) -> None:
    path = make_workbook([["Strict"], ["x"]])

    with pytest.raises(FieldError) as excinfo:
        read_file(path, StrictHolder)

    assert isinstance(excinfo.value.unwrap(), RuntimeError)
    assert "refusing x" in str(excinfo.value)


def test_error_handler_replaces_error_reporting(make_workbook) -> None:
    path = make_workbook([["ID"], ["a"], [2]])
    seen: List[Tuple[str, str]] = []

    def on_error(cell: Cell, record: Any, binding: Any) -> None:
        seen.append((cell.raw_text, binding.header))
        record.id = -1

    for policy in (UnmarshalErrorHandling.ABORT, UnmarshalErrorHandling.COLLECT):
        seen.clear()
        config = ReadConfig(unmarshal_error_handling=policy, on_unmarshal_error=on_error)
        assert read_file(path, Counter, config=config) == [Counter(-1), Counter(2)]
        assert seen == [("a", "ID")]


def test_error_handler_is_not_called_when_ignoring(make_workbook) -> None:
    path = make_workbook([["ID"], ["a"]])
    calls: List[Any] = []
    config = ReadConfig(
        unmarshal_error_handling=UnmarshalErrorHandling.IGNORE,
        on_unmarshal_error=lambda *args: calls.append(args),
    )

    assert read_file(path, Counter, config=config) == [Counter(0)]
    assert calls == []


def test_unused_column_callback_sees_every_skipped_cell(make_workbook) -> None:
    path = make_workbook([["Name", "Extra"], ["a", "x1"], ["b", "x2"]])
    seen: List[Tuple[str, str, str]] = []

    def on_unused(cell: Cell, record: Any, binding: Any) -> None:
        seen.append((record.name, cell.raw_text, binding.header))

    records = read_file(path, Named, config=ReadConfig(on_unused_column=on_unused))

    assert records == [Named("a"), Named("b")]
    assert seen == [("a", "x1", "Extra"), ("b", "x2", "Extra")]


def test_filters_run_in_order_and_short_circuit(make_workbook) -> None:
    path = make_workbook([["ID"], [1], [2], [3]])
    second_calls: List[int] = []

    def not_two(record: Counter) -> bool:
        return record.id != 2

    def track(record: Counter) -> bool:
        second_calls.append(record.id)
        return True

    assert read_file(path, Counter, None, not_two, track) == [Counter(1), Counter(3)]
    assert second_calls == [1, 3]


def test_filters_do_not_affect_error_accounting(make_workbook) -> None:
    path = make_workbook([["ID"], ["a"], [2]])
    config = ReadConfig(unmarshal_error_handling=UnmarshalErrorHandling.COLLECT)

    with pytest.raises(ContentError) as excinfo:
        read_file(path, Counter, lambda record: False, config=config)

    assert len(excinfo.value) == 1


def test_sheet_selection(tmp_path: Path) -> None:
    wb = Workbook()
    wb.active.title = "First"
    wb.active.append(["Name"])
    wb.active.append(["one"])
    second = wb.create_sheet("Second")
    second.append(["Name"])
    second.append(["two"])
    path = tmp_path / "sheets.xlsx"
    wb.save(path)

    assert read_file(path, Named) == [Named("one")]
    assert read_file(path, Named, config=ReadConfig(sheet_index=1)) == [Named("two")]
    assert read_file(path, Named, config=ReadConfig(sheet_name="Second")) == [Named("two")]
    assert read_file(path, Named, config=ReadConfig(sheet_name="Missing")) == [Named("one")]
    with pytest.raises(SheetIndexOutOfRangeError):
        read_file(path, Named, config=ReadConfig(sheet_index=2))
    with pytest.raises(SheetIndexOutOfRangeError):
        read_file(path, Named, config=ReadConfig(sheet_index=-1))


def test_sheet_name_skips_chartsheets() -> None:
    wb = Workbook()
    wb.active.title = "First"
    wb.active.append(["Name"])
    wb.active.append(["one"])
    wb.create_chartsheet("Chart", 0)
    second = wb.create_sheet("Second")
    second.append(["Name"])
    second.append(["two"])

    assert read_workbook(wb, Named, config=ReadConfig(sheet_name="Second")) == [Named("two")]
    assert read_workbook(wb, Named, config=ReadConfig(sheet_name="First")) == [Named("one")]


def test_header_and_data_rows(make_workbook) -> None:
    path = make_workbook([["title"], [None], ["Name"], ["a"], ["b"]])

    config = ReadConfig(header_row_index=2, data_start_row_index=4)
    assert read_file(path, Named, config=config) == [Named("b")]

    with pytest.raises(HeaderRowIndexOutOfRangeError):
        read_file(path, Named, config=ReadConfig(header_row_index=5))
    with pytest.raises(DataStartRowIndexOutOfRangeError):
        read_file(path, Named, config=ReadConfig(data_start_row_index=5))


def test_empty_and_header_only_sheets(make_workbook) -> None:
    with pytest.raises(HeaderRowIndexOutOfRangeError):
        read_file(make_workbook([]), Named)
    with pytest.raises(DataStartRowIndexOutOfRangeError):
        read_file(make_workbook([["Name"]]), Named)


def test_fallback_date_formats(make_workbook) -> None:
    path = make_workbook([["Name", "Age", "Score", "Active", "Joined"], ["c", 1, 1, True, "02.01.2024"]])

    with pytest.raises(FieldError, match="no recognized format"):
        read_file(path, Person)

    config = ReadConfig(fallback_date_formats=["%Y-%m-%d", "%d.%m.%Y"])
    assert read_file(path, Person, config=config)[0].joined == datetime(2024, 1, 2)


def test_dates_follow_the_workbook_epoch(tmp_path: Path) -> None:
    def _book(name: str, date1904: bool) -> Path:
        wb = Workbook()
        if date1904:
            wb.epoch = CALENDAR_MAC_1904
        ws = wb.active
        ws.append(["When"])
        ws.append([1])
        ws["A2"].number_format = "yyyy-mm-dd"
        path = tmp_path / name
        wb.save(path)
        return path

    @dataclass
    class Event:
        when: datetime = column("When")

    assert read_file(_book("mac.xlsx", True), Event) == [Event(datetime(1904, 1, 2))]
    assert read_file(_book("win.xlsx", False), Event) == [Event(datetime(1900, 1, 1))]


def test_frozen_record_types_are_rejected(make_workbook) -> None:
    with pytest.raises(RecordTypeError):
        read_file(make_workbook([["Name"], ["a"]]), FrozenNamed)


def test_walk_sheet_visits_every_row(make_workbook) -> None:
    path = make_workbook([["a", "b"], ["c"]])
    visited: List[Tuple[int, List[str]]] = []

    walk_sheet(path, 0, lambda index, cells: visited.append((index, [c.raw_text for c in cells])))

    assert visited == [(0, ["a", "b"]), (1, ["c", ""])]
    assert read_rows(path, limit=1) == [["a", "b"]]
    with pytest.raises(SheetIndexOutOfRangeError):
        walk_sheet(path, 1, lambda index, cells: None)
