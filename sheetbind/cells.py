"""Cell and worksheet adapters over openpyxl."""

# Module responsibilities:
# - Wrap openpyxl cells with the accessors the coercion layer relies on
#   (raw text, format-aware text, boolean/integer/float/date reads).
# - Convert Excel date serials using the workbook epoch (1900 or 1904 base).
# - Expose worksheet dimensions and zero-based row access for the reader.

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple

import numpy as np
from openpyxl.styles.numbers import FORMAT_GENERAL, is_date_format
from openpyxl.utils.datetime import CALENDAR_MAC_1904, MAC_EPOCH, WINDOWS_EPOCH
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .errors import CellFormatError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_INT_PATTERN = re.compile(r"[+-]?\d+")
_MS_PER_DAY = 86_400_000
_DATE_TYPES = (datetime, date, time, timedelta)
_DATE_TOKEN = re.compile(
    r'(yyyy|yy|mmmmm|mmmm|mmm|mm|m|dddd|ddd|dd|d|hh|h|ss|s|am/pm|a/p|"[^"]*"|\\.|\[[^\]]*\]|\.0+|.)',
    re.IGNORECASE,
)


def is_workbook_1904(workbook: Workbook) -> bool:
    """Return True when the workbook stores dates on the 1904 base."""

    return workbook.epoch == CALENDAR_MAC_1904


def _epoch(date1904: bool) -> datetime:
    return MAC_EPOCH if date1904 else WINDOWS_EPOCH


def serial_to_datetime(serial: float, date1904: bool = False) -> datetime:
    """Convert an Excel date serial into a naive datetime."""

    if serial < 0 or math.isnan(serial) or math.isinf(serial):
        raise ValueError(f"invalid date serial: {serial}")
    # Excel treats 1900 as a leap year; serials before the phantom 29 Feb shift by a day.
    if not date1904 and 0 < serial < 60:
        serial += 1
    return _epoch(date1904) + timedelta(milliseconds=round(serial * _MS_PER_DAY))


def datetime_to_serial(value: Any, date1904: bool = False) -> float:
    """Convert a date/time value into an Excel date serial."""

    base = _epoch(date1904)
    if isinstance(value, timedelta):
        return value / timedelta(days=1)
    if isinstance(value, time):
        value = datetime.combine(base.date(), value.replace(tzinfo=None))
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time())
    serial = (value.replace(tzinfo=None) - base) / timedelta(days=1)
    if not date1904 and 0 < serial < 61:
        serial -= 1
    return serial


def general_number(value: Any) -> str:
    """Render a number the way the ``General`` format displays it."""

    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, Decimal):
        value = float(value)
    if math.isnan(value) or math.isinf(value):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _split_sections(number_format: str) -> List[str]:
    sections: List[str] = []
    current: List[str] = []
    in_quote = False
    escaped = False
    for ch in number_format:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and not in_quote:
            current.append(ch)
            escaped = True
            continue
        if ch == '"':
            in_quote = not in_quote
        if ch == ";" and not in_quote:
            sections.append("".join(current))
            current = []
            continue
        current.append(ch)
    if in_quote:
        raise CellFormatError(f"invalid formatting code: unbalanced quotes in {number_format!r}")
    sections.append("".join(current))
    if len(sections) > 4:
        raise CellFormatError(f"invalid formatting code: too many sections in {number_format!r}")
    return sections


def _parse_section(section: str) -> Tuple[str, str, str]:
    """Split a number format section into (prefix, placeholder core, suffix)."""

    prefix: List[str] = []
    core: List[str] = []
    suffix: List[str] = []
    i = 0
    while i < len(section):
        ch = section[i]
        target = suffix if core else prefix
        if ch == '"':
            end = section.index('"', i + 1)
            target.append(section[i + 1 : end])
            i = end + 1
            continue
        if ch == "\\" and i + 1 < len(section):
            target.append(section[i + 1])
            i += 2
            continue
        if ch == "_" and i + 1 < len(section):
            target.append(" ")
            i += 2
            continue
        if ch == "*" and i + 1 < len(section):
            i += 2
            continue
        if ch == "[":
            end = section.find("]", i)
            if end < 0:
                raise CellFormatError(f"invalid formatting code: unclosed bracket in {section!r}")
            i = end + 1
            continue
        if ch in "0#?.,%":
            core.append(ch)
            if ch != "%":
                suffix.clear()
            i += 1
            continue
        if ch in "Ee" and i + 1 < len(section) and section[i + 1] in "+-" and core:
            core.append(section[i : i + 2])
            suffix.clear()
            i += 2
            continue
        target.append(ch)
        i += 1
    return "".join(prefix), "".join(core), "".join(suffix)


def render_number(value: Any, number_format: str) -> str:
    """Apply an Excel number format to a numeric value."""

    if not number_format or number_format.lower() == "general" or number_format == "@":
        return general_number(value)
    sections = _split_sections(number_format)
    section = sections[0]
    if value < 0 and len(sections) > 1:
        section = sections[1]
        value = -value
    elif value == 0 and len(sections) > 2:
        section = sections[2]
    if section.lower() == "general":
        return general_number(value)

    prefix, core, suffix = _parse_section(section)
    if not core:
        return prefix + suffix
    value = float(value)
    value *= 100 ** core.count("%")
    core = core.replace("%", "")
    percent_suffix = "%" * section.count("%")

    exponent = re.search(r"[Ee][+-]", core)
    if exponent:
        mantissa = core[: exponent.start()]
        digits = max(len(core[exponent.end() :]), 1)
        decimals = sum(c in "0#?" for c in mantissa.partition(".")[2])
        text = f"{value:.{decimals}E}"
        head, _, tail = text.partition("E")
        sign = tail[0]
        text = f"{head}E{sign}{tail[1:].lstrip('0').zfill(digits)}"
        return prefix + text + suffix

    int_part, _, frac_part = core.partition(".")
    decimals = sum(c in "0#?" for c in frac_part)
    grouping = "," if "," in int_part else ""
    text = f"{value:{grouping}.{decimals}f}"
    optional = len(frac_part) - len(frac_part.rstrip("#?"))
    if optional and "." in text:
        head, _, tail = text.partition(".")
        keep = len(tail)
        while optional and keep and tail[keep - 1] == "0":
            keep -= 1
            optional -= 1
        text = head + ("." + tail[:keep] if keep else "")
    if "0" not in int_part and text.lstrip("-").startswith("0."):
        text = text.replace("0.", ".", 1)
    return prefix + text + percent_suffix + suffix


def render_date(value: Any, number_format: str) -> str:
    """Apply an Excel date/time format to a datetime value."""

    if isinstance(value, time):
        value = datetime.combine(WINDOWS_EPOCH.date(), value)
    elif not isinstance(value, datetime):
        value = datetime.combine(value, time())
    tokens = _DATE_TOKEN.findall(number_format)
    lowered = [tok.lower() for tok in tokens]
    twelve_hour = any(tok in ("am/pm", "a/p") for tok in lowered)

    def _is_minute(index: int) -> bool:
        for tok in reversed(lowered[:index]):
            if tok in ("h", "hh"):
                return True
            if tok[:1] in ("y", "m", "d", "s"):
                break
        for tok in lowered[index + 1 :]:
            if tok in ("s", "ss"):
                return True
            if tok[:1] in ("y", "m", "d", "h"):
                break
        return False

    hour = (value.hour % 12 or 12) if twelve_hour else value.hour
    out: List[str] = []
    for index, (tok, low) in enumerate(zip(tokens, lowered)):
        if low == "yyyy":
            out.append(f"{value.year:04d}")
        elif low == "yy":
            out.append(f"{value.year % 100:02d}")
        elif low in ("m", "mm") and _is_minute(index):
            out.append(f"{value.minute:02d}" if low == "mm" else str(value.minute))
        elif low == "m":
            out.append(str(value.month))
        elif low == "mm":
            out.append(f"{value.month:02d}")
        elif low == "mmm":
            out.append(value.strftime("%b"))
        elif low == "mmmm":
            out.append(value.strftime("%B"))
        elif low == "mmmmm":
            out.append(value.strftime("%B")[:1])
        elif low == "d":
            out.append(str(value.day))
        elif low == "dd":
            out.append(f"{value.day:02d}")
        elif low == "ddd":
            out.append(value.strftime("%a"))
        elif low == "dddd":
            out.append(value.strftime("%A"))
        elif low == "h":
            out.append(str(hour))
        elif low == "hh":
            out.append(f"{hour:02d}")
        elif low == "s":
            out.append(str(value.second))
        elif low == "ss":
            out.append(f"{value.second:02d}")
        elif low == "am/pm":
            out.append("AM" if value.hour < 12 else "PM")
        elif low == "a/p":
            out.append("A" if value.hour < 12 else "P")
        elif low.startswith(".0"):
            width = len(low) - 1
            out.append("." + f"{value.microsecond:06d}"[:width])
        elif tok.startswith('"'):
            out.append(tok[1:-1])
        elif tok.startswith("\\"):
            out.append(tok[1:])
        elif tok.startswith("["):
            continue
        else:
            out.append(tok)
    return "".join(out)


class Cell:
    """A single worksheet cell as seen by the coercion layer.

    ``value`` holds the typed value openpyxl produced (``None``, ``str``, ``bool``,
    numbers or date/time objects); ``number_format`` the cell's display format.
    """

    __slots__ = ("value", "number_format", "date1904")

    def __init__(self, value: Any = None, number_format: str = FORMAT_GENERAL, *, date1904: bool = False) -> None:
        if isinstance(value, np.generic):
            value = value.item()
        self.value = value
        self.number_format = number_format or FORMAT_GENERAL
        self.date1904 = date1904

    @classmethod
    def from_openpyxl(cls, cell: Any, date1904: bool = False) -> "Cell":
        return cls(
            getattr(cell, "value", None),
            getattr(cell, "number_format", FORMAT_GENERAL),
            date1904=date1904,
        )

    def __repr__(self) -> str:
        return f"Cell(value={self.value!r}, number_format={self.number_format!r})"

    @property
    def raw_text(self) -> str:
        """The stored text of the cell, before any number format is applied."""

        value = self.value
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (int, float)):
            return general_number(value)
        if isinstance(value, _DATE_TYPES):
            return general_number(datetime_to_serial(value, self.date1904))
        return str(value)

    def formatted_text(self) -> str:
        """Return the cell text as displayed with its number format."""

        value = self.value
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (datetime, date, time)):
            if is_date_format(self.number_format):
                return render_date(value, self.number_format)
            return render_number(datetime_to_serial(value, self.date1904), self.number_format)
        if isinstance(value, timedelta):
            return render_number(value / timedelta(days=1), self.number_format)
        if isinstance(value, (int, float, Decimal)):
            if self.is_time:
                try:
                    return render_date(self.as_datetime(), self.number_format)
                except ValueError:
                    return general_number(value)
            return render_number(value, self.number_format)
        return str(value)

    @property
    def is_time(self) -> bool:
        """True when the cell natively holds a date/time value."""

        value = self.value
        if isinstance(value, _DATE_TYPES):
            return True
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return is_date_format(self.number_format)

    def as_bool(self) -> bool:
        value = self.value
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float, Decimal)):
            return value != 0
        if isinstance(value, _DATE_TYPES):
            return True
        return self.raw_text != ""

    def as_int(self) -> int:
        """Parse the stored text as a signed 64-bit integer."""

        text = self.raw_text
        if not _INT_PATTERN.fullmatch(text):
            raise ValueError(f"invalid syntax for integer: {text!r}")
        parsed = int(text)
        if not INT64_MIN <= parsed <= INT64_MAX:
            raise ValueError(f"value out of range: {text!r}")
        return parsed

    def as_float(self) -> float:
        """Parse the stored text as a 64-bit float."""

        text = self.raw_text
        if not text or text != text.strip() or "_" in text:
            raise ValueError(f"invalid syntax for float: {text!r}")
        try:
            return float(text)
        except ValueError as exc:
            raise ValueError(f"invalid syntax for float: {text!r}") from exc

    def as_datetime(self, date1904: Optional[bool] = None) -> datetime:
        """Convert a natively date-typed cell into a datetime."""

        base1904 = self.date1904 if date1904 is None else date1904
        value = self.value
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time())
        if isinstance(value, time):
            return datetime.combine(_epoch(base1904).date(), value)
        if isinstance(value, timedelta):
            return _epoch(base1904) + value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return serial_to_datetime(float(value), base1904)
            except OverflowError as exc:
                raise ValueError(f"date serial out of range: {value}") from exc
        raise ValueError(f"cell value {value!r} is not a date")


class SheetView:
    """Zero-based row access over an openpyxl worksheet."""

    def __init__(self, worksheet: Worksheet, date1904: bool = False) -> None:
        self.worksheet = worksheet
        self.date1904 = date1904
        self.max_row, self.max_col = self._dimensions()

    @property
    def name(self) -> str:
        return self.worksheet.title

    def _dimensions(self) -> Tuple[int, int]:
        max_row = self.worksheet.max_row or 0
        max_col = self.worksheet.max_column or 0
        if max_row == 1 and max_col == 1:
            first = next(self.worksheet.iter_rows(min_row=1, max_row=1, max_col=1, values_only=True), (None,))
            if first[0] is None:
                return 0, 0
        return max_row, max_col

    def row(self, index: int) -> List[Cell]:
        """Return the cells of the zero-based row ``index`` padded to ``max_col``."""

        for _, cells in self.rows(start=index, stop=index + 1):
            return cells
        return [Cell(date1904=self.date1904) for _ in range(self.max_col)]

    def rows(self, start: int = 0, stop: Optional[int] = None) -> Iterator[Tuple[int, List[Cell]]]:
        """Yield ``(zero_based_index, cells)`` for every physical row in range."""

        stop = self.max_row if stop is None else min(stop, self.max_row)
        if start >= stop or self.max_col == 0:
            return
        raw_rows = self.worksheet.iter_rows(min_row=start + 1, max_row=stop, max_col=self.max_col)
        for offset, raw in enumerate(raw_rows):
            cells = [Cell.from_openpyxl(cell, self.date1904) for cell in raw]
            cells.extend(Cell(date1904=self.date1904) for _ in range(self.max_col - len(cells)))
            yield start + offset, cells


__all__ = [
    "Cell",
    "SheetView",
    "is_workbook_1904",
    "serial_to_datetime",
    "datetime_to_serial",
    "general_number",
    "render_number",
    "render_date",
]
