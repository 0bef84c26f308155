"""Exceptions raised while binding worksheets to records."""

# Module responsibilities:
# - Define the exception hierarchy shared by the reader, writer and config loader.
# - Provide FieldError / ContentError wrappers that keep the failing cell position and cause.

from __future__ import annotations

from typing import List, Sequence


class SheetbindError(Exception):
    """Base error for the package."""


class ConfigError(SheetbindError):
    """Configuration related error."""


class RecordTypeError(SheetbindError):
    """Raised when a record type cannot be used for reading or writing."""


class SourceReadError(SheetbindError):
    """Raised when a source stream cannot be buffered before parsing."""


class ReadConfigError(SheetbindError):
    """Raised when the read configuration does not fit the workbook layout."""


class SheetIndexOutOfRangeError(ReadConfigError):
    def __init__(self, message: str = "sheet index out of range") -> None:
        super().__init__(message)


class HeaderRowIndexOutOfRangeError(ReadConfigError):
    def __init__(self, message: str = "header row index out of range") -> None:
        super().__init__(message)


class DataStartRowIndexOutOfRangeError(ReadConfigError):
    def __init__(self, message: str = "data start row index out of range") -> None:
        super().__init__(message)


class BindingError(SheetbindError):
    """Raised when a header column cannot be bound to a record field."""

    reason = "binding failed"

    def __init__(self, header: str, column_index: int) -> None:
        self.header = header
        self.column_index = column_index
        super().__init__(f'{self.reason} for column "{header}" at index {column_index}')


class NoDestinationFieldError(BindingError):
    reason = "no destination field with matching tag"


class NoUnmarshalerError(BindingError):
    reason = "no unmarshaler"


class CoercionError(SheetbindError):
    """Raised when a cell value cannot be converted into the destination type."""


class CellParseError(CoercionError):
    """Raised when cell content is not valid for the requested numeric kind."""


class CellFormatError(CoercionError):
    """Raised when a number format code cannot be applied to a cell."""


class NegativeUnsignedError(CoercionError):
    def __init__(self, message: str = "negative integer provided for unsigned field") -> None:
        super().__init__(message)


class NumericOverflowError(CoercionError):
    def __init__(self, message: str = "numeric overflow, number is too large for this field") -> None:
        super().__init__(message)


class NoRecognizedFormatError(CoercionError):
    def __init__(
        self, message: str = "error parsing cell as date/time value: no recognized format"
    ) -> None:
        super().__init__(message)


class FieldError(SheetbindError):
    """A coercion failure pinned to one cell.

    ``row_index`` is the zero-based physical row (the header counts as a row);
    the message reports it one-based.
    """

    def __init__(self, row_index: int, column_index: int, column_header: str, err: BaseException) -> None:
        self.row_index = row_index
        self.column_index = column_index
        self.column_header = column_header
        self.err = err
        super().__init__(
            f'error unmarshalling column "{column_header}" in row {row_index + 1}: {err}'
        )
        self.__cause__ = err

    def unwrap(self) -> BaseException:
        return self.err

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldError):
            return NotImplemented
        return (
            self.row_index == other.row_index
            and self.column_index == other.column_index
            and self.column_header == other.column_header
            and self.err is other.err
        )

    def __hash__(self) -> int:
        return hash((self.row_index, self.column_index, self.column_header, id(self.err)))


class ContentError(SheetbindError):
    """Collected field errors of one read call."""

    def __init__(self, field_errors: Sequence[FieldError], limit_reached: bool = False) -> None:
        self.field_errors: List[FieldError] = list(field_errors)
        self.limit_reached = limit_reached
        if limit_reached:
            message = f"too many ({len(self.field_errors)}) errors reading data from Excel"
        else:
            message = f"{len(self.field_errors)} errors reading data from Excel"
        super().__init__(message)

    def unwrap(self) -> List[FieldError]:
        return list(self.field_errors)

    def __len__(self) -> int:
        return len(self.field_errors)


__all__ = [
    "SheetbindError",
    "ConfigError",
    "RecordTypeError",
    "SourceReadError",
    "ReadConfigError",
    "SheetIndexOutOfRangeError",
    "HeaderRowIndexOutOfRangeError",
    "DataStartRowIndexOutOfRangeError",
    "BindingError",
    "NoDestinationFieldError",
    "NoUnmarshalerError",
    "CoercionError",
    "CellParseError",
    "CellFormatError",
    "NegativeUnsignedError",
    "NumericOverflowError",
    "NoRecognizedFormatError",
    "FieldError",
    "ContentError",
]
