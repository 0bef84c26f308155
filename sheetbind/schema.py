"""Read and write configuration containers."""

# Module responsibilities:
# - Provide strongly typed configuration for reading rows into records and writing them back.
# - Define the unmarshal error policy and the callback signatures the reader invokes.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

from .record import DEFAULT_TAG
from .value import UnmarshalParameters

if TYPE_CHECKING:
    from .binding import FieldBinding
    from .cells import Cell

# (cell, in-progress record, binding). The record may be mutated by the callback.
CellCallback = Callable[["Cell", Any, "FieldBinding"], None]
RowFilter = Callable[[Any], bool]


class UnmarshalErrorHandling(str, Enum):
    """Policy applied when a cell cannot be converted."""

    IGNORE = "ignore"  # leave the field at its zero value and continue
    ABORT = "abort"  # fail the read on the first error
    COLLECT = "collect"  # keep reading, report all errors at the end (up to a limit)


@dataclass(frozen=True)
class ReadConfig:
    """Layout and policy for reading one worksheet into records.

    Attributes:
        tag_name: Field metadata key holding the column header.
        sheet_name: Worksheet to read; takes precedence over ``sheet_index`` when found.
        sheet_index: Zero-based worksheet index.
        header_row_index: Zero-based row holding the column headers.
        data_start_row_index: Zero-based first data row; the header counts as a row.
        trim_space: Trim surrounding whitespace in the default string coercion.
        fallback_date_formats: ``strptime`` formats tried in order when a date cell
            is stored as text or cannot be converted natively.
        skip_unknown_columns: Ignore header columns without a matching field.
        skip_unknown_types: Ignore matched fields whose type has no coercion.
        unmarshal_error_handling: See :class:`UnmarshalErrorHandling`.
        max_unmarshal_errors: Collect limit; ``0`` collects everything.
        on_unmarshal_error: Called instead of recording an error (not in ignore mode).
        on_unused_column: Called for every cell of a skipped column.
    """

    tag_name: str = DEFAULT_TAG
    sheet_name: str = ""
    sheet_index: int = 0
    header_row_index: int = 0
    data_start_row_index: int = 1
    trim_space: bool = False
    fallback_date_formats: Tuple[str, ...] = ()
    skip_unknown_columns: bool = True
    skip_unknown_types: bool = False
    unmarshal_error_handling: UnmarshalErrorHandling = UnmarshalErrorHandling.ABORT
    max_unmarshal_errors: int = 10
    on_unmarshal_error: Optional[CellCallback] = None
    on_unused_column: Optional[CellCallback] = None

    def __post_init__(self) -> None:
        # Accept any iterable of formats and plain policy strings.
        object.__setattr__(self, "fallback_date_formats", tuple(self.fallback_date_formats))
        object.__setattr__(
            self, "unmarshal_error_handling", UnmarshalErrorHandling(self.unmarshal_error_handling)
        )
        if self.max_unmarshal_errors < 0:
            raise ValueError("max_unmarshal_errors must be >= 0")

    def unmarshal_parameters(self, date1904: bool = False) -> UnmarshalParameters:
        return UnmarshalParameters(
            trim_space=self.trim_space,
            date1904=date1904,
            fallback_date_formats=self.fallback_date_formats,
        )


@dataclass(frozen=True)
class WriteConfig:
    """Target sheet and header derivation for writing records."""

    sheet_name: str = "Sheet1"
    tag_name: str = DEFAULT_TAG
    ignore_fields_without_tag: bool = False


__all__ = [
    "CellCallback",
    "RowFilter",
    "UnmarshalErrorHandling",
    "ReadConfig",
    "WriteConfig",
]
