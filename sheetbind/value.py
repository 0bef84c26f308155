"""Built-in cell coercions keyed by destination type."""

# Module responsibilities:
# - Convert a Cell into str/bool/int/float/date values with sign, width and overflow checks.
# - Provide the dispatcher from destination type to coercion, including the optional variant.

from __future__ import annotations

import math
import types
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial
from typing import Any, Callable, Dict, Optional, Tuple, Union, get_args, get_origin

import numpy as np

from .cells import INT64_MAX, INT64_MIN, Cell
from .errors import CellFormatError, CellParseError, NegativeUnsignedError, NoRecognizedFormatError, NumericOverflowError


@dataclass(frozen=True)
class UnmarshalParameters:
    """Read options handed to every coercion, including custom unmarshalers."""

    trim_space: bool = False
    date1904: bool = False
    fallback_date_formats: Tuple[str, ...] = ()


UnmarshalFunc = Callable[[Cell, UnmarshalParameters], Any]

_SIGNED_TYPES = (int, np.int8, np.int16, np.int32, np.int64)
_UNSIGNED_TYPES = (np.uint8, np.uint16, np.uint32, np.uint64)


def unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    """Return ``(inner, True)`` for ``Optional[inner]``, else ``(annotation, False)``."""

    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1 and len(get_args(annotation)) == 2:
            return args[0], True
    return annotation, False


def _int_bounds(dest_type: type) -> Tuple[int, int]:
    if dest_type is int:
        return INT64_MIN, INT64_MAX
    info = np.iinfo(dest_type)
    return int(info.min), int(info.max)


def _parse_int(cell: Cell) -> int:
    try:
        return cell.as_int()
    except ValueError as exc:
        raise CellParseError(f"error parsing cell as integer value: {exc}") from exc


def unmarshal_string(cell: Cell, params: UnmarshalParameters) -> str:
    try:
        text = cell.formatted_text()
    except CellFormatError as exc:
        raise CellFormatError(f"error formatting string value: {exc}") from exc
    if params.trim_space:
        text = text.strip()
    return text


def unmarshal_bool(cell: Cell, params: UnmarshalParameters, dest_type: type = bool) -> Any:
    return dest_type(cell.as_bool())


def unmarshal_int(cell: Cell, params: UnmarshalParameters, dest_type: type = int) -> Any:
    value = _parse_int(cell)
    low, high = _int_bounds(dest_type)
    if not low <= value <= high:
        raise NumericOverflowError()
    return dest_type(value)


def unmarshal_uint(cell: Cell, params: UnmarshalParameters, dest_type: type = np.uint64) -> Any:
    value = _parse_int(cell)
    if value < 0:
        raise NegativeUnsignedError()
    _, high = _int_bounds(dest_type)
    if value > high:
        raise NumericOverflowError()
    return dest_type(value)


def unmarshal_float(cell: Cell, params: UnmarshalParameters, dest_type: type = float) -> Any:
    try:
        value = cell.as_float()
    except ValueError as exc:
        raise CellParseError(f"error parsing cell as float value: {exc}") from exc
    if dest_type is np.float32 and math.isfinite(value) and abs(value) > float(np.finfo(np.float32).max):
        raise NumericOverflowError()
    return dest_type(value)


def _parse_fallback(text: str, formats: Tuple[str, ...]) -> Optional[datetime]:
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def unmarshal_time(cell: Cell, params: UnmarshalParameters) -> datetime:
    """Read a date/time cell, falling back to the configured text formats."""

    if cell.is_time:
        try:
            return cell.as_datetime(params.date1904)
        except ValueError as exc:
            parsed = _parse_fallback(cell.raw_text, params.fallback_date_formats)
            if parsed is None:
                raise CellParseError(f"error parsing cell as date/time value: {exc}") from exc
            return parsed
    parsed = _parse_fallback(cell.raw_text, params.fallback_date_formats)
    if parsed is None:
        raise NoRecognizedFormatError()
    return parsed


def unmarshal_date(cell: Cell, params: UnmarshalParameters) -> date:
    return unmarshal_time(cell, params).date()


def unmarshal_pointer(cell: Cell, params: UnmarshalParameters, unmarshal: UnmarshalFunc) -> Any:
    """Coerce into a fresh value of the wrapped type.

    The engine assigns the result only on success, so an optional field stays
    ``None`` whenever the wrapped coercion fails.
    """

    return unmarshal(cell, params)


DEFAULT_UNMARSHAL_FUNCS: Dict[Any, UnmarshalFunc] = {
    str: unmarshal_string,
    bool: unmarshal_bool,
    np.bool_: partial(unmarshal_bool, dest_type=np.bool_),
    float: unmarshal_float,
    np.float64: partial(unmarshal_float, dest_type=np.float64),
    np.float32: partial(unmarshal_float, dest_type=np.float32),
    **{typ: partial(unmarshal_int, dest_type=typ) for typ in _SIGNED_TYPES},
    **{typ: partial(unmarshal_uint, dest_type=typ) for typ in _UNSIGNED_TYPES},
}

TIME_UNMARSHAL_FUNCS: Dict[Any, UnmarshalFunc] = {
    datetime: unmarshal_time,
    date: unmarshal_date,
}


def unmarshal_subtype(cell: Cell, params: UnmarshalParameters, unmarshal: UnmarshalFunc, dest_type: type) -> Any:
    """Coerce with the primitive ``unmarshal``, then build ``dest_type`` from the result."""

    value = unmarshal(cell, params)
    try:
        return dest_type(value)
    except ValueError as exc:
        raise CellParseError(f"error converting {value!r} to {dest_type.__name__}: {exc}") from exc


def _lookup_kind(dest_type: Any) -> Optional[UnmarshalFunc]:
    unmarshal = DEFAULT_UNMARSHAL_FUNCS.get(dest_type)
    if unmarshal is not None or not isinstance(dest_type, type):
        return unmarshal
    for base in dest_type.__mro__[1:]:
        unmarshal = DEFAULT_UNMARSHAL_FUNCS.get(base)
        if unmarshal is not None:
            return partial(unmarshal_subtype, unmarshal=unmarshal, dest_type=dest_type)
    return None


def get_default_unmarshaler(annotation: Any) -> Optional[UnmarshalFunc]:
    """Look up a built-in coercion by primitive kind, unwrapping one optional level.

    Subclasses of a primitive type, ``IntEnum`` and ``str`` enums included, use the
    coercion of their nearest primitive base and keep their own type.
    """

    inner, optional = unwrap_optional(annotation)
    try:
        unmarshal = _lookup_kind(inner)
    except TypeError:  # unhashable annotation objects
        return None
    if unmarshal is None:
        return None
    if optional:
        return partial(unmarshal_pointer, unmarshal=unmarshal)
    return unmarshal


__all__ = [
    "UnmarshalParameters",
    "UnmarshalFunc",
    "DEFAULT_UNMARSHAL_FUNCS",
    "TIME_UNMARSHAL_FUNCS",
    "unwrap_optional",
    "unmarshal_string",
    "unmarshal_bool",
    "unmarshal_int",
    "unmarshal_uint",
    "unmarshal_float",
    "unmarshal_time",
    "unmarshal_date",
    "unmarshal_pointer",
    "unmarshal_subtype",
    "get_default_unmarshaler",
]
