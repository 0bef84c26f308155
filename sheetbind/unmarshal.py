"""Per-field unmarshaler resolution."""

# Module responsibilities:
# - Define the capabilities a field type can offer to control its own conversion.
# - Pick the coercion for a destination type: custom cell unmarshaler, date/time,
#   text unmarshaler, then the built-in primitive coercions.

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Any, Callable, Dict, Optional, Protocol

from .cells import Cell
from .errors import CellParseError
from .value import (
    TIME_UNMARSHAL_FUNCS,
    UnmarshalFunc,
    UnmarshalParameters,
    get_default_unmarshaler,
    unmarshal_pointer,
    unwrap_optional,
)


class ExcelUnmarshaler(Protocol):
    """Types that build themselves from a worksheet cell."""

    @classmethod
    def unmarshal_excel(cls, cell: Cell, params: UnmarshalParameters) -> Any:
        """Return a new instance built from ``cell``; raise to report a bad value."""


class TextUnmarshaler(Protocol):
    """Types that build themselves from the raw cell text."""

    @classmethod
    def unmarshal_text(cls, text: str) -> Any:
        """Return a new instance parsed from ``text``; raise to report a bad value."""


def _decimal_from_text(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation as exc:
        raise CellParseError(f"error parsing cell as decimal value: {text!r}") from exc


# Standard library types whose constructor acts as a text unmarshaler.
TEXT_CONSTRUCTORS: Dict[type, Callable[[str], Any]] = {
    Decimal: _decimal_from_text,
}


def _implements(dest_type: Any, method: str) -> bool:
    return isinstance(dest_type, type) and callable(getattr(dest_type, method, None))


def unmarshal_excel_unmarshaler(cell: Cell, params: UnmarshalParameters, dest_type: Any) -> Any:
    return dest_type.unmarshal_excel(cell, params)


def unmarshal_text_unmarshaler(cell: Cell, params: UnmarshalParameters, dest_type: Any) -> Any:
    if _implements(dest_type, "unmarshal_text"):
        return dest_type.unmarshal_text(cell.raw_text)
    return TEXT_CONSTRUCTORS[dest_type](cell.raw_text)


def _resolve_capability(dest_type: Any) -> Optional[UnmarshalFunc]:
    if _implements(dest_type, "unmarshal_excel"):
        return partial(unmarshal_excel_unmarshaler, dest_type=dest_type)
    if dest_type in TIME_UNMARSHAL_FUNCS:
        return TIME_UNMARSHAL_FUNCS[dest_type]
    if _implements(dest_type, "unmarshal_text") or dest_type in TEXT_CONSTRUCTORS:
        return partial(unmarshal_text_unmarshaler, dest_type=dest_type)
    return None


def resolve_unmarshaler(annotation: Any) -> Optional[UnmarshalFunc]:
    """Return the coercion for a field annotation, or ``None`` when nothing applies.

    Precedence, first match wins:

    1. the type's own ``unmarshal_excel`` classmethod,
    2. ``datetime`` / ``date``,
    3. the type's own ``unmarshal_text`` classmethod (or a known text constructor),
    4. the built-in coercion for the primitive kind.

    One ``Optional[...]`` level is unwrapped before the lookup.
    """

    inner, optional = unwrap_optional(annotation)
    try:
        unmarshal = _resolve_capability(inner)
    except TypeError:  # unhashable annotation objects
        return None
    if unmarshal is None:
        return get_default_unmarshaler(annotation)
    if optional:
        return partial(unmarshal_pointer, unmarshal=unmarshal)
    return unmarshal


__all__ = [
    "ExcelUnmarshaler",
    "TextUnmarshaler",
    "TEXT_CONSTRUCTORS",
    "resolve_unmarshaler",
    "unmarshal_excel_unmarshaler",
    "unmarshal_text_unmarshaler",
]
