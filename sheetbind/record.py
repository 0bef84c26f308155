"""Record type descriptors built from dataclass fields and their tags."""

# Module responsibilities:
# - Describe a dataclass record type once: field names, resolved annotations and tag metadata.
# - Offer the column() helper for tagging fields.
# - Build fresh records whose fields start at their defaults or zero values.

from __future__ import annotations

import dataclasses
from dataclasses import MISSING, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple, get_type_hints

import numpy as np

from .errors import RecordTypeError
from .value import unwrap_optional

DEFAULT_TAG = "excel"

# Sentinel for fields declared without a default or default factory.
NO_DEFAULT: Any = object()

_ZERO_VALUES: Dict[Any, Any] = {
    str: "",
    bool: False,
    int: 0,
    float: 0.0,
    Decimal: Decimal(0),
    datetime: datetime.min,
    date: date.min,
}


def column(
    header: str,
    *,
    tag: str = DEFAULT_TAG,
    default: Any = MISSING,
    default_factory: Any = MISSING,
    metadata: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> Any:
    """Declare a dataclass field bound to the column titled ``header``.

    Equivalent to ``dataclasses.field(metadata={tag: header}, ...)``.
    """

    merged = dict(metadata or {})
    merged[tag] = header
    return field(default=default, default_factory=default_factory, metadata=merged, **kwargs)


def zero_value(annotation: Any) -> Any:
    """Return the value a field of ``annotation`` holds before any cell is read."""

    _, optional = unwrap_optional(annotation)
    if optional:
        return None
    try:
        if annotation in _ZERO_VALUES:
            return _ZERO_VALUES[annotation]
    except TypeError:
        return None
    if isinstance(annotation, type):
        if issubclass(annotation, np.generic):
            return annotation(0)
        try:
            return annotation()
        except (TypeError, ValueError):
            return None
    return None


@dataclass(frozen=True)
class FieldSpec:
    """One declared field of a record type."""

    name: str
    annotation: Any
    metadata: Mapping[str, Any]
    init: bool = True
    default: Any = NO_DEFAULT
    default_factory: Any = NO_DEFAULT

    def tag(self, tag_name: str) -> Optional[str]:
        value = self.metadata.get(tag_name)
        return None if value is None else str(value)

    def initial_value(self) -> Any:
        if self.default is not NO_DEFAULT:
            return self.default
        if self.default_factory is not NO_DEFAULT:
            return self.default_factory()
        return zero_value(self.annotation)


@dataclass(frozen=True)
class RecordSchema:
    """Cached description of a record type, in field declaration order."""

    record_type: type
    fields: Tuple[FieldSpec, ...]
    frozen: bool = False

    def tag_map(self, tag_name: str) -> Dict[str, FieldSpec]:
        """Map tag value -> field; a later field wins when two share a tag."""

        mapping: Dict[str, FieldSpec] = {}
        for spec in self.fields:
            tag = spec.tag(tag_name)
            if tag is not None:
                mapping[tag] = spec
        return mapping

    def new_record(self) -> Any:
        kwargs = {spec.name: spec.initial_value() for spec in self.fields if spec.init}
        return self.record_type(**kwargs)


@lru_cache(maxsize=None)
def describe(record_type: type) -> RecordSchema:
    """Build the descriptor for a dataclass record type."""

    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise RecordTypeError(f"record type must be a dataclass, got {record_type!r}")
    try:
        hints = get_type_hints(record_type)
    except NameError:
        hints = {}
    specs = tuple(
        FieldSpec(
            name=f.name,
            annotation=hints.get(f.name, f.type),
            metadata=f.metadata,
            init=f.init,
            default=NO_DEFAULT if f.default is MISSING else f.default,
            default_factory=NO_DEFAULT if f.default_factory is MISSING else f.default_factory,
        )
        for f in dataclasses.fields(record_type)
    )
    frozen = bool(record_type.__dataclass_params__.frozen)  # type: ignore[attr-defined]
    return RecordSchema(record_type=record_type, fields=specs, frozen=frozen)


__all__ = [
    "DEFAULT_TAG",
    "FieldSpec",
    "NO_DEFAULT",
    "RecordSchema",
    "column",
    "describe",
    "zero_value",
]
