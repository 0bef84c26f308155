"""Header-to-field binding for worksheet reads."""

# Module responsibilities:
# - Read the header row into column titles.
# - Correlate titles with tagged record fields and resolve one coercion per column.
# - Apply the unknown column / unknown type policies before any data row is read.

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .cells import Cell
from .errors import NoDestinationFieldError, NoUnmarshalerError
from .record import FieldSpec, RecordSchema
from .schema import ReadConfig
from .unmarshal import resolve_unmarshaler
from .utils.log import get_logger
from .value import UnmarshalFunc

logger = get_logger("binding")


@dataclass(frozen=True)
class FieldBinding:
    """Resolved correspondence between one input column and a record field.

    ``unmarshal`` is ``None`` for columns that are read but ignored: no field
    carries the header's tag, or the field's type has no coercion.
    """

    column_index: int
    header: str
    field: Optional[FieldSpec] = None
    unmarshal: Optional[UnmarshalFunc] = None

    @property
    def field_name(self) -> Optional[str]:
        return self.field.name if self.field is not None else None

    @property
    def skipped(self) -> bool:
        return self.unmarshal is None


def read_headers(cells: Sequence[Cell]) -> List[str]:
    """Return the stored text of every header cell."""

    return [cell.raw_text for cell in cells]


def bind_columns(headers: Sequence[str], schema: RecordSchema, config: ReadConfig) -> Tuple[FieldBinding, ...]:
    """Bind each header column to a field of ``schema``.

    Raises:
        NoDestinationFieldError: A header has no tagged field and unknown columns are not skipped.
        NoUnmarshalerError: A matched field has no coercion and unknown types are not skipped.
    """

    tag_map = schema.tag_map(config.tag_name)
    bindings: List[FieldBinding] = []
    for column_index, header in enumerate(headers):
        spec = tag_map.get(header)
        if spec is None:
            if not config.skip_unknown_columns:
                raise NoDestinationFieldError(header, column_index)
            bindings.append(FieldBinding(column_index=column_index, header=header))
            continue

        unmarshal = resolve_unmarshaler(spec.annotation)
        if unmarshal is None:
            if not config.skip_unknown_types:
                raise NoUnmarshalerError(header, column_index)
            bindings.append(FieldBinding(column_index=column_index, header=header, field=spec))
            continue

        bindings.append(
            FieldBinding(column_index=column_index, header=header, field=spec, unmarshal=unmarshal)
        )

    logger.debug(
        "Columns bound",
        extra={
            "record_type": schema.record_type.__name__,
            "bound": [b.header for b in bindings if not b.skipped],
            "skipped": [b.header for b in bindings if b.skipped],
        },
    )
    return tuple(bindings)


__all__ = ["FieldBinding", "read_headers", "bind_columns"]
