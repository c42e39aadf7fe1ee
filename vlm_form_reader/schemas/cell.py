"""Extraction cells - extracted values with optional source location.

A cell is decided once, when model output enters the system:

- BareCell: just the value
- AnnotatedCell: the value plus its box on the page image,
  (ymin, xmin, ymax, xmax) in normalized 0-1000 coordinates

Everything downstream reads values via unwrap() and writes them via
with_value(), so an annotated cell keeps its box after a correction.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class BareCell:
    """Extracted value without location."""
    value: Any


@dataclass(frozen=True)
class AnnotatedCell:
    """Extracted value with its box on the page image."""
    value: Any
    box: Box


ExtractionCell = Union[BareCell, AnnotatedCell]


def _parse_box(raw: Any) -> Optional[Box]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 4:
        return None
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in raw):
        return None
    return (raw[0], raw[1], raw[2], raw[3])


def parse_cell(raw: Any) -> ExtractionCell:
    """Convert model output for one value into a cell.

    Accepts a bare scalar or {"value": ..., "box_2d": [ymin, xmin, ymax, xmax]}.
    An object without a usable box_2d becomes a BareCell.

    Examples:
        >>> parse_cell("123")
        BareCell(value='123')
        >>> parse_cell({"value": "123", "box_2d": [1, 2, 3, 4]})
        AnnotatedCell(value='123', box=(1, 2, 3, 4))
    """
    if isinstance(raw, (BareCell, AnnotatedCell)):
        return raw

    if isinstance(raw, dict) and "value" in raw:
        box = _parse_box(raw.get("box_2d"))
        if box is not None:
            return AnnotatedCell(value=raw["value"], box=box)
        return BareCell(value=raw["value"])

    return BareCell(value=raw)


def unwrap(cell: Optional[ExtractionCell]) -> Any:
    """Return the bare value of a cell ("" for a missing cell)."""
    if cell is None:
        return ""
    return cell.value


def box_of(cell: Optional[ExtractionCell]) -> Optional[Box]:
    """Return the cell's box, or None when it has no location."""
    if isinstance(cell, AnnotatedCell):
        return cell.box
    return None


def with_value(cell: Optional[ExtractionCell], value: Any) -> ExtractionCell:
    """Return a new cell holding value, keeping the box of an annotated cell."""
    if isinstance(cell, AnnotatedCell):
        return AnnotatedCell(value=value, box=cell.box)
    return BareCell(value=value)


def cell_to_json(cell: ExtractionCell) -> Any:
    """Serialize a cell back to the model's wire form."""
    if isinstance(cell, AnnotatedCell):
        return {"value": cell.value, "box_2d": list(cell.box)}
    return cell.value


def cell_text(cell: Optional[ExtractionCell]) -> str:
    """Render the bare value of a cell as text for export."""
    value = unwrap(cell)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
