"""Unified CSV export - documents of different templates on one column set.

Each known template maps its own field/column keys onto the unified
columns. Documents are exploded per line item, document-level values
repeated on every item row.

Documents whose template has no mapping go through a fallback that
probes field keys common to the known templates. The fallback cannot
know which table holds the line items, so product_name and cases stay
blank. This is a degraded path, kept non-fatal on purpose.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..schemas.cell import cell_text
from ..schemas.document import ExtractedData, ProcessedDocument, Row
from ..utils.normalization import normalize_date
from .csv_export import render_csv, scalar_text, table_rows

logger = logging.getLogger(__name__)

UNIFIED_COLUMNS: Tuple[str, ...] = (
    "order_date",
    "customer",
    "delivery_date",
    "destination",
    "product_name",
    "cases",
    "order_number",
)

DATE_COLUMNS = frozenset({"order_date", "delivery_date"})


@dataclass(frozen=True)
class UnifiedMapping:
    """Source keys of one template for each unified column.

    Attributes:
        scalars: Unified column -> scalar field key
        table_key: Table field holding the line items
        items: Unified column -> column key inside table_key rows
    """
    scalars: Dict[str, str]
    table_key: Optional[str] = None
    items: Dict[str, str] = field(default_factory=dict)


UNIFIED_MAPPINGS: Dict[str, UnifiedMapping] = {
    "tpl_order_form": UnifiedMapping(
        scalars={
            "order_date": "order_date",
            "customer": "buyer_name",
            "delivery_date": "delivery_date",
            "destination": "delivery_place",
            "order_number": "order_no",
        },
        table_key="items",
        items={"product_name": "product_name", "cases": "case_quantity"},
    ),
    "tpl_general_po": UnifiedMapping(
        scalars={
            "order_date": "issue_date",
            "customer": "client_name",
            "delivery_date": "delivery_date",
            "destination": "delivery_place",
            "order_number": "po_no",
        },
        table_key="items",
        items={"product_name": "product_name", "cases": "quantity"},
    ),
    "tpl_shipping_request": UnifiedMapping(
        scalars={
            "order_date": "order_date",
            "customer": "sender_name",
            "delivery_date": "delivery_date",
            "destination": "recipient_name",
            "order_number": "request_no",
        },
        table_key="items",
        items={"product_name": "product_name", "cases": "case_quantity"},
    ),
    "tpl_purchase_order": UnifiedMapping(
        scalars={
            "order_date": "issue_date",
            "customer": "supplier_name",
            "delivery_date": "delivery_date",
            "destination": "delivery_name",
            "order_number": "order_no",
        },
        table_key="items",
        items={"product_name": "item_name", "cases": "box_count"},
    ),
}

# Unified column -> candidate scalar keys, tried in order
FALLBACK_KEYS: Dict[str, Tuple[str, ...]] = {
    "order_date": ("order_date", "issue_date"),
    "customer": ("buyer_name", "client_name", "sender_name", "supplier_name"),
    "delivery_date": ("delivery_date",),
    "destination": ("delivery_place", "recipient_name", "delivery_name"),
    "order_number": ("order_no", "po_no", "request_no"),
}


def _finish(values: Dict[str, str]) -> List[str]:
    row = []
    for col in UNIFIED_COLUMNS:
        value = values.get(col, "")
        row.append(normalize_date(value) if col in DATE_COLUMNS else value)
    return row


def _probe(data: ExtractedData, keys: Sequence[str]) -> str:
    for key in keys:
        text = scalar_text(data, key)
        if text:
            return text
    return ""


def mapped_rows(mapping: UnifiedMapping, data: ExtractedData) -> List[List[str]]:
    """Unified rows of a document with a known mapping, one per line item."""
    doc_values = {col: scalar_text(data, key) for col, key in mapping.scalars.items()}

    items: List[Row] = []
    if mapping.table_key is not None:
        items = table_rows(data, mapping.table_key)
    if not items:
        items = [{}]

    rows = []
    for item in items:
        values = dict(doc_values)
        for col, key in mapping.items.items():
            values[col] = cell_text(item.get(key))
        rows.append(_finish(values))
    return rows


def fallback_rows(data: ExtractedData) -> List[List[str]]:
    """Best-effort single row for a document without a mapping."""
    values = {col: _probe(data, keys) for col, keys in FALLBACK_KEYS.items()}
    return [_finish(values)]


def document_unified_rows(doc: ProcessedDocument) -> List[List[str]]:
    data = doc.data or {}
    mapping = UNIFIED_MAPPINGS.get(doc.template_id) if doc.template_id else None
    if mapping is None:
        logger.warning(
            f"{doc.id}: no unified mapping for template '{doc.template_id}', "
            f"using fallback (product_name/cases left blank)"
        )
        return fallback_rows(data)
    return mapped_rows(mapping, data)


def eligible_documents(documents: Sequence[ProcessedDocument]) -> List[ProcessedDocument]:
    """Selected documents that hold extracted data."""
    return [d for d in documents if d.has_data]


def export_unified_csv(documents: Sequence[ProcessedDocument]) -> Optional[str]:
    """CSV text of the selected documents on the unified column set.

    Args:
        documents: Selected documents, in output order

    Returns:
        CSV text, or None when no selected document holds data
    """
    eligible = eligible_documents(documents)
    if not eligible:
        logger.warning("Unified export: nothing selected")
        return None

    rows: List[List[str]] = [list(UNIFIED_COLUMNS)]
    for doc in eligible:
        rows.extend(document_unified_rows(doc))

    logger.info(
        f"Unified export: {len(rows) - 1} rows from {len(eligible)} documents"
    )
    return render_csv(rows)


def unified_export_filename() -> str:
    return f"unified_export_{int(time.time() * 1000)}.csv"
