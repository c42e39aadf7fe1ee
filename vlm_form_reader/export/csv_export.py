"""Single-document CSV export in the document's own template layout."""

import csv
import io
import logging
import time
from typing import List, Optional, Sequence

from ..schemas.cell import cell_text
from ..schemas.document import ExtractedData, ProcessedDocument, Row
from ..schemas.template import Template

logger = logging.getLogger(__name__)

# Excel needs the BOM to open UTF-8 CSV files correctly
BOM = "\ufeff"


def render_csv(rows: Sequence[Sequence[str]]) -> str:
    """Render header + body rows as CSV text.

    Header labels are quoted only when they need it. Every body cell is
    double-quoted with " escaped as "". Rows are joined by "\\n" and the
    text starts with a UTF-8 BOM.
    """
    if not rows:
        return BOM

    output = io.StringIO()
    csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n").writerow(rows[0])
    csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n").writerows(rows[1:])
    # no terminator after the last row
    return BOM + output.getvalue()[:-1]


def table_rows(data: Optional[ExtractedData], table_key: str) -> List[Row]:
    """Rows of a table field; [] when absent or not a table."""
    value = (data or {}).get(table_key)
    return value if isinstance(value, list) else []


def scalar_text(data: Optional[ExtractedData], key: str) -> str:
    """Export text of a scalar field; "" when absent or not a scalar."""
    value = (data or {}).get(key)
    if isinstance(value, list):
        return ""
    return cell_text(value)


def document_rows(template: Template, data: Optional[ExtractedData]) -> List[List[str]]:
    """Header and body rows of one document.

    Header: scalar labels, then the first table's column labels as
    "<table label>:<column label>". Only the first table field is
    flattened. Body: one row per table row with the scalar values
    repeated; one row when the table is empty or there is no table.
    """
    scalar_fields, table_fields = template.partition()

    header = [f.label for f in scalar_fields]
    main_table = table_fields[0] if table_fields else None
    columns = (main_table.columns or []) if main_table else []
    if main_table is not None:
        header.extend(f"{main_table.label}:{c.label}" for c in columns)

    if len(table_fields) > 1:
        logger.warning(
            f"Template '{template.id}' has {len(table_fields)} tables, "
            f"only '{main_table.key}' is exported"
        )

    scalars = [scalar_text(data, f.key) for f in scalar_fields]

    if main_table is None:
        return [header, scalars]

    items = table_rows(data, main_table.key) or [{}]
    body = [scalars + [cell_text(row.get(c.key)) for c in columns] for row in items]
    return [header] + body


def document_csv(template: Template, data: Optional[ExtractedData]) -> str:
    """CSV text of one document in its template's layout."""
    rows = document_rows(template, data)
    logger.info(f"Exported {len(rows) - 1} rows for template '{template.id}'")
    return render_csv(rows)


def export_filename(doc: ProcessedDocument) -> str:
    """export_<file stem>_<ms timestamp>.csv"""
    return f"export_{doc.file.stem}_{int(time.time() * 1000)}.csv"
