"""Verification editor - human corrections of one document's extracted data.

Every edit builds new dict/list objects for the branch it touches and
publishes the new data tree through on_update, so exporters reading the
document afterwards see it without a separate commit step. Writes go
through with_value(), so a corrected value keeps its box on the page.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple

from ..schemas.cell import Box, ExtractionCell, box_of, unwrap, with_value
from ..schemas.document import ExtractedData, ProcessedDocument, Row
from ..schemas.template import Template, TemplateField

if TYPE_CHECKING:
    from ..core.catalog import TemplateCatalog

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[str, ExtractedData], Any]
ConfirmCallback = Callable[[str], Any]


class TemplateState(str, Enum):
    """How the document's template reference resolves against the catalog."""

    RESOLVED = "resolved"
    # classifier answered "unknown"
    UNCLASSIFIED = "unclassified"
    # template_id set but missing from the catalog (e.g. template deleted)
    UNRESOLVED = "unresolved"


class VerificationEditor:
    """Edits one document's data, guided by its template when it resolves."""

    def __init__(
        self,
        document: ProcessedDocument,
        catalog: "TemplateCatalog",
        on_update: Optional[UpdateCallback] = None,
        on_confirm: Optional[ConfirmCallback] = None,
    ):
        """Initialize editor.

        Args:
            document: Document snapshot to edit
            catalog: Current template catalog
            on_update: Called with (doc_id, data) after every edit
            on_confirm: Called with doc_id by confirm()
        """
        self.doc_id = document.id
        self.template_id = document.template_id
        self.template: Optional[Template] = catalog.get(document.template_id)
        self._data: ExtractedData = dict(document.data or {})
        self._on_update = on_update
        self._on_confirm = on_confirm

        if self.template is not None:
            self.template_state = TemplateState.RESOLVED
        elif document.template_id is None:
            self.template_state = TemplateState.UNCLASSIFIED
        else:
            self.template_state = TemplateState.UNRESOLVED
            logger.warning(
                f"{self.doc_id}: unknown template id '{document.template_id}', "
                f"editing raw data"
            )

    @property
    def data(self) -> ExtractedData:
        return self._data

    @property
    def is_unresolved(self) -> bool:
        return self.template_state is TemplateState.UNRESOLVED

    def _publish(self, data: ExtractedData) -> ExtractedData:
        # a rejected update leaves the editor on the last accepted data
        if self._on_update is not None:
            self._on_update(self.doc_id, data)
        self._data = data
        return data

    def _rows(self, table_key: str) -> List[Row]:
        value = self._data.get(table_key)
        if isinstance(value, list):
            return value
        if value is not None:
            logger.warning(f"{self.doc_id}: '{table_key}' is not a table, replacing it")
        return []

    # --- reads ---------------------------------------------------------------

    def value(self, key: str) -> Any:
        cell = self._data.get(key)
        if isinstance(cell, list):
            raise TypeError(f"'{key}' is a table")
        return unwrap(cell)

    def box(self, key: str) -> Optional[Box]:
        cell = self._data.get(key)
        if isinstance(cell, list):
            return None
        return box_of(cell)

    def rows(self, table_key: str) -> List[Row]:
        return list(self._rows(table_key))

    def cell(self, table_key: str, row_index: int, col_key: str) -> Optional[ExtractionCell]:
        rows = self._rows(table_key)
        if 0 <= row_index < len(rows):
            return rows[row_index].get(col_key)
        return None

    def cell_box(self, table_key: str, row_index: int, col_key: str) -> Optional[Box]:
        return box_of(self.cell(table_key, row_index, col_key))

    def fields(self) -> List[Tuple[Any, Any]]:
        """Ordered (field, value) pairs for display.

        With a resolved template: (TemplateField, scalar value or rows) in
        template order. Otherwise: (key, scalar value or rows) as stored.
        """
        if self.template is None:
            return [
                (key, value if isinstance(value, list) else unwrap(value))
                for key, value in self._data.items()
            ]

        pairs: List[Tuple[TemplateField, Any]] = []
        for f in self.template.fields:
            if f.is_table:
                pairs.append((f, self.rows(f.key)))
            else:
                cell = self._data.get(f.key)
                pairs.append((f, "" if isinstance(cell, list) else unwrap(cell)))
        return pairs

    # --- edits ---------------------------------------------------------------

    def set_scalar(self, key: str, value: Any) -> ExtractedData:
        """Set a scalar field, keeping its box when annotated."""
        current = self._data.get(key)
        if isinstance(current, list):
            raise TypeError(f"'{key}' is a table, use set_cell()")
        return self._publish({**self._data, key: with_value(current, value)})

    def set_cell(self, table_key: str, row_index: int, col_key: str, value: Any) -> ExtractedData:
        """Set one table cell, keeping its box when annotated.

        A row_index past the end grows the table with empty rows up to it.
        """
        if row_index < 0:
            raise IndexError(f"Row index must be >= 0, got {row_index}")

        rows = list(self._rows(table_key))
        while len(rows) <= row_index:
            rows.append({})

        row = rows[row_index]
        rows[row_index] = {**row, col_key: with_value(row.get(col_key), value)}
        return self._publish({**self._data, table_key: rows})

    def add_row(self, table_key: str) -> ExtractedData:
        """Append an empty row."""
        rows = self._rows(table_key) + [{}]
        return self._publish({**self._data, table_key: rows})

    def remove_row(self, table_key: str, row_index: int) -> ExtractedData:
        """Remove the row at row_index; later rows move up.

        Raises:
            IndexError: If row_index is out of range
        """
        rows = self._rows(table_key)
        if not 0 <= row_index < len(rows):
            raise IndexError(
                f"Row {row_index} out of range for table '{table_key}' ({len(rows)} rows)"
            )
        new_rows = rows[:row_index] + rows[row_index + 1:]
        return self._publish({**self._data, table_key: new_rows})

    def confirm(self) -> Any:
        """Hand the document over for confirmation."""
        if self._on_confirm is None:
            raise RuntimeError("Editor was created without a confirm handler")
        return self._on_confirm(self.doc_id)
