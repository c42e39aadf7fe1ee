"""CSV export of verified documents."""

from .csv_export import document_csv, document_rows, export_filename, render_csv
from .unified import (
    UNIFIED_COLUMNS,
    UNIFIED_MAPPINGS,
    UnifiedMapping,
    export_unified_csv,
    unified_export_filename,
)

__all__ = [
    "document_csv",
    "document_rows",
    "export_filename",
    "render_csv",
    "UNIFIED_COLUMNS",
    "UNIFIED_MAPPINGS",
    "UnifiedMapping",
    "export_unified_csv",
    "unified_export_filename",
]
