"""Document schemas - uploaded files, extracted data and document lifecycle state."""

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .cell import ExtractionCell, cell_to_json, parse_cell

# Scalar key -> cell, table key -> list of rows (column key -> cell)
Row = Dict[str, ExtractionCell]
ExtractedData = Dict[str, Union[ExtractionCell, List[Row]]]

# Classifier answer meaning "no template matched"
UNKNOWN_TEMPLATE_ID = "unknown"


class DocumentStatus(str, Enum):
    """Lifecycle state of a processed document."""

    PENDING = "pending"
    PROCESSING = "processing"
    REVIEW = "review"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def label(self) -> str:
        """Japanese display label."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    DocumentStatus.PENDING: "待機中",
    DocumentStatus.PROCESSING: "処理中",
    DocumentStatus.REVIEW: "確認待ち",
    DocumentStatus.COMPLETED: "完了",
    DocumentStatus.ERROR: "エラー",
}


@dataclass(frozen=True)
class UploadedFile:
    """Original uploaded file.

    Attributes:
        name: File name as uploaded
        content: Raw file bytes
        mime_type: MIME type (e.g. "image/png", "application/pdf")
    """
    name: str
    content: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def stem(self) -> str:
        return self.name.split(".")[0]

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf"

    @classmethod
    def from_path(cls, path: Path) -> "UploadedFile":
        """Read a file from disk, guessing its MIME type from the extension."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            mime_type=mime_type or "application/octet-stream",
        )


@dataclass(frozen=True)
class ProcessedDocument:
    """One uploaded document and its extraction state.

    Instances are immutable snapshots; the processor replaces them with
    dataclasses.replace() on every transition.

    Attributes:
        id: Unique document id
        file: Original upload
        preview: Render-ready image bytes (PDFs converted to PNG)
        preview_mime_type: MIME type of preview
        status: Lifecycle state
        template_id: Matched template id; None while not yet classified
            and when the classifier found no matching template
        data: Extracted data (set on review)
        error: Human-readable failure message (set on error)
    """
    id: str
    file: UploadedFile
    preview: bytes = b""
    preview_mime_type: str = "image/png"
    status: DocumentStatus = DocumentStatus.PENDING
    template_id: Optional[str] = None
    data: Optional[ExtractedData] = None
    error: Optional[str] = None

    @property
    def is_classified(self) -> bool:
        """True once the classifier has answered (whatever the answer)."""
        return self.status in (DocumentStatus.REVIEW, DocumentStatus.COMPLETED)

    @property
    def is_unclassified(self) -> bool:
        """Classifier answered but no template matched."""
        return self.is_classified and self.template_id is None

    @property
    def has_data(self) -> bool:
        return bool(self.data)


def parse_extracted_data(raw: Any) -> ExtractedData:
    """Convert the model's "data" object into cells and rows.

    Lists become tables (each row an object of column cells); anything
    else is a scalar cell.

    Raises:
        ValueError: If raw is not an object or a table row is not an object
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Extracted data must be an object, got {type(raw).__name__}")

    data: ExtractedData = {}
    for key, value in raw.items():
        if isinstance(value, list):
            rows: List[Row] = []
            for idx, row in enumerate(value):
                if not isinstance(row, dict):
                    raise ValueError(
                        f"Row {idx} of table '{key}' must be an object, "
                        f"got {type(row).__name__}"
                    )
                rows.append({col: parse_cell(cell) for col, cell in row.items()})
            data[key] = rows
        else:
            data[key] = parse_cell(value)
    return data


def extracted_data_to_json(data: Optional[ExtractedData]) -> Dict[str, Any]:
    """Serialize extracted data back to the model's wire form."""
    result: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if isinstance(value, list):
            result[key] = [
                {col: cell_to_json(cell) for col, cell in row.items()}
                for row in value
            ]
        else:
            result[key] = cell_to_json(value)
    return result
