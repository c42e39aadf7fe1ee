"""Data schemas for VLM Form Reader."""

from .template import FieldType, TemplateField, Template
from .cell import (
    BareCell,
    AnnotatedCell,
    ExtractionCell,
    parse_cell,
    unwrap,
    box_of,
    with_value,
    cell_text,
)
from .document import (
    DocumentStatus,
    UploadedFile,
    ProcessedDocument,
    ExtractedData,
    UNKNOWN_TEMPLATE_ID,
    parse_extracted_data,
    extracted_data_to_json,
)
from .config import VLMConfig, ProcessorConfig

__all__ = [
    "FieldType",
    "TemplateField",
    "Template",
    "BareCell",
    "AnnotatedCell",
    "ExtractionCell",
    "parse_cell",
    "unwrap",
    "box_of",
    "with_value",
    "cell_text",
    "DocumentStatus",
    "UploadedFile",
    "ProcessedDocument",
    "ExtractedData",
    "UNKNOWN_TEMPLATE_ID",
    "parse_extracted_data",
    "extracted_data_to_json",
    "VLMConfig",
    "ProcessorConfig",
]
