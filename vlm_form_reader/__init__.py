"""
VLM Form Reader - template-driven extraction of business forms via Vision Language Models.

This package provides:
- DocumentProcessor: upload -> classify/extract -> review -> completed lifecycle
- VerificationEditor: human corrections that keep value locations
- CSV export per document (template layout) and unified across templates
"""

__version__ = "0.1.0"

# Core classes
from .core.processor import DocumentProcessor, InvalidTransitionError
from .core.catalog import TemplateCatalog, DEFAULT_TEMPLATES, load_catalog, save_catalog
from .core.vlm_client import BaseVLMClient, GeminiVLMClient
from .core.extractor import (
    BaseTemplateExtractor,
    GeminiTemplateExtractor,
    ExtractionResult,
    ExtractionError,
)
from .editing.verification import VerificationEditor, TemplateState
from .preprocessing.renderer import PDFRenderer, RenderConfig, PDFConversionError

# Export
from .export.csv_export import document_csv
from .export.unified import UNIFIED_COLUMNS, export_unified_csv

# Schemas
from .schemas.config import ProcessorConfig, VLMConfig
from .schemas.template import FieldType, TemplateField, Template
from .schemas.cell import BareCell, AnnotatedCell, unwrap, box_of
from .schemas.document import DocumentStatus, UploadedFile, ProcessedDocument
from .utils.normalization import normalize_date

__all__ = [
    # Version
    "__version__",

    # Core classes
    "DocumentProcessor",
    "InvalidTransitionError",
    "TemplateCatalog",
    "DEFAULT_TEMPLATES",
    "load_catalog",
    "save_catalog",
    "BaseVLMClient",
    "GeminiVLMClient",
    "BaseTemplateExtractor",
    "GeminiTemplateExtractor",
    "ExtractionResult",
    "ExtractionError",
    "VerificationEditor",
    "TemplateState",
    "PDFRenderer",
    "RenderConfig",
    "PDFConversionError",

    # Export
    "document_csv",
    "UNIFIED_COLUMNS",
    "export_unified_csv",

    # Schemas - Config
    "ProcessorConfig",
    "VLMConfig",

    # Schemas - Template / Document
    "FieldType",
    "TemplateField",
    "Template",
    "BareCell",
    "AnnotatedCell",
    "unwrap",
    "box_of",
    "DocumentStatus",
    "UploadedFile",
    "ProcessedDocument",
    "normalize_date",
]
