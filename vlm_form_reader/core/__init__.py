"""Core components: catalog, state, extraction clients and the document processor."""

from .catalog import TemplateCatalog, DEFAULT_TEMPLATES, load_catalog, save_catalog
from .state import (
    StorageBackend,
    MemoryStorage,
    DiskStorage,
    StateManager,
    DocumentStore,
)
from .queue import WorkQueue
from .vlm_client import BaseVLMClient, GeminiVLMClient
from .extractor import (
    BaseTemplateExtractor,
    GeminiTemplateExtractor,
    ExtractionResult,
    ExtractionError,
)
from .processor import DocumentProcessor, InvalidTransitionError

__all__ = [
    # Catalog
    "TemplateCatalog",
    "DEFAULT_TEMPLATES",
    "load_catalog",
    "save_catalog",
    # State management
    "StorageBackend",
    "MemoryStorage",
    "DiskStorage",
    "StateManager",
    "DocumentStore",
    "WorkQueue",
    # VLM
    "BaseVLMClient",
    "GeminiVLMClient",
    "BaseTemplateExtractor",
    "GeminiTemplateExtractor",
    "ExtractionResult",
    "ExtractionError",
    # Lifecycle
    "DocumentProcessor",
    "InvalidTransitionError",
]
