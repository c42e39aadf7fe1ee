"""DocumentProcessor - Document lifecycle controller.

Each uploaded document moves through

    pending -> processing -> review -> completed
                          \\-> error

pending -> error is also possible when the upload cannot be turned into
an image (PDF conversion failure, unsupported file type).
"""

import logging
import os
import random
import string
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from ..editing.verification import VerificationEditor
from ..export.csv_export import document_csv, export_filename
from ..export.unified import export_unified_csv, unified_export_filename
from ..preprocessing.renderer import PDFConversionError, PDFRenderer, RenderConfig
from ..schemas.config import ProcessorConfig, VLMConfig
from ..schemas.document import (
    UNKNOWN_TEMPLATE_ID,
    DocumentStatus,
    ExtractedData,
    ProcessedDocument,
    UploadedFile,
    extracted_data_to_json,
    parse_extracted_data,
)
from ..schemas.template import Template
from .catalog import TemplateCatalog, load_catalog
from .extractor import BaseTemplateExtractor, GeminiTemplateExtractor
from .queue import WorkQueue
from .state import DocumentStore, MemoryStorage, DiskStorage, StateManager
from .vlm_client import GeminiVLMClient

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a lifecycle operation is not allowed in the document's state."""


def new_document_id() -> str:
    """doc_<ms timestamp>_<9 random base36 chars>"""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"doc_{int(time.time() * 1000)}_{suffix}"


class DocumentProcessor:
    """Owns the document list and drives each document through its lifecycle.

    Features:
    - Sequential extraction by default, bounded concurrency via max_workers
    - Failures stay local to one document
    - Template catalog passed to every extraction, replaced wholesale on edit
    - Optional persistence of previews, model answers, results and exports
    """

    def __init__(
        self,
        catalog: Optional[TemplateCatalog] = None,
        extractor: Optional[BaseTemplateExtractor] = None,
        state_manager: Optional[StateManager] = None,
        renderer: Optional[PDFRenderer] = None,
        config: Optional[ProcessorConfig] = None,
    ):
        """Initialize document processor.

        Args:
            catalog: Template catalog (default: config.catalog_path or built-in templates)
            extractor: Classify/extract collaborator (created from GEMINI_API_KEY if not provided)
            state_manager: State manager (created from config if not provided)
            renderer: PDF renderer (created from config if not provided)
            config: Processor configuration

        Raises:
            ValueError: If no extractor is given and GEMINI_API_KEY is not set
        """
        self.config = config or ProcessorConfig()

        if catalog is None:
            if self.config.catalog_path is not None:
                catalog = load_catalog(self.config.catalog_path)
            else:
                catalog = TemplateCatalog.default()
        self._catalog = catalog

        if state_manager is None:
            if self.config.state_dir is not None:
                storage = DiskStorage(self.config.state_dir)
            else:
                storage = MemoryStorage()
            state_manager = StateManager(storage)
            logger.info(
                f"Created StateManager with {type(storage).__name__} "
                f"(state_dir={self.config.state_dir})"
            )
        self.state_manager = state_manager

        if extractor is None:
            load_dotenv()
            api_key = os.getenv("GEMINI_API_KEY")

            if not api_key:
                raise ValueError(
                    "GEMINI_API_KEY not found in environment. "
                    "Please set it in .env file or pass extractor explicitly."
                )

            extractor = GeminiTemplateExtractor(GeminiVLMClient(VLMConfig(api_key=api_key)))
            logger.info("Created GeminiTemplateExtractor from environment")
        self.extractor = extractor

        self.renderer = renderer or PDFRenderer(RenderConfig(dpi=self.config.render_dpi))
        self.queue = WorkQueue(max_workers=self.config.max_workers)
        self.store = DocumentStore()

        logger.info(
            f"DocumentProcessor initialized with {len(self._catalog)} templates, "
            f"max_workers={self.queue.max_workers}"
        )

    # --- catalog -----------------------------------------------------------

    @property
    def catalog(self) -> TemplateCatalog:
        return self._catalog

    def replace_catalog(self, catalog: TemplateCatalog) -> None:
        """Swap in a new catalog. Extractions already running keep the old one."""
        self._catalog = catalog
        logger.info(f"Template catalog replaced ({len(catalog)} templates)")

    def save_template(self, template: Template) -> None:
        self.replace_catalog(self._catalog.with_template(template))

    def delete_template(self, template_id: str) -> None:
        self.replace_catalog(self._catalog.without_template(template_id))

    # --- documents ---------------------------------------------------------

    @property
    def documents(self) -> Tuple[ProcessedDocument, ...]:
        return self.store.documents

    def get(self, doc_id: str) -> ProcessedDocument:
        return self.store.get(doc_id)

    def _persist(self, doc_id: str, what: str, save: Callable[..., None], *args: Any) -> None:
        """Run a cache save; a failing save only costs the cached copy."""
        try:
            save(*args)
        except Exception as e:
            logger.warning(f"{doc_id}: could not save {what}: {e}")

    def _prepare_preview(self, file: UploadedFile) -> Tuple[bytes, str]:
        if file.is_pdf:
            return self.renderer.render_first_page(file.content), "image/png"
        if file.mime_type.startswith("image/"):
            return file.content, file.mime_type
        raise ValueError(f"Unsupported file type: {file.mime_type}")

    def _create_document(self, file: UploadedFile) -> ProcessedDocument:
        doc_id = new_document_id()
        try:
            preview, preview_mime = self._prepare_preview(file)
        except PDFConversionError as e:
            logger.error(f"PDF conversion failed for '{file.name}': {e}")
            return ProcessedDocument(
                id=doc_id,
                file=file,
                status=DocumentStatus.ERROR,
                error=f"PDF変換エラー: {e}",
            )
        except ValueError as e:
            logger.error(f"Cannot prepare '{file.name}': {e}")
            return ProcessedDocument(
                id=doc_id, file=file, status=DocumentStatus.ERROR, error=str(e)
            )

        if self.config.auto_save:
            self._persist(doc_id, "preview", self.state_manager.save_preview, doc_id, preview)

        return ProcessedDocument(
            id=doc_id,
            file=file,
            preview=preview,
            preview_mime_type=preview_mime,
        )

    def submit(self, files: Iterable[UploadedFile]) -> List[ProcessedDocument]:
        """Register files as pending documents and process them.

        Documents are created and queued in the order the files are given.

        Returns:
            Final document snapshots, in the order of files
        """
        new_docs = [self._create_document(f) for f in files]
        self.store.add(new_docs)
        logger.info(f"Submitted {len(new_docs)} documents")

        pending_ids = [d.id for d in new_docs if d.status is DocumentStatus.PENDING]
        self.queue.run(self.process, pending_ids)

        return [self.store.get(d.id) for d in new_docs]

    def _start_processing(self, doc: ProcessedDocument) -> Dict[str, Any]:
        if doc.status is not DocumentStatus.PENDING:
            raise InvalidTransitionError(
                f"Document {doc.id} cannot be processed in status '{doc.status.value}'"
            )
        return {"status": DocumentStatus.PROCESSING, "error": None}

    def process(self, doc_id: str) -> ProcessedDocument:
        """Classify and extract one pending document.

        Always resolves to review or error; collaborator failures are
        recorded on the document, never raised.

        Raises:
            KeyError: If doc_id is unknown
            InvalidTransitionError: If the document is not pending
        """
        doc = self.store.update(doc_id, self._start_processing)
        catalog = self._catalog
        logger.info(f"Processing {doc.id} ('{doc.file.name}')")

        try:
            result = self.extractor.analyze(
                doc.preview, doc.preview_mime_type, catalog.templates
            )
            data = parse_extracted_data(result.data)
        except Exception as e:
            logger.exception(f"Extraction failed for {doc.id}: {e}")
            message = str(e) or type(e).__name__
            return self.store.update(
                doc_id,
                lambda d: {"status": DocumentStatus.ERROR, "error": message},
            )

        template_id = result.template_id
        if template_id == UNKNOWN_TEMPLATE_ID:
            template_id = None

        if self.config.auto_save:
            self._persist(
                doc_id,
                "model response",
                self.state_manager.save_vlm_response,
                doc_id,
                {"templateId": result.template_id, "data": result.data},
            )

        if template_id is None:
            logger.info(f"{doc.id}: no matching template")
        elif template_id not in catalog:
            logger.warning(f"{doc.id}: model answered unknown template id '{template_id}'")
        else:
            logger.info(f"{doc.id}: classified as '{template_id}'")

        return self.store.update(
            doc_id,
            lambda d: {
                "status": DocumentStatus.REVIEW,
                "template_id": template_id,
                "data": data,
                "error": None,
            },
        )

    def update_data(self, doc_id: str, data: ExtractedData) -> ProcessedDocument:
        """Store edited data on a document (status unchanged).

        Raises:
            InvalidTransitionError: If the document is being processed
        """
        def change(doc: ProcessedDocument) -> Dict[str, Any]:
            if doc.status is DocumentStatus.PROCESSING:
                raise InvalidTransitionError(f"Document {doc.id} is being processed")
            return {"data": data}

        return self.store.update(doc_id, change)

    def confirm(self, doc_id: str) -> ProcessedDocument:
        """Mark a reviewed document as completed.

        No completeness check: confirming is the reviewer's decision.

        Raises:
            InvalidTransitionError: If the document is neither in review nor holds data
        """
        def change(doc: ProcessedDocument) -> Dict[str, Any]:
            allowed = doc.status is DocumentStatus.REVIEW or (
                doc.has_data and doc.status is not DocumentStatus.PROCESSING
            )
            if not allowed:
                raise InvalidTransitionError(
                    f"Document {doc.id} cannot be confirmed in status '{doc.status.value}'"
                )
            return {"status": DocumentStatus.COMPLETED}

        doc = self.store.update(doc_id, change)
        logger.info(f"{doc.id} confirmed")

        if self.config.auto_save:
            self.state_manager.save_result(
                doc.id,
                {
                    "file": doc.file.name,
                    "template_id": doc.template_id,
                    "data": extracted_data_to_json(doc.data),
                },
            )
        return doc

    def editor(self, doc_id: str) -> VerificationEditor:
        """Open a verification editor publishing its edits back to this processor."""
        return VerificationEditor(
            self.store.get(doc_id),
            self._catalog,
            on_update=self.update_data,
            on_confirm=self.confirm,
        )

    # --- export ------------------------------------------------------------

    def export_document(self, doc_id: str) -> Tuple[str, str]:
        """Export one document as CSV in its template's layout.

        Returns:
            (filename, CSV content)

        Raises:
            ValueError: If the document's template cannot be resolved
        """
        doc = self.store.get(doc_id)
        template = self._catalog.get(doc.template_id)
        if template is None:
            raise ValueError(f"Document {doc.id} has no resolvable template")

        content = document_csv(template, doc.data)
        filename = export_filename(doc)
        if self.config.auto_save:
            self.state_manager.save_export(filename, content)
        return filename, content

    def export_unified(self, doc_ids: Sequence[str]) -> Optional[Tuple[str, str]]:
        """Export selected documents onto the unified column set.

        Returns:
            (filename, CSV content), or None when nothing eligible was selected
        """
        selected = [self.store.get(doc_id) for doc_id in doc_ids]
        content = export_unified_csv(selected)
        if content is None:
            return None

        filename = unified_export_filename()
        if self.config.auto_save:
            self.state_manager.save_export(filename, content)
        return filename, content
