"""State management: the document list plus memory and disk persistence backends."""

import json
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple

import yaml

from ..schemas.document import ProcessedDocument

logger = logging.getLogger(__name__)


class StorageBackend(Protocol):
    """Protocol for state storage backends."""

    def save(self, key: str, value: Any) -> None:
        """Save value by key.

        Args:
            key: Storage key (e.g., "pages/doc_1", "vlm_responses/doc_1")
            value: Value to save (bytes, dict or str depending on key type)
        """
        ...

    def load(self, key: str, default: Any = None) -> Any:
        """Load value by key, default if missing."""
        ...

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        ...


class MemoryStorage:
    """In-memory storage backend for interactive sessions and testing."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        logger.info("Initialized MemoryStorage backend")

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value
        logger.debug(f"MemoryStorage: saved key '{key}'")

    def load(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, default)
        logger.debug(f"MemoryStorage: loaded key '{key}' (found: {key in self._data})")
        return value

    def exists(self, key: str) -> bool:
        return key in self._data


class DiskStorage:
    """File-based storage backend.

    Layout under state_dir:
        cache/pages/<id>.png             document previews
        cache/vlm_responses/<id>.json    raw model answers
        results/<id>.yaml                confirmed extraction results
        exports/<name>                   CSV exports
        logs/
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = Path(state_dir)
        self.cache_dir = self.state_dir / "cache"
        self.pages_dir = self.cache_dir / "pages"
        self.vlm_responses_dir = self.cache_dir / "vlm_responses"
        self.results_dir = self.state_dir / "results"
        self.exports_dir = self.state_dir / "exports"
        self.logs_dir = self.state_dir / "logs"

        for directory in [
            self.pages_dir,
            self.vlm_responses_dir,
            self.results_dir,
            self.exports_dir,
            self.logs_dir,
        ]:
            directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized DiskStorage backend at {self.state_dir}")

    def _get_file_path(self, key: str) -> Tuple[Path, str]:
        """Map key to (file path, format) where format is binary/json/yaml/text."""
        parts = key.split("/", 1)

        if len(parts) != 2 or not parts[1]:
            raise ValueError(f"Invalid key format: '{key}'. Expected 'type/name'")

        key_type, name = parts

        if key_type == "pages":
            return self.pages_dir / f"{name}.png", "binary"
        elif key_type == "vlm_responses":
            return self.vlm_responses_dir / f"{name}.json", "json"
        elif key_type == "results":
            return self.results_dir / f"{name}.yaml", "yaml"
        elif key_type == "exports":
            return self.exports_dir / name, "text"
        else:
            raise ValueError(f"Unknown key type: '{key_type}'")

    def save(self, key: str, value: Any) -> None:
        file_path, format_type = self._get_file_path(key)

        try:
            if format_type == "binary":
                if not isinstance(value, bytes):
                    raise TypeError(f"Binary save requires bytes, got {type(value)}")
                file_path.write_bytes(value)

            elif format_type == "json":
                with file_path.open("w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False, indent=2)

            elif format_type == "yaml":
                with file_path.open("w", encoding="utf-8") as f:
                    yaml.dump(value, f, allow_unicode=True, default_flow_style=False)

            elif format_type == "text":
                # newline="" keeps "\n" row separators on every platform
                with file_path.open("w", encoding="utf-8", newline="") as f:
                    f.write(value)

            logger.info(f"DiskStorage: saved key '{key}' to {file_path}")

        except Exception as e:
            logger.error(f"DiskStorage: failed to save key '{key}': {e}")
            raise

    def load(self, key: str, default: Any = None) -> Any:
        file_path, format_type = self._get_file_path(key)

        if not file_path.exists():
            logger.debug(f"DiskStorage: key '{key}' not found, returning default")
            return default

        try:
            if format_type == "binary":
                value = file_path.read_bytes()

            elif format_type == "json":
                with file_path.open("r", encoding="utf-8") as f:
                    value = json.load(f)

            elif format_type == "yaml":
                with file_path.open("r", encoding="utf-8") as f:
                    value = yaml.safe_load(f)

            else:
                with file_path.open("r", encoding="utf-8", newline="") as f:
                    value = f.read()

            logger.debug(f"DiskStorage: loaded key '{key}' from {file_path}")
            return value

        except Exception as e:
            logger.error(f"DiskStorage: failed to load key '{key}': {e}")
            raise

    def exists(self, key: str) -> bool:
        file_path, _ = self._get_file_path(key)
        return file_path.exists()


class StateManager:
    """Persists previews, model answers, results and exports via a storage backend."""

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage
        logger.info(f"Initialized StateManager with {type(storage).__name__}")

    def save_preview(self, doc_id: str, image: bytes) -> None:
        self.storage.save(f"pages/{doc_id}", image)
        logger.debug(f"Saved preview for {doc_id} ({len(image)} bytes)")

    def load_preview(self, doc_id: str) -> Optional[bytes]:
        return self.storage.load(f"pages/{doc_id}", default=None)

    def save_vlm_response(self, doc_id: str, response: Dict[str, Any]) -> None:
        self.storage.save(f"vlm_responses/{doc_id}", response)
        logger.debug(f"Saved VLM response for '{doc_id}'")

    def load_vlm_response(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.storage.load(f"vlm_responses/{doc_id}", default=None)

    def save_result(self, doc_id: str, result: Dict[str, Any]) -> None:
        self.storage.save(f"results/{doc_id}", result)
        logger.info(f"Saved result for '{doc_id}'")

    def load_result(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.storage.load(f"results/{doc_id}", default=None)

    def save_export(self, filename: str, content: str) -> None:
        self.storage.save(f"exports/{filename}", content)
        logger.info(f"Saved export '{filename}'")

    def load_export(self, filename: str) -> Optional[str]:
        return self.storage.load(f"exports/{filename}", default=None)


class DocumentStore:
    """Document list replaced wholesale on every change.

    Readers get an immutable tuple snapshot and never need a lock.
    Writers serialize on an internal lock so that concurrent workers
    never lose each other's updates.
    """

    def __init__(self, documents: Sequence[ProcessedDocument] = ()) -> None:
        self._documents: Tuple[ProcessedDocument, ...] = tuple(documents)
        self._lock = threading.Lock()

    @property
    def documents(self) -> Tuple[ProcessedDocument, ...]:
        return self._documents

    def get(self, doc_id: str) -> ProcessedDocument:
        for doc in self._documents:
            if doc.id == doc_id:
                return doc
        raise KeyError(f"Document not found: {doc_id}")

    def add(self, new_docs: Sequence[ProcessedDocument]) -> None:
        with self._lock:
            self._documents = self._documents + tuple(new_docs)

    def update(
        self,
        doc_id: str,
        change: Callable[[ProcessedDocument], Dict[str, Any]],
    ) -> ProcessedDocument:
        """Apply change to one document atomically.

        Args:
            doc_id: Document id
            change: Receives the current snapshot, returns fields to replace

        Returns:
            New document snapshot

        Raises:
            KeyError: If doc_id is unknown
        """
        with self._lock:
            current = self.get(doc_id)
            updated = replace(current, **change(current))
            self._documents = tuple(
                updated if d.id == doc_id else d for d in self._documents
            )
            return updated
