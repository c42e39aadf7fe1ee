"""Tests for State Manager, storage backends and the document store."""

import threading
from pathlib import Path

import pytest
import yaml

from vlm_form_reader.core.state import (
    DiskStorage,
    DocumentStore,
    MemoryStorage,
    StateManager,
)
from vlm_form_reader.schemas.document import DocumentStatus, ProcessedDocument, UploadedFile


class TestMemoryStorage:
    """Test suite for MemoryStorage backend."""

    @pytest.fixture
    def storage(self) -> MemoryStorage:
        return MemoryStorage()

    def test_save_and_load(self, storage: MemoryStorage) -> None:
        storage.save("results/a", {"k": "v"})
        assert storage.load("results/a") == {"k": "v"}

    def test_load_default(self, storage: MemoryStorage) -> None:
        assert storage.load("nonexistent", default="default") == "default"
        assert storage.load("nonexistent") is None

    def test_exists(self, storage: MemoryStorage) -> None:
        assert not storage.exists("k")
        storage.save("k", "v")
        assert storage.exists("k")


class TestDiskStorage:
    """Test suite for DiskStorage backend."""

    @pytest.fixture
    def storage(self, tmp_path: Path) -> DiskStorage:
        return DiskStorage(tmp_path)

    def test_directory_creation(self, storage: DiskStorage) -> None:
        assert storage.pages_dir.exists()
        assert storage.vlm_responses_dir.exists()
        assert storage.results_dir.exists()
        assert storage.exports_dir.exists()
        assert storage.logs_dir.exists()

    def test_preview_round_trip(self, storage: DiskStorage) -> None:
        storage.save("pages/doc_1", b"\x89PNG\r\n\x1a\n")
        assert storage.load("pages/doc_1") == b"\x89PNG\r\n\x1a\n"
        assert (storage.pages_dir / "doc_1.png").exists()

    def test_binary_requires_bytes(self, storage: DiskStorage) -> None:
        with pytest.raises(TypeError):
            storage.save("pages/doc_1", "not bytes")

    def test_vlm_response_json(self, storage: DiskStorage) -> None:
        response = {"templateId": "tpl_order_form", "data": {"order_no": "発注1"}}
        storage.save("vlm_responses/doc_1", response)
        assert storage.load("vlm_responses/doc_1") == response

    def test_result_yaml(self, storage: DiskStorage) -> None:
        storage.save("results/doc_1", {"file": "a.png", "template_id": None})
        with (storage.results_dir / "doc_1.yaml").open(encoding="utf-8") as f:
            assert yaml.safe_load(f) == {"file": "a.png", "template_id": None}

    def test_export_keeps_newlines(self, storage: DiskStorage) -> None:
        content = '\ufeffa,b\n"1","2"'
        storage.save("exports/x.csv", content)
        assert (storage.exports_dir / "x.csv").read_bytes() == content.encode("utf-8")
        assert storage.load("exports/x.csv") == content

    def test_invalid_key(self, storage: DiskStorage) -> None:
        with pytest.raises(ValueError, match="Invalid key format"):
            storage.save("no_slash", b"x")
        with pytest.raises(ValueError, match="Unknown key type"):
            storage.save("other/x", b"x")

    def test_missing_returns_default(self, storage: DiskStorage) -> None:
        assert storage.load("results/missing", default={}) == {}
        assert not storage.exists("results/missing")


class TestStateManager:
    """StateManager over both backends."""

    @pytest.fixture(params=["memory", "disk"])
    def manager(self, request, tmp_path: Path) -> StateManager:
        if request.param == "memory":
            return StateManager(MemoryStorage())
        return StateManager(DiskStorage(tmp_path))

    def test_round_trips(self, manager: StateManager) -> None:
        manager.save_preview("d1", b"img")
        manager.save_vlm_response("d1", {"templateId": "unknown", "data": {}})
        manager.save_result("d1", {"data": {"a": "1"}})
        manager.save_export("e.csv", "\ufeffx")

        assert manager.load_preview("d1") == b"img"
        assert manager.load_vlm_response("d1") == {"templateId": "unknown", "data": {}}
        assert manager.load_result("d1") == {"data": {"a": "1"}}
        assert manager.load_export("e.csv") == "\ufeffx"
        assert manager.load_preview("missing") is None


def _doc(doc_id: str) -> ProcessedDocument:
    return ProcessedDocument(id=doc_id, file=UploadedFile(f"{doc_id}.png", b"x", "image/png"))


class TestDocumentStore:
    """Copy-on-write document list."""

    def test_add_keeps_order(self) -> None:
        store = DocumentStore()
        store.add([_doc("a"), _doc("b")])
        store.add([_doc("c")])
        assert [d.id for d in store.documents] == ["a", "b", "c"]

    def test_update_replaces_list(self) -> None:
        store = DocumentStore([_doc("a"), _doc("b")])
        snapshot = store.documents

        updated = store.update("b", lambda d: {"status": DocumentStatus.PROCESSING})

        assert updated.status is DocumentStatus.PROCESSING
        assert store.get("b").status is DocumentStatus.PROCESSING
        # old snapshot untouched
        assert snapshot[1].status is DocumentStatus.PENDING
        assert store.documents is not snapshot

    def test_get_unknown(self) -> None:
        with pytest.raises(KeyError):
            DocumentStore().get("nope")

    def test_failed_change_leaves_store_untouched(self) -> None:
        store = DocumentStore([_doc("a")])
        snapshot = store.documents

        def change(doc):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update("a", change)
        assert store.documents is snapshot

    def test_concurrent_updates_not_lost(self) -> None:
        ids = [f"d{i}" for i in range(20)]
        store = DocumentStore([_doc(i) for i in ids])

        threads = [
            threading.Thread(
                target=store.update,
                args=(doc_id, lambda d: {"error": d.id}),
            )
            for doc_id in ids
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert [d.error for d in store.documents] == ids
