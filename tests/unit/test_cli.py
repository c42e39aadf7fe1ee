"""Unit tests for the command line interface."""

from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import StubExtractor
from vlm_form_reader import cli
from vlm_form_reader.core.catalog import load_catalog
from vlm_form_reader.core.extractor import ExtractionError
from vlm_form_reader.core.processor import DocumentProcessor


@pytest.fixture
def image_path(tmp_path: Path, png_bytes) -> Path:
    path = tmp_path / "order.png"
    path.write_bytes(png_bytes)
    return path


def _patched_processor(answers):
    """DocumentProcessor factory injecting a scripted extractor."""
    def factory(config):
        return DocumentProcessor(extractor=StubExtractor(answers), config=config)
    return factory


class TestValidateArguments:
    """Argument validation exits with status 1."""

    def test_no_files(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.validate_arguments([], "key")
        assert exc_info.value.code == 1

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(SystemExit):
            cli.validate_arguments([tmp_path / "nope.png"], "key")

    def test_missing_api_key(self, image_path: Path):
        with pytest.raises(SystemExit):
            cli.validate_arguments([image_path], None)

    def test_ok(self, image_path: Path):
        cli.validate_arguments([image_path], "key")


def test_create_run_dir(tmp_path: Path):
    run_dir = cli.create_run_dir(tmp_path)
    assert run_dir.is_dir()
    assert run_dir.parent == tmp_path
    assert run_dir.name.startswith("run_")


def test_parser_defaults():
    args = cli.build_parser().parse_args(["a.png"])
    assert args.files == [Path("a.png")]
    assert args.workers == 1
    assert args.dpi == 150
    assert not args.confirm
    assert not args.unified


def test_dump_catalog(tmp_path: Path, capsys):
    path = tmp_path / "catalog.yaml"
    assert cli.main(["--dump-catalog", str(path)]) == 0
    assert len(load_catalog(path)) == 4
    assert "Catalog written" in capsys.readouterr().out


class TestMain:
    """Full CLI runs with a scripted extractor."""

    @pytest.fixture(autouse=True)
    def api_key(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

    def test_run_exports(self, tmp_path: Path, image_path: Path, order_form_answer, capsys):
        out_dir = tmp_path / "runs"
        with patch.object(cli, "DocumentProcessor", side_effect=_patched_processor([order_form_answer])):
            code = cli.main([str(image_path), "-o", str(out_dir), "--confirm", "--unified"])

        assert code == 0
        [run_dir] = list(out_dir.iterdir())
        exports = sorted(p.name for p in (run_dir / "exports").iterdir())
        assert len(exports) == 2
        assert exports[0].startswith("export_order_")
        assert exports[1].startswith("unified_export_")
        assert len(list((run_dir / "results").iterdir())) == 1
        assert (run_dir / "logs" / "run.log").exists()

        out = capsys.readouterr().out
        assert "order.png: 完了 | 注文書" in out
        assert "CSV exported:   1" in out

    def test_error_document_reported(self, tmp_path: Path, image_path: Path, capsys):
        answers = [ExtractionError("AI応答の解析に失敗しました")]
        with patch.object(cli, "DocumentProcessor", side_effect=_patched_processor(answers)):
            code = cli.main([str(image_path), "-o", str(tmp_path / "runs"), "--unified"])

        assert code == 0
        out = capsys.readouterr().out
        assert "order.png: エラー | - | AI応答の解析に失敗しました" in out
        assert "Unified export: nothing selected" in out
