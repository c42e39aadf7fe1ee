"""Tests for PDF Renderer."""

import io

import fitz
import pytest
from PIL import Image

from vlm_form_reader.preprocessing.renderer import (
    PDFConversionError,
    PDFRenderer,
    RenderConfig,
)


@pytest.fixture
def sample_pdf() -> bytes:
    """Create a simple 3-page PDF in memory.

    Pages have different widths so the rendered page can be identified.
    """
    doc = fitz.open()
    for page_num in range(3):
        page = doc.new_page(width=200 + 100 * page_num, height=300)
        page.insert_text((50, 50), f"Test Page {page_num + 1}", fontsize=24)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def renderer() -> PDFRenderer:
    """Create PDF renderer instance with 72 DPI (1 pt = 1 px)."""
    return PDFRenderer(RenderConfig(dpi=72, format="PNG"))


def _size(png: bytes):
    with Image.open(io.BytesIO(png)) as img:
        assert img.format == "PNG"
        assert img.mode == "RGB"
        return img.size


def test_render_first_page(sample_pdf: bytes, renderer: PDFRenderer) -> None:
    png = renderer.render_first_page(sample_pdf)
    assert png.startswith(b"\x89PNG")
    assert _size(png) == (200, 300)


def test_render_specific_page(sample_pdf: bytes, renderer: PDFRenderer) -> None:
    assert _size(renderer.render_page(sample_pdf, page_num=3)) == (400, 300)


def test_dpi_override(sample_pdf: bytes, renderer: PDFRenderer) -> None:
    width, height = _size(renderer.render_page(sample_pdf, page_num=1, dpi=144))
    assert (width, height) == (400, 600)


def test_default_config() -> None:
    assert PDFRenderer().config.dpi == 150


@pytest.mark.parametrize("page_num", [0, 4, -1])
def test_invalid_page_number(sample_pdf: bytes, renderer: PDFRenderer, page_num: int) -> None:
    with pytest.raises(PDFConversionError, match="Invalid page number"):
        renderer.render_page(sample_pdf, page_num=page_num)


@pytest.mark.parametrize("data", [b"not a pdf at all", b""])
def test_unreadable_pdf(renderer: PDFRenderer, data: bytes) -> None:
    with pytest.raises(PDFConversionError):
        renderer.render_first_page(data)
