"""Turns uploaded PDFs into PNG previews the VLM can read."""

import io
import logging
from dataclasses import dataclass
from typing import Optional

import fitz  # pymupdf
from PIL import Image

logger = logging.getLogger(__name__)


class PDFConversionError(RuntimeError):
    """Raised when a PDF cannot be converted to an image."""


@dataclass
class RenderConfig:
    """Configuration for PDF rendering."""

    dpi: int = 150
    format: str = "PNG"


class PDFRenderer:
    """Renders single pages of in-memory PDFs via pymupdf."""

    def __init__(self, config: Optional[RenderConfig] = None):
        self.config = config or RenderConfig()

    def _to_image_bytes(self, pix: "fitz.Pixmap") -> bytes:
        img = Image.frombytes("RGBA" if pix.alpha else "RGB", (pix.width, pix.height), pix.samples)
        if img.mode != "RGB":
            img = img.convert("RGB")
        out = io.BytesIO()
        img.save(out, format=self.config.format)
        return out.getvalue()

    def render_page(
        self,
        pdf_bytes: bytes,
        page_num: int = 1,
        dpi: Optional[int] = None,
    ) -> bytes:
        """Render one page of a PDF.

        Args:
            pdf_bytes: PDF file content
            page_num: 1-based page number
            dpi: DPI override, None = config.dpi

        Returns:
            Image bytes in config.format

        Raises:
            PDFConversionError: If the PDF cannot be opened, the page does
                not exist or rendering fails
        """
        try:
            pdf = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.error(f"Cannot open PDF ({len(pdf_bytes)} bytes): {e}")
            raise PDFConversionError(f"PDFを開けませんでした: {e}") from e

        with pdf:
            total = pdf.page_count
            if not 1 <= page_num <= total:
                raise PDFConversionError(
                    f"Invalid page number {page_num} (document has {total} pages)"
                )

            render_dpi = self.config.dpi if dpi is None else dpi
            try:
                pix = pdf.load_page(page_num - 1).get_pixmap(dpi=render_dpi)
                image = self._to_image_bytes(pix)
            except Exception as e:
                logger.error(f"Rendering page {page_num} failed: {e}")
                raise PDFConversionError(f"PDFページの画像変換に失敗しました: {e}") from e

        logger.info(
            f"Rendered page {page_num}/{total} at {render_dpi} DPI "
            f"({len(image)} bytes)"
        )
        return image

    def render_first_page(self, pdf_bytes: bytes) -> bytes:
        return self.render_page(pdf_bytes, page_num=1)
