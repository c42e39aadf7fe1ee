"""Preprocessing utilities for document images."""

from .renderer import PDFRenderer, RenderConfig, PDFConversionError

__all__ = ["PDFRenderer", "RenderConfig", "PDFConversionError"]
