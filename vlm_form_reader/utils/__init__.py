"""Utility helpers."""

from .normalization import normalize_date

__all__ = ["normalize_date"]
