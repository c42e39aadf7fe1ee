"""Normalization utilities for extracted values."""

import re
import unicodedata
from typing import Any

# Separators stripped from dates: slash, dash, dot, 年/月/日 and whitespace
_DATE_SEPARATORS = re.compile(r"[/\-.年月日\s]+")


def normalize_date(raw: Any) -> str:
    """Normalize a date value to a compact digit string (yyyyMMdd).

    Full-width characters are folded to ASCII, the separators above are
    removed, and month/day parts of a separated date are zero-padded.

    Era-based dates (e.g. "R5.10.1") are not converted and the result is
    not checked to be 8 digits or a real calendar date.

    Args:
        raw: Bare date value (str, number or None)

    Returns:
        Normalized string, "" for empty input

    Examples:
        >>> normalize_date("2023/10/01")
        '20231001'
        >>> normalize_date("2023年10月1日")
        '20231001'
        >>> normalize_date("20231001")
        '20231001'
        >>> normalize_date("")
        ''
    """
    if raw is None:
        return ""

    text = unicodedata.normalize("NFKC", str(raw)).strip()
    if not text:
        return ""

    parts = [p for p in _DATE_SEPARATORS.split(text) if p]
    if len(parts) <= 1:
        return "".join(parts)

    head, rest = parts[0], parts[1:]
    padded = [p.zfill(2) if p.isdigit() and len(p) == 1 else p for p in rest]
    return head + "".join(padded)
