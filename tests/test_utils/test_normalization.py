"""Tests for normalization utilities."""

import pytest

from vlm_form_reader.utils.normalization import normalize_date


class TestNormalizeDate:
    """Test suite for normalize_date function."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2023/10/01", "20231001"),
            ("2023-10-01", "20231001"),
            ("2023.10.01", "20231001"),
            ("2023年10月1日", "20231001"),
            ("2023/1/5", "20230105"),
            ("2023 10 01", "20231001"),
            ("20231001", "20231001"),
        ],
    )
    def test_separators_removed(self, raw: str, expected: str) -> None:
        assert normalize_date(raw) == expected

    def test_full_width_folded(self) -> None:
        assert normalize_date("２０２３／１０／０１") == "20231001"
        assert normalize_date("２０２３年１月２日") == "20230102"

    def test_surrounding_whitespace(self) -> None:
        assert normalize_date("  2023/10/01 ") == "20231001"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty(self, raw) -> None:
        assert normalize_date(raw) == ""

    def test_number_input(self) -> None:
        assert normalize_date(20231001) == "20231001"

    def test_not_validated(self) -> None:
        # era dates and partial dates pass through without conversion
        assert normalize_date("R5.10.1") == "R51001"
        assert normalize_date("10/1") == "1001"
