"""Tests for the template extractor."""

import json
from unittest.mock import Mock

import pytest
import requests

from vlm_form_reader.core.extractor import (
    ExtractionError,
    GeminiTemplateExtractor,
    SYSTEM_INSTRUCTION,
    build_system_instruction,
    clean_json_fence,
    describe_templates,
    parse_extraction_response,
)


class TestPrompt:
    """Catalog rendering for the model."""

    def test_describe_lists_every_template(self, catalog):
        text = describe_templates(catalog.templates)
        for t in catalog:
            assert f"ID: {t.id}" in text
            assert f"テンプレート名: {t.name}" in text
        assert text.count("\n---\n") == len(catalog) - 1

    def test_table_columns_listed(self, catalog):
        text = describe_templates([catalog.get("tpl_order_form")])
        assert "- items (TABLE - 配列として抽出):" in text
        assert "  - product_name (STRING):" in text
        assert "- order_date (STRING):" in text

    def test_system_instruction(self, catalog):
        instruction = build_system_instruction(catalog.templates)
        assert instruction.startswith(SYSTEM_INSTRUCTION)
        assert "tpl_purchase_order" in instruction


class TestParseResponse:
    """Answer parsing."""

    def test_plain_json(self):
        result = parse_extraction_response('{"templateId": "tpl_a", "data": {"x": "1"}}')
        assert result.template_id == "tpl_a"
        assert result.data == {"x": "1"}

    def test_fenced_json(self):
        text = '```json\n{"templateId": "unknown", "data": {}}\n```'
        assert clean_json_fence(text) == '{"templateId": "unknown", "data": {}}'
        assert parse_extraction_response(text).template_id == "unknown"

    def test_missing_parts(self):
        result = parse_extraction_response('{"templateId": ""}')
        assert result.template_id is None
        assert result.data == {}

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty(self, text):
        with pytest.raises(ExtractionError, match="AIからの応答がありません"):
            parse_extraction_response(text)

    def test_invalid_json(self):
        with pytest.raises(ExtractionError, match="AI応答の解析に失敗しました"):
            parse_extraction_response("{not json")

    @pytest.mark.parametrize(
        "payload",
        [[1, 2], {"templateId": 5}, {"templateId": "a", "data": [1]}],
    )
    def test_bad_shape(self, payload):
        with pytest.raises(ExtractionError, match="形式が不正"):
            parse_extraction_response(json.dumps(payload))


class TestGeminiTemplateExtractor:
    """Extractor over a mocked VLM client."""

    def test_analyze(self, catalog, png_bytes, order_form_answer):
        client = Mock()
        client.invoke.return_value = {"text": json.dumps(order_form_answer), "raw": {}}
        extractor = GeminiTemplateExtractor(client)

        result = extractor.analyze(png_bytes, "image/png", catalog.templates)

        assert result.template_id == "tpl_order_form"
        assert result.data == order_form_answer["data"]
        assert extractor.last_response["text"] == json.dumps(order_form_answer)

        args, kwargs = client.invoke.call_args
        assert args[1] == [(png_bytes, "image/png")]
        assert kwargs["response_mime_type"] == "application/json"
        assert "tpl_shipping_request" in kwargs["system_instruction"]

    def test_client_failure_wrapped(self, catalog, png_bytes):
        client = Mock()
        client.invoke.side_effect = requests.HTTPError("500 Server Error")
        extractor = GeminiTemplateExtractor(client)

        with pytest.raises(ExtractionError, match="500 Server Error") as exc_info:
            extractor.analyze(png_bytes, "image/png", catalog.templates)
        assert isinstance(exc_info.value.__cause__, requests.HTTPError)

    def test_empty_answer(self, catalog, png_bytes):
        client = Mock()
        client.invoke.return_value = {"text": "", "raw": {}}

        with pytest.raises(ExtractionError, match="AIからの応答がありません"):
            GeminiTemplateExtractor(client).analyze(png_bytes, "image/png", catalog.templates)
