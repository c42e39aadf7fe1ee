"""Root conftest - loads .env and provides shared fixtures."""

import io
from typing import Any, Dict, List, Sequence, Union

import pytest
from dotenv import load_dotenv
from PIL import Image

from vlm_form_reader.core.catalog import TemplateCatalog
from vlm_form_reader.core.extractor import (
    BaseTemplateExtractor,
    ExtractionError,
    ExtractionResult,
)
from vlm_form_reader.schemas.config import ProcessorConfig
from vlm_form_reader.schemas.document import UploadedFile
from vlm_form_reader.schemas.template import Template

load_dotenv()


class StubExtractor(BaseTemplateExtractor):
    """Extractor returning scripted answers in call order.

    Each answer is an ExtractionResult, a dict in wire form
    ({"templateId": ..., "data": ...}) or an exception to raise.
    """

    def __init__(self, answers: Sequence[Union[ExtractionResult, Dict[str, Any], Exception]]):
        self.answers = list(answers)
        self.calls: List[Dict[str, Any]] = []

    def analyze(self, content, mime_type, templates: Sequence[Template]) -> ExtractionResult:
        self.calls.append({"content": content, "mime_type": mime_type, "templates": list(templates)})
        if not self.answers:
            raise ExtractionError("no scripted answer left")
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, ExtractionResult):
            return answer
        return ExtractionResult(template_id=answer.get("templateId"), data=answer.get("data", {}))


@pytest.fixture
def catalog() -> TemplateCatalog:
    """Built-in template catalog."""
    return TemplateCatalog.default()


@pytest.fixture
def png_bytes() -> bytes:
    """Small valid PNG image."""
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_file(png_bytes) -> UploadedFile:
    return UploadedFile(name="order.png", content=png_bytes, mime_type="image/png")


@pytest.fixture
def memory_config() -> ProcessorConfig:
    """Processor config without disk persistence."""
    return ProcessorConfig(state_dir=None, auto_save=True)


@pytest.fixture
def order_form_answer() -> Dict[str, Any]:
    """Model answer for a 注文書 with one annotated line item."""
    return {
        "templateId": "tpl_order_form",
        "data": {
            "order_no": {"value": "123", "box_2d": [10, 20, 30, 40]},
            "order_date": {"value": "2023/10/01", "box_2d": [50, 20, 70, 40]},
            "buyer_name": "株式会社テスト",
            "delivery_date": {"value": "20231005"},
            "delivery_place": "東京倉庫",
            "items": [
                {
                    "product_name": {"value": "A", "box_2d": [100, 10, 120, 200]},
                    "case_quantity": {"value": "5", "box_2d": [100, 210, 120, 260]},
                }
            ],
        },
    }
