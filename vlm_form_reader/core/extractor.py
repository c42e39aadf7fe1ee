"""Template extractor - classifies a document image and extracts its fields.

The model sees every template of the catalog, picks one (or answers
"unknown") and returns the field values with their page locations.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from ..schemas.template import Template
from .vlm_client import BaseVLMClient

logger = logging.getLogger(__name__)


class ExtractionError(RuntimeError):
    """Raised when the model call fails or its answer cannot be parsed."""


@dataclass
class ExtractionResult:
    """Raw classifier answer.

    Attributes:
        template_id: Template id as answered by the model ("unknown" allowed)
        data: Extracted data in wire form (cells still unparsed)
    """
    template_id: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)


SYSTEM_INSTRUCTION = """
あなたは帳票処理の専門AIです。
提供された画像を分析し、以下のステップで処理を実行してください。

ステップ1: テンプレート識別
画像の「タイトル」や「レイアウト」を注意深く分析し、提供されたテンプレート定義の中で最も適切なものを1つ選んでください。
タイトル文字を優先して識別してください。
最も一致するテンプレートのIDを "templateId" として出力してください。
もしどれも一致しない場合は "unknown" としてください。

ステップ2: データ抽出
選択したテンプレートのフィールド定義に基づいて、データを抽出してください。

【重要：日付形式 (STRING型として抽出)】
フィールドの説明に「yyyyMMdd形式」とある場合は、画像内の日付（例：「R5.10.1」「2023/10/01」「10月1日」など）を必ず "yyyyMMdd" 形式の半角数字文字列（例: "20231001"）に変換して抽出してください。

【重要：データ出力形式】
すべての抽出フィールドについて、以下のJSON形式で出力してください。
位置情報（box_2d）も含めてください。

{
  "templateId": "選択したテンプレートID",
  "data": {
    "key_name": {
      "value": (抽出された値),
      "box_2d": [ymin, xmin, ymax, xmax] (正規化座標 0-1000)
    },
    "table_key": [
      {
        "col_key": { "value": "...", "box_2d": [...] }
      }
    ]
  }
}

テンプレート定義一覧:
"""

USER_PROMPT = "この帳票を解析し、指定されたJSON形式で結果を出力してください。"


def describe_templates(templates: Sequence[Template]) -> str:
    """Render template catalog as prompt text.

    Table fields list their columns so the model extracts them as arrays.
    """
    blocks = []
    for t in templates:
        lines = []
        for f in t.fields:
            if f.is_table:
                lines.append(f"- {f.key} (TABLE - 配列として抽出):")
                for col in f.columns or []:
                    lines.append(f"  - {col.key} ({col.type.value}): {col.description}")
            else:
                lines.append(f"- {f.key} ({f.type.value}): {f.description}")

        blocks.append(
            f"ID: {t.id}\n"
            f"テンプレート名: {t.name}\n"
            f"特徴・説明: {t.description}\n"
            f"フィールド定義:\n" + "\n".join(lines)
        )
    return "\n---\n".join(blocks)


def build_system_instruction(templates: Sequence[Template]) -> str:
    return SYSTEM_INSTRUCTION + describe_templates(templates)


def clean_json_fence(text: str) -> str:
    """Remove markdown ```json fence from text, if present."""
    pattern = r"```(?:json)?\s*\n?(.*?)\n?```"
    match = re.search(pattern, text, re.DOTALL)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_extraction_response(text: Optional[str]) -> ExtractionResult:
    """Parse model answer into ExtractionResult.

    Raises:
        ExtractionError: On empty answer, invalid JSON or unexpected shape
    """
    if not text or not text.strip():
        raise ExtractionError("AIからの応答がありません")

    try:
        result = json.loads(clean_json_fence(text))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse extraction JSON: {e}")
        logger.debug(f"Raw text: {text[:500]}")
        raise ExtractionError("AI応答の解析に失敗しました") from e

    if not isinstance(result, dict):
        raise ExtractionError(
            f"AI応答の形式が不正です: object expected, got {type(result).__name__}"
        )

    template_id = result.get("templateId")
    if template_id is not None and not isinstance(template_id, str):
        raise ExtractionError(
            f"AI応答の形式が不正です: templateId must be a string, got {template_id!r}"
        )

    data = result.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ExtractionError(
            f"AI応答の形式が不正です: data must be an object, got {type(data).__name__}"
        )

    return ExtractionResult(template_id=template_id or None, data=data)


class BaseTemplateExtractor:
    """Interface of the classify/extract collaborator."""

    def analyze(
        self,
        content: bytes,
        mime_type: str,
        templates: Sequence[Template],
    ) -> ExtractionResult:
        """Classify a document image and extract its fields.

        Args:
            content: Image bytes
            mime_type: Image MIME type
            templates: Full ordered template catalog

        Returns:
            ExtractionResult

        Raises:
            ExtractionError: On any failure
        """
        raise NotImplementedError


class GeminiTemplateExtractor(BaseTemplateExtractor):
    """Extractor backed by a Gemini VLM client in JSON mode."""

    def __init__(self, vlm_client: BaseVLMClient):
        self.vlm_client = vlm_client
        # most recent answer from any worker thread
        self.last_response: Optional[Dict[str, Any]] = None
        self._response_lock = threading.Lock()

    def analyze(
        self,
        content: bytes,
        mime_type: str,
        templates: Sequence[Template],
    ) -> ExtractionResult:
        logger.info(
            f"Analyzing document ({len(content)} bytes, {mime_type}) "
            f"against {len(templates)} templates"
        )

        try:
            response = self.vlm_client.invoke(
                USER_PROMPT,
                [(content, mime_type)],
                system_instruction=build_system_instruction(templates),
                response_mime_type="application/json",
            )
        except Exception as e:
            logger.error(f"VLM call failed: {e}")
            raise ExtractionError(f"AI呼び出しに失敗しました: {e}") from e

        with self._response_lock:
            self.last_response = response
        result = parse_extraction_response(response.get("text"))

        logger.info(
            f"Classified as '{result.template_id}' with {len(result.data)} top-level keys"
        )
        return result
