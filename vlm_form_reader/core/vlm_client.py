"""Gemini REST client used for form classification and extraction."""

import base64
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..schemas.config import VLMConfig

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

# (image bytes, mime type)
ImagePart = Tuple[bytes, str]


class BaseVLMClient:
    """Base interface for VLM clients."""

    def invoke(
        self,
        prompt: str,
        images: List[ImagePart],
        system_instruction: Optional[str] = None,
        response_mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send one prompt with inline images.

        Args:
            prompt: User prompt, placed after the images
            images: (bytes, mime type) pairs
            system_instruction: Optional system instruction
            response_mime_type: Optional response format, e.g. "application/json"

        Returns:
            {"text": str, "raw": {...}}
        """
        raise NotImplementedError


class GeminiVLMClient(BaseVLMClient):
    """generateContent over plain HTTP.

    429 and 5xx answers are retried up to max_retries attempts, sleeping
    backoff_base ** (attempt - 1) seconds in between. Call starts are
    spaced at least min_interval_s apart, also across threads sharing
    one client.
    """

    def __init__(self, config: VLMConfig):
        self.config = config
        self.url = f"{GEMINI_API_BASE}/{config.model}:generateContent"
        self._last_call_ts: Optional[float] = None
        self._calls_made = 0
        self._slot_lock = threading.Lock()

        if not config.api_key:
            logger.warning("GEMINI_API_KEY is empty, requests will be rejected")

    @property
    def calls_made(self) -> int:
        return self._calls_made

    @staticmethod
    def _is_retryable(status: Optional[int]) -> bool:
        return status is not None and (status == 429 or 500 <= status < 600)

    def _wait_for_slot(self) -> None:
        """Block until min_interval_s has passed since the previous call started.

        Threads queue on the lock, so each one waits for the slot reserved
        by the thread before it.
        """
        with self._slot_lock:
            if self._last_call_ts is not None:
                remaining = self.config.min_interval_s - (time.monotonic() - self._last_call_ts)
                if remaining > 0:
                    logger.debug(f"Throttling Gemini call for {remaining:.3f}s")
                    time.sleep(remaining)
            self._last_call_ts = time.monotonic()
            self._calls_made += 1

    def _backoff(self, attempt: int, reason: str) -> None:
        delay = self.config.backoff_base ** (attempt - 1)
        logger.warning(
            f"Gemini call failed ({reason}), attempt {attempt}/{self.config.max_retries}, "
            f"retrying in {delay:.1f}s"
        )
        time.sleep(delay)

    def _make_request_with_retry(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST payload and return the decoded JSON body.

        Raises:
            requests.RequestException: On a non-retryable failure or when
                every attempt failed
        """
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key,
        }
        last_error = "no attempt made"

        for attempt in range(1, self.config.max_retries + 1):
            can_retry = attempt < self.config.max_retries
            try:
                response = requests.post(
                    self.url,
                    headers=headers,
                    json=payload,
                    timeout=self.config.timeout_sec,
                )
                if self._is_retryable(response.status_code) and can_retry:
                    last_error = f"HTTP {response.status_code}: {response.text[:400]}"
                    self._backoff(attempt, f"HTTP {response.status_code}")
                    continue
                if response.status_code >= 400:
                    logger.error(
                        f"Gemini returned HTTP {response.status_code}: {response.text[:400]}"
                    )
                    response.raise_for_status()
                return response.json()

            except requests.exceptions.RequestException as e:
                failed = getattr(e, "response", None)
                status = failed.status_code if failed is not None else None
                if self._is_retryable(status) and can_retry:
                    last_error = str(e)
                    self._backoff(attempt, str(e))
                    continue
                logger.error(f"Gemini call gave up on attempt {attempt}: {e}")
                raise

        raise requests.RequestException(f"Gemini call failed: {last_error}")

    @staticmethod
    def _build_payload(
        prompt: str,
        images: List[ImagePart],
        system_instruction: Optional[str],
        response_mime_type: Optional[str],
    ) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(content).decode("ascii"),
                }
            }
            for content, mime_type in images
        ]
        parts.append({"text": prompt})

        payload: Dict[str, Any] = {"contents": [{"parts": parts}]}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if response_mime_type:
            payload["generationConfig"] = {"responseMimeType": response_mime_type}
        return payload

    def invoke(
        self,
        prompt: str,
        images: List[ImagePart],
        system_instruction: Optional[str] = None,
        response_mime_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._wait_for_slot()
        payload = self._build_payload(prompt, images, system_instruction, response_mime_type)

        logger.info(
            f"Gemini {self.config.model}: {len(images)} image(s), "
            f"response type {response_mime_type or 'text'}"
        )
        started = time.monotonic()
        body = self._make_request_with_retry(payload)
        logger.info(f"Gemini answered in {time.monotonic() - started:.3f}s")

        return self._parse_response(body)

    @staticmethod
    def _parse_response(body: Dict[str, Any]) -> Dict[str, Any]:
        """Join the text parts of the first candidate.

        Raises:
            ValueError: If the body has no candidate content
        """
        try:
            parts = body["candidates"][0].get("content", {}).get("parts", [])
            text = "".join(p["text"] for p in parts if "text" in p)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error(f"Unexpected Gemini response shape: {body}")
            raise ValueError(f"Failed to parse Gemini response: {e!r}") from e

        logger.debug(f"Gemini text length: {len(text)}")
        return {"text": text, "raw": body}
