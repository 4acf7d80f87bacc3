"""HTTP client for the chat-completion vision model (OpenRouter-compatible).

Uses httpx with configurable timeouts and tenacity for retry with
exponential backoff on rate limiting, gateway errors and connection errors.
"""

import base64
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from documents import PDF_MEDIA_TYPE, Document

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})


class ModelServiceUnavailable(Exception):
    """Model provider is temporarily unavailable (retryable — 429, 5xx gateway, connection error)."""


class ModelServiceError(Exception):
    """Model provider returned a non-retryable error or an unusable reply."""


class ModelClient:
    """Chat-completion client sending one prompt plus one document attachment."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model_id: str | None = None,
        temperature: float | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
    ):
        self._model_id = model_id or settings.MODEL_ID
        self._temperature = temperature if temperature is not None else settings.MODEL_TEMPERATURE
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.MODEL_RETRY_ATTEMPTS
        self._retry_delay = retry_delay if retry_delay is not None else settings.MODEL_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.MODEL_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.MODEL_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.MODEL_CONNECT_TIMEOUT

        self._client = httpx.Client(
            base_url=(base_url or settings.MODEL_API_URL).rstrip("/"),
            headers={"Authorization": f"Bearer {api_key if api_key is not None else settings.OPENROUTER_API_KEY}"},
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
        )

    @property
    def model_id(self) -> str:
        return self._model_id

    def close(self):
        self._client.close()

    def complete(self, prompt: str, document: Document) -> str:
        """Ask the model about a document and return its text reply.

        Raises ModelServiceUnavailable (after retries) or ModelServiceError.
        """
        payload = {
            "model": self._model_id,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        _attachment_part(document),
                    ],
                },
            ],
            "temperature": self._temperature,
        }
        return self._complete_with_retry(payload)

    def _complete_with_retry(self, payload: dict) -> str:
        """Retry wrapper — configured dynamically based on settings."""

        @retry(
            retry=retry_if_exception_type(ModelServiceUnavailable),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=60,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Model provider unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        def _do_complete() -> str:
            return self._send_completion(payload)

        return _do_complete()

    def _send_completion(self, payload: dict) -> str:
        """Send a single chat-completion request."""
        try:
            resp = self._client.post("/chat/completions", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Model provider connection failed: %s", e)
            raise ModelServiceUnavailable(f"Cannot connect to model provider: {e}") from e
        except httpx.ReadTimeout as e:
            logger.warning("Model provider read timeout: %s", e)
            raise ModelServiceUnavailable(f"Model provider read timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Model provider HTTP error: %s", e)
            raise ModelServiceError(f"Model provider HTTP error: {e}") from e

        if resp.status_code in RETRYABLE_STATUS_CODES:
            logger.warning("Model provider returned %d", resp.status_code)
            raise ModelServiceUnavailable(
                f"Model provider error: {resp.status_code} {resp.reason_phrase} - {resp.text}"
            )

        if resp.status_code != 200:
            logger.error("Model provider error %d: %s", resp.status_code, resp.text[:500])
            raise ModelServiceError(
                f"Model provider error: {resp.status_code} {resp.reason_phrase} - {resp.text}"
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str) or not content:
            raise ModelServiceError("No response from model")

        return content


def _attachment_part(document: Document) -> dict:
    encoded = base64.b64encode(document.content).decode()
    data_url = f"data:{document.media_type};base64,{encoded}"

    if document.media_type == PDF_MEDIA_TYPE:
        return {
            "type": "file",
            "file": {"filename": document.filename, "file_data": data_url},
        }
    return {"type": "image_url", "image_url": {"url": data_url}}
