import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

import httpx

from quizfeed.config import Settings
from quizfeed.errors import ProviderError

logger = logging.getLogger(__name__)

EMPTY_RESULT = "[]"


def build_request(prompt: str, mime_type: str, data_b64: str) -> Dict[str, Any]:
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": mime_type, "data": data_b64}},
                ],
            }
        ]
    }


def extract_text(payload: Any) -> str:
    """First text part of the first candidate, or an empty array literal."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return EMPTY_RESULT
    return text if isinstance(text, str) else EMPTY_RESULT


class GeminiClient:
    """Calls Gemini generateContent with inline file data and linear backoff."""

    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.http = http
        self.sleep = sleep
        self.url = f"{settings.GEMINI_API_BASE}/models/{settings.GEMINI_MODEL}:generateContent"
        self.api_key = settings.GEMINI_API_KEY
        self.max_attempts = max(1, settings.PROVIDER_MAX_ATTEMPTS)
        self.backoff_ms = settings.PROVIDER_BACKOFF_MS

    async def _attempt(self, body: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self.http.post(self.url, params={"key": self.api_key}, json=body)
        except httpx.TransportError as e:
            raise ProviderError(f"Gemini request failed before a response: {e}", body=str(e), retryable=True) from e

        if response.status_code >= 500:
            raise ProviderError(
                f"Gemini error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
                retryable=True,
            )
        if not response.is_success:
            raise ProviderError(
                f"Gemini error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    async def generate(self, prompt: str, mime_type: str, data_b64: str) -> str:
        """Send the prompt plus file and return the model's text output."""
        body = build_request(prompt, mime_type, data_b64)

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._attempt(body)
            except ProviderError as e:
                if not e.retryable or attempt == self.max_attempts:
                    logger.error(f"Gemini call failed on attempt {attempt}/{self.max_attempts}: {e}")
                    raise
                delay = self.backoff_ms * attempt / 1000
                logger.warning(f"Gemini attempt {attempt}/{self.max_attempts} failed: {e}. Retrying in {delay}s...")
                await self.sleep(delay)
                continue

            try:
                payload = response.json()
            except ValueError:
                payload = None
            return extract_text(payload)

        # unreachable, the loop either returns or raises
        raise ProviderError("Gemini retries exhausted")
