"""Google Gemini ``generateContent`` client.

Sends a single user prompt and returns the first candidate's text. Rate
limiting (HTTP 429 or a "quota" error body), server errors and timeouts are
retried on a fixed delay schedule. Every other failure raises
:class:`GeminiError`; callers fall back to canned narrative text.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"
_DEFAULT_RETRY_DELAYS = (15.0, 25.0)


class GeminiError(Exception):
    """Raised when no narrative text could be obtained from Gemini."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class GenerationResult:
    """Text returned by Gemini with call metadata."""

    text: str
    model: str
    attempts: int = 1
    duration_ms: float = 0.0


class GeminiClient:
    """Async client for the Gemini REST API.

    Args:
        api_key: API key sent as the ``key`` query parameter.
        model: Model name, e.g. ``gemini-2.5-flash``.
        base_url: API root up to and including the version segment.
        timeout: Per-request timeout in seconds.
        retry_delays: Seconds to wait before each retry. Its length is the
            number of retries.
        http_client: Optional pre-built client, used by tests to inject an
            ``httpx.MockTransport``.
        sleep: Coroutine used to wait between attempts.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        retry_delays: Sequence[float] = _DEFAULT_RETRY_DELAYS,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_delays = tuple(retry_delays)
        self._client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    @staticmethod
    def build_payload(prompt: str) -> dict[str, Any]:
        return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    @staticmethod
    def extract_text(data: Any) -> str:
        """Pull ``candidates[0].content.parts[0].text`` out of a response.

        Raises:
            GeminiError: If the response has no candidate text.
        """
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GeminiError("Gemini response contained no candidate text") from exc
        if not isinstance(text, str) or not text.strip():
            raise GeminiError("Gemini response contained empty text")
        return text.strip()

    @staticmethod
    def _is_retryable(response: httpx.Response) -> bool:
        if response.status_code == 429 or response.status_code >= 500:
            return True
        return "quota" in response.text.lower()

    async def generate(self, prompt: str) -> GenerationResult:
        """Generate text for ``prompt``.

        Returns:
            The generated text and call metadata.

        Raises:
            GeminiError: If the client is not configured, every attempt
                failed, or the response held no text.
        """
        if not self.is_configured:
            raise GeminiError("GEMINI_API_KEY is not configured")

        client = await self._get_client()
        payload = self.build_payload(prompt)
        max_attempts = len(self.retry_delays) + 1
        started = time.monotonic()
        last_error: Optional[GeminiError] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                wait = self.retry_delays[attempt - 2]
                logger.warning(
                    "Retrying Gemini call in %ss (attempt %d/%d)",
                    wait,
                    attempt,
                    max_attempts,
                )
                await self._sleep(wait)

            try:
                response = await client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=payload,
                    timeout=self.timeout,
                )
            except httpx.TimeoutException as exc:
                last_error = GeminiError(f"Gemini request timed out: {exc}")
                continue
            except httpx.HTTPError as exc:
                last_error = GeminiError(f"Gemini request failed: {exc}")
                continue

            if response.status_code == 200:
                try:
                    data = response.json()
                except ValueError as exc:
                    raise GeminiError("Gemini returned a non-JSON response") from exc
                text = self.extract_text(data)
                duration_ms = (time.monotonic() - started) * 1000
                logger.info(
                    "Gemini %s returned %d chars in %.0fms (attempt %d)",
                    self.model,
                    len(text),
                    duration_ms,
                    attempt,
                )
                return GenerationResult(
                    text=text,
                    model=self.model,
                    attempts=attempt,
                    duration_ms=duration_ms,
                )

            last_error = GeminiError(
                f"Gemini returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
            if not self._is_retryable(response):
                break

        logger.error("Gemini call failed after %d attempt(s): %s", attempt, last_error)
        raise last_error

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "GeminiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
