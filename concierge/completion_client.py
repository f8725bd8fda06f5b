"""Thin client for an OpenAI-compatible chat-completions API."""

from typing import Iterator

import requests

from .config import Settings
from .errors import ConfigurationError, UpstreamError
from .http_client import ResilientHttpClient
from .stream_relay import iter_stream_tokens
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="completion_client")


def _iter_response_chunks(resp: requests.Response) -> Iterator[bytes]:
    """Raw body chunks as they arrive; the response is closed when iteration stops."""
    try:
        yield from resp.iter_content(chunk_size=None)
    finally:
        resp.close()


class CompletionClient:
    """Blocking and streaming chat completions over the shared resilient HTTP client."""

    def __init__(self, http: ResilientHttpClient, settings: Settings):
        self.http = http
        self.settings = settings
        self.url = f"{settings.openai_base_url}/chat/completions"

    def _headers(self) -> dict:
        api_key = self.settings.openai_api_key
        if not api_key:
            raise ConfigurationError("OpenAI API key not configured (CONCIERGE_OPENAI_API_KEY)")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, messages: list[dict], *, stream: bool) -> dict:
        return {
            "model": self.settings.openai_stream_model if stream else self.settings.openai_model,
            "messages": messages,
            "stream": stream,
            "max_tokens": self.settings.stream_max_tokens if stream else self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        if resp.ok:
            return
        error_text = (resp.text or "")[:200]
        resp.close()
        raise UpstreamError(
            f"Completion API error: {resp.status_code} {error_text}".rstrip(),
            status_code=resp.status_code,
        )

    def chat(self, messages: list[dict]) -> str:
        """Send a chat request and return the assistant content ("" when absent)."""
        headers = self._headers()
        payload = self._payload(messages, stream=False)
        logger.debug("Completion POST model=%s messages=%d", payload["model"], len(messages))

        resp = self.http.post(self.url, json=payload, headers=headers)
        logger.info(
            "Completion POST took %.2fs, status %d",
            resp.elapsed.total_seconds() if getattr(resp, "elapsed", None) else 0.0,
            resp.status_code,
        )
        self._raise_for_status(resp)

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError(f"Completion API returned non-JSON response: {resp.text[:200]}") from exc

        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError):
            logger.warning("Completion response had no choices[0].message")
            return ""
        # Normalize non-string content to string
        if isinstance(content, (dict, list)):
            content = str(content)
        return content

    def stream_chat(self, messages: list[dict]) -> Iterator[str]:
        """
        Open a streamed completion and return its lazy token iterator.

        Configuration and HTTP status errors surface here, before the first
        token; dropping the iterator closes the upstream connection.
        """
        headers = self._headers()
        payload = self._payload(messages, stream=True)
        logger.debug("Streaming completion POST model=%s messages=%d", payload["model"], len(messages))

        resp = self.http.post(
            self.url,
            json=payload,
            headers=headers,
            stream=True,
            read_timeout=self.settings.stream_read_timeout_seconds,
        )
        self._raise_for_status(resp)
        return iter_stream_tokens(_iter_response_chunks(resp))
