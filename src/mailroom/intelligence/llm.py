"""Ollama-backed agent responder."""

from __future__ import annotations

import asyncio
import json
import logging
from urllib.parse import urljoin

import httpx

from ..core.config import LlmSettings

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are the concierge for a file-based mailbox. Messages arrive as "
    "markdown files with a metadata header. Answer the sender helpfully and "
    "concisely in plain markdown."
)


class LLMError(RuntimeError):
    """Raised when the LLM provider fails to respond as expected."""


class OllamaAgent:
    """Async client for the Ollama generate API, usable as an agent responder."""

    def __init__(
        self,
        settings: LlmSettings,
        *,
        client: httpx.AsyncClient | None = None,
        system_prompt: str | None = SYSTEM_PROMPT,
        max_attempts: int = 3,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        self._system_prompt = system_prompt
        self._max_attempts = max(1, max_attempts)

    @property
    def provider_id(self) -> str:
        """Return a human readable identifier for the configured model."""
        return f"ollama:{self._settings.model}"

    async def generate(self, prompt: str) -> str:
        """Send a completion request to the Ollama server."""
        endpoint = _resolve_endpoint(self._settings.base_url)
        options: dict[str, object] = {"temperature": self._settings.temperature}
        if self._settings.max_output_tokens is not None:
            options["num_predict"] = self._settings.max_output_tokens
        payload: dict[str, object] = {
            "model": self._settings.model,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }
        if self._system_prompt:
            payload["system"] = self._system_prompt

        client = self._ensure_client()
        data: dict[str, object] | None = None
        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                response = await client.post(
                    endpoint,
                    json=payload,
                    timeout=self._settings.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
                break
            except httpx.HTTPError as exc:
                last_error = exc
                LOGGER.warning(
                    "LLM request attempt %s/%s failed: %s",
                    attempt,
                    self._max_attempts,
                    exc,
                )
            except json.JSONDecodeError as exc:
                raise LLMError("LLM returned invalid JSON") from exc

            if attempt < self._max_attempts:
                await asyncio.sleep(min(2**attempt, 8))

        if data is None:
            raise LLMError("LLM request failed after retries") from last_error

        result = data.get("response") if isinstance(data, dict) else None
        if not isinstance(result, str):
            raise LLMError("LLM response missing 'response' field")
        return result.strip()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client


def _resolve_endpoint(base_url: str) -> str:
    trimmed = base_url.rstrip("/") + "/"
    return urljoin(trimmed, "api/generate")


__all__ = ["LLMError", "OllamaAgent", "SYSTEM_PROMPT"]
