import logging
from functools import lru_cache
from typing import Protocol

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    pass


class TextGenerator(Protocol):
    def complete(self, prompt: str, *, model: str, max_tokens: int, temperature: float) -> str: ...


class AnthropicClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        timeout_s: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api_key = api_key
        self._api_version = api_version
        self._client = httpx.Client(base_url=base_url, timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self._client.close()

    def complete(self, prompt: str, *, model: str, max_tokens: int, temperature: float) -> str:
        if not self._api_key:
            raise LLMError("Anthropic API key is not configured")

        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": self._api_version,
            "content-type": "application/json",
        }
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            response = self._client.post("/v1/messages", json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LLMError(f"Model call failed: {exc}") from exc

        for block in data.get("content") or []:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text") or ""
        raise LLMError("Model response had no text content")


@lru_cache
def get_llm_client() -> AnthropicClient:
    settings = get_settings()
    return AnthropicClient(
        api_key=settings.anthropic_api_key,
        base_url=settings.anthropic_base_url,
        api_version=settings.anthropic_api_version,
        timeout_s=settings.llm_timeout_seconds,
    )
