"""LLM client: HTTP connection to a text-completion backend.

The engine hands every outbound call to a callable matching:

    async def __call__(self, request: ModelRequest) -> str: ...

The request is already rewritten for the current mode: in combat it carries
the lightweight context and the combat reply budget, in narrative the full
conversation. The client only flattens it to a prompt and sends it.

    HttpLLM   KoboldCpp and OpenAI-compatible backends, by provider_format
    EchoLLM   replies with the last user turn; no network calls
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

from stres.models import ModelRequest
from stres.prompts import render_request

logger = logging.getLogger(__name__)


class LLM(Protocol):
    async def __call__(self, request: ModelRequest) -> str: ...


ProviderFormat = Literal["koboldcpp", "openai"]


class HttpLLM:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp"  POST /api/v1/generate  {"prompt", "max_length", "temperature"}
                     Response: {"results": [{"text": "..."}]}
      "openai"     POST /v1/completions   {"model", "prompt", "max_tokens", "temperature"}
                     Response: {"choices": [{"text": "..."}]}
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    @classmethod
    def from_config(cls, connection: dict[str, Any]) -> HttpLLM:
        """Build a client from the llm_connection config section."""
        return cls(
            provider_url=connection.get("provider_url", ""),
            api_key=connection.get("api_key", ""),
            provider_format=connection.get("provider_format", "koboldcpp"),
            model=connection.get("model", ""),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, request: ModelRequest) -> tuple[str, dict]:
        prompt = render_request(request)
        if self._format == "openai":
            body: dict = {
                "prompt": prompt,
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
            }
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/completions", body

        return f"{self._base_url}/api/v1/generate", {
            "prompt": prompt,
            "max_length": request.max_tokens,
            "temperature": request.temperature,
        }

    def _parse_response(self, data: dict) -> str:
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, request: ModelRequest) -> str:
        url, body = self._build_request(request)
        logger.debug(
            "llm call mode=%s url=%s prompt_len=%d max_tokens=%d",
            request.mode, url, len(body["prompt"]), request.max_tokens,
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response mode=%s len=%d", request.mode, len(text))
        return text


def client_from_connection(connection: dict[str, Any]) -> HttpLLM | None:
    """HttpLLM for a connection section, or None when it has no provider_url."""
    if not connection.get("provider_url"):
        return None
    return HttpLLM.from_config(connection)


class EchoLLM:
    """Replies with the newest user turn. Lets the chat loop run without a model."""

    async def __call__(self, request: ModelRequest) -> str:
        for msg in reversed(request.messages):
            if msg.role == "user":
                return msg.text
        return ""


class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
