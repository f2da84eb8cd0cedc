"""
LLM Service - Streams chat completions from the configured LLM provider
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import aiohttp

from .errors import ModelError, ModelErrorCode

logger = logging.getLogger(__name__)

_BLOCK_MARKERS = ("safety", "blocked", "content_filter", "content management policy")


class LLMService:
    """Service for streaming responses from various LLM providers"""

    def __init__(self, config: dict[str, Any]):
        self.config = config
        self.provider = config.get("provider", "gemini")

    # ========== Config Helpers ==========

    def _get_gemini_config(self) -> tuple[str, str, str]:
        """Get Gemini config: (api_key, model, base_url). Raises if api_key missing."""
        cfg = self.config.get("gemini", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ModelError("Gemini API key not configured", ModelErrorCode.NO_PERMISSIONS)
        model = cfg.get("model", "gemini-2.5-flash")
        base_url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}"
        return api_key, model, base_url

    def _get_openai_config(self) -> tuple[str, str, dict[str, str]]:
        """Get OpenAI config: (model, url, headers). Raises if api_key missing."""
        cfg = self.config.get("openai", {})
        api_key = cfg.get("apiKey")
        if not api_key:
            raise ModelError("OpenAI API key not configured", ModelErrorCode.NO_PERMISSIONS)
        model = cfg.get("model", "gpt-4")
        url = "https://api.openai.com/v1/chat/completions"
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return model, url, headers

    def _get_vllm_config(self) -> tuple[str, str, dict[str, str]]:
        """Get vLLM config: (model, url, headers)."""
        cfg = self.config.get("vllm", {})
        endpoint = cfg.get("endpoint", "http://localhost:8000").rstrip("/")
        model = cfg.get("model", "default")
        url = f"{endpoint}/v1/chat/completions"
        headers = {"Content-Type": "application/json"}
        if cfg.get("apiKey"):
            headers["Authorization"] = f"Bearer {cfg['apiKey']}"
        return model, url, headers

    # ========== Payload Builders ==========

    def _build_openai_payload(
        self,
        model: str,
        messages: list[dict[str, str]],
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> dict[str, Any]:
        """Build OpenAI-compatible streaming request payload"""
        return {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": True,
        }

    def _build_gemini_payload(
        self,
        messages: list[dict[str, str]],
        max_output_tokens: int = 32768,
    ) -> dict[str, Any]:
        """Build Gemini API request payload"""
        cfg = self.config.get("gemini", {})
        model = cfg.get("model", "gemini-2.5-flash")

        payload = {
            "contents": [
                {
                    "role": "model" if message["role"] == "assistant" else "user",
                    "parts": [{"text": message["content"]}],
                }
                for message in messages
            ],
            "generationConfig": {
                "temperature": cfg.get("temperature", 0.0),
                "topK": 1,
                "topP": 0.95,
                "maxOutputTokens": max_output_tokens,
            },
        }

        # Gemini 2.5 models have built-in "thinking"
        if "2.5" in model or "2-5" in model:
            payload["generationConfig"]["thinkingConfig"] = {"thinkingBudget": 8192}

        return payload

    # ========== Transport ==========

    @asynccontextmanager
    async def _request(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        timeout_seconds: int = 120,
        provider: str = "API",
    ):
        """POST with automatic session cleanup; non-200 becomes a ModelError"""
        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    logger.error("[LLMService] %s API error (%d): %s", provider, response.status, error_text)
                    raise classify_status(response.status, error_text, provider)
                yield response

    async def _stream_response(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None,
        provider: str,
        line_parser: Callable[[str], str | None],
    ) -> AsyncIterator[str]:
        """Stream response and yield parsed content"""
        try:
            async with self._request(url, payload, headers, provider=provider) as response:
                async for line in response.content:
                    line_text = line.decode("utf-8").strip()
                    content = line_parser(line_text)
                    if content:
                        yield content
        except asyncio.TimeoutError as e:
            raise ModelError(f"{provider} request timed out", ModelErrorCode.TRANSIENT, e) from e
        except aiohttp.ClientError as e:
            raise ModelError(f"{provider} connection failed: {e}", ModelErrorCode.TRANSIENT, e) from e

    # ========== Stream Parsers ==========

    def _parse_sse_line(self, line_text: str, extractor: Callable[[dict[str, Any]], str | None]) -> str | None:
        """Parse SSE line with given extractor function"""
        if not line_text.startswith("data:"):
            return None
        data_str = line_text[5:].strip()
        if data_str == "[DONE]":
            return None
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            return None
        return extractor(data)

    def _extract_openai_delta(self, data: dict[str, Any]) -> str | None:
        """Extract content delta from OpenAI stream data"""
        if "error" in data:
            raise _classify_error_payload(data["error"], "OpenAI")
        if "choices" in data and len(data["choices"]) > 0:
            choice = data["choices"][0]
            if choice.get("finish_reason") == "content_filter":
                raise ModelError("Response was blocked by the content filter", ModelErrorCode.BLOCKED)
            delta = choice.get("delta") or {}
            return delta.get("content", "") or None
        return None

    def _extract_gemini_text(self, data: dict[str, Any]) -> str | None:
        """Extract text from Gemini stream data"""
        block_reason = data.get("promptFeedback", {}).get("blockReason")
        if block_reason:
            raise ModelError(f"Prompt was blocked by Gemini ({block_reason})", ModelErrorCode.BLOCKED)
        if "candidates" in data and len(data["candidates"]) > 0:
            candidate = data["candidates"][0]
            if candidate.get("finishReason") == "SAFETY":
                raise ModelError("Response was blocked by Gemini safety filters", ModelErrorCode.BLOCKED)
            parts = candidate.get("content", {}).get("parts", [])
            # Thought parts carry the model's reasoning, not the answer
            text = "".join(part.get("text", "") for part in parts if not part.get("thought"))
            return text or None
        return None

    def _parse_openai_stream_line(self, line_text: str) -> str | None:
        return self._parse_sse_line(line_text, self._extract_openai_delta)

    def _parse_gemini_stream_line(self, line_text: str) -> str | None:
        return self._parse_sse_line(line_text, self._extract_gemini_text)

    # ========== Public API ==========

    async def stream_chat(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        """Stream a chat completion from the configured LLM provider"""
        if self.provider == "gemini":
            stream = self._call_gemini_stream(messages)
        elif self.provider == "vllm":
            stream = self._call_vllm_stream(messages)
        elif self.provider == "openai":
            stream = self._call_openai_stream(messages)
        else:
            raise ValueError(f"Unsupported provider: {self.provider}")

        async for chunk in stream:
            yield chunk

    async def _call_gemini_stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        api_key, model, base_url = self._get_gemini_config()
        logger.info("[LLMService] Streaming from Gemini model: %s", model)
        url = f"{base_url}:streamGenerateContent?alt=sse"
        headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        payload = self._build_gemini_payload(messages)

        async for content in self._stream_response(url, payload, headers, "Gemini", self._parse_gemini_stream_line):
            yield content

    async def _call_vllm_stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        model, url, headers = self._get_vllm_config()
        logger.info("[LLMService] Streaming from vLLM model: %s", model)
        payload = self._build_openai_payload(model, messages)

        async for content in self._stream_response(url, payload, headers, "vLLM", self._parse_openai_stream_line):
            yield content

    async def _call_openai_stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        model, url, headers = self._get_openai_config()
        logger.info("[LLMService] Streaming from OpenAI model: %s", model)
        payload = self._build_openai_payload(model, messages, max_tokens=2000)

        async for content in self._stream_response(url, payload, headers, "OpenAI", self._parse_openai_stream_line):
            yield content


# ═══════════════════════════════════════════════════════════════════════════
# Error classification
# ═══════════════════════════════════════════════════════════════════════════


def classify_status(status: int, error_text: str, provider: str = "API") -> ModelError:
    """Map an HTTP error status from a provider to a ModelError"""
    message = f"{provider} API error ({status}): {_error_message(error_text)}"
    if status == 429:
        code = ModelErrorCode.QUOTA_EXCEEDED
    elif status in (401, 403):
        code = ModelErrorCode.NO_PERMISSIONS
    elif status == 404:
        code = ModelErrorCode.NOT_FOUND
    elif status >= 500:
        code = ModelErrorCode.TRANSIENT
    elif "api key not valid" in error_text.lower():
        code = ModelErrorCode.NO_PERMISSIONS
    elif any(marker in error_text.lower() for marker in _BLOCK_MARKERS):
        code = ModelErrorCode.BLOCKED
    else:
        code = ModelErrorCode.REQUEST_FAILED
    return ModelError(message, code)


def _classify_error_payload(error: Any, provider: str) -> ModelError:
    if isinstance(error, dict):
        text = str(error.get("message", error))
        status = error.get("code")
        if isinstance(status, int):
            return classify_status(status, text, provider)
    else:
        text = str(error)
    return ModelError(f"{provider} API error: {text}", ModelErrorCode.REQUEST_FAILED)


def _error_message(error_text: str) -> str:
    """Pull the human-readable message out of a JSON error body"""
    try:
        data = json.loads(error_text)
    except json.JSONDecodeError:
        return error_text.strip()
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        error = data.get("error", data)
        if isinstance(error, dict) and "message" in error:
            return str(error["message"])
    return error_text.strip()
