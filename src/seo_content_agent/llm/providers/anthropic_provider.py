"""Anthropic Messages API provider."""

from __future__ import annotations

import time

import requests

from ..types import LLMRequest, LLMResult, ProviderError
from .base import resolve_api_key


class AnthropicProvider:
    name = "anthropic"
    url = "https://api.anthropic.com/v1/messages"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = resolve_api_key(api_key, "ANTHROPIC_API_KEY")

    def generate(self, request: LLMRequest) -> LLMResult:
        if not self._api_key:
            raise ProviderError("ANTHROPIC_API_KEY missing", provider=self.name)

        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        payload = {
            "model": request.model,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "system": request.system,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.stop:
            payload["stop_sequences"] = list(request.stop)

        start = time.perf_counter()
        try:
            res = requests.post(self.url, headers=headers, json=payload, timeout=request.timeout_seconds)
            res.raise_for_status()
            data = res.json()
        except Exception as exc:
            raise ProviderError(f"Claude API error: {exc}", provider=self.name) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        content = data.get("content", [])
        text = ""
        if content and isinstance(content, list):
            text = "".join(
                item.get("text", "")
                for item in content
                if isinstance(item, dict) and item.get("type") == "text"
            )
        if not text.strip():
            raise ProviderError("No content in Claude response", provider=self.name)

        usage = data.get("usage", {})
        tokens_in = int(usage.get("input_tokens", 0) or 0)
        tokens_out = int(usage.get("output_tokens", 0) or 0)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            raw={"id": data.get("id"), "stop_reason": data.get("stop_reason")},
        )
