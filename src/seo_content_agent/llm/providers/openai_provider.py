"""OpenAI Chat Completions provider."""

from __future__ import annotations

import time
from typing import Any, Dict

from openai import OpenAI

from ..types import LLMRequest, LLMResult, ProviderError
from .base import resolve_api_key


class OpenAIProvider:
    name = "openai"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = resolve_api_key(api_key, "OPENAI_API_KEY")
        self._client = OpenAI(api_key=self._api_key) if self._api_key else None

    def generate(self, request: LLMRequest) -> LLMResult:
        if self._client is None:
            raise ProviderError("OPENAI_API_KEY missing", provider=self.name)

        kwargs: Dict[str, Any] = {
            "model": request.model,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "timeout": request.timeout_seconds,
        }
        if request.stop:
            kwargs["stop"] = list(request.stop)
        if request.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.perf_counter()
        try:
            response = self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise ProviderError(f"OpenAI API error: {exc}", provider=self.name) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", "") or ""
        if not text.strip():
            raise ProviderError("No content in OpenAI response", provider=self.name)

        usage = getattr(response, "usage", None)
        tokens_in = int(getattr(usage, "prompt_tokens", 0) or 0)
        tokens_out = int(getattr(usage, "completion_tokens", 0) or 0)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            raw={"id": getattr(response, "id", None)},
        )
