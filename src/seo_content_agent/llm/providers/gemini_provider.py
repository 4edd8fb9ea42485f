"""Google Gemini REST provider."""

from __future__ import annotations

import time

import requests

from ..types import LLMRequest, LLMResult, ProviderError
from .base import resolve_api_key


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = resolve_api_key(api_key, "GEMINI_API_KEY", "GOOGLE_API_KEY")

    def generate(self, request: LLMRequest) -> LLMResult:
        if not self._api_key:
            raise ProviderError("GEMINI_API_KEY/GOOGLE_API_KEY missing", provider=self.name)

        url = (
            f"https://generativelanguage.googleapis.com/v1beta/models/{request.model}:generateContent"
            f"?key={self._api_key}"
        )
        generation_config = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        }
        if request.stop:
            generation_config["stopSequences"] = list(request.stop)
        if request.json_mode:
            generation_config["responseMimeType"] = "application/json"
        payload = {
            "system_instruction": {"parts": [{"text": request.system}]},
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }

        start = time.perf_counter()
        try:
            res = requests.post(url, json=payload, timeout=request.timeout_seconds)
            res.raise_for_status()
            data = res.json()
        except Exception as exc:
            # The request URL carries the key; keep it out of the message.
            message = str(exc).replace(self._api_key, "***")
            raise ProviderError(f"Gemini API error: {message}", provider=self.name) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        candidates = data.get("candidates", [])
        text = ""
        if candidates:
            parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise ProviderError("No content in Gemini response", provider=self.name)

        usage = data.get("usageMetadata", {})
        tokens_in = int(usage.get("promptTokenCount", 0) or 0)
        tokens_out = int(usage.get("candidatesTokenCount", 0) or 0)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            raw={"responseId": data.get("responseId")},
        )
