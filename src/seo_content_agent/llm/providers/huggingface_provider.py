"""Hugging Face Inference API text-generation provider."""

from __future__ import annotations

import time
from typing import Any, Dict

import requests

from ..types import LLMRequest, LLMResult, ProviderError
from .base import resolve_api_key


class HuggingFaceProvider:
    name = "huggingface"
    base_url = "https://api-inference.huggingface.co/models"

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = resolve_api_key(api_key, "HUGGINGFACE_API_KEY", "HF_TOKEN")

    def generate(self, request: LLMRequest) -> LLMResult:
        if not self._api_key:
            raise ProviderError("HUGGINGFACE_API_KEY/HF_TOKEN missing", provider=self.name)

        # Plain text generation has no system role.
        inputs = f"{request.system}\n\n{request.prompt}" if request.system else request.prompt
        parameters: Dict[str, Any] = {
            "max_new_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": 0.9,
            "return_full_text": False,
        }
        if request.stop:
            parameters["stop"] = list(request.stop)

        start = time.perf_counter()
        try:
            res = requests.post(
                f"{self.base_url}/{request.model}",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"inputs": inputs, "parameters": parameters},
                timeout=request.timeout_seconds,
            )
            res.raise_for_status()
            data = res.json()
        except Exception as exc:
            raise ProviderError(f"Hugging Face API error: {exc}", provider=self.name) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        if isinstance(data, list) and data and isinstance(data[0], dict):
            text = str(data[0].get("generated_text", "") or "")
        elif isinstance(data, dict):
            if data.get("error"):
                raise ProviderError(f"Hugging Face API error: {data['error']}", provider=self.name)
            text = str(data.get("generated_text", "") or "")
        else:
            text = ""
        if not text.strip():
            raise ProviderError("No content in Hugging Face response", provider=self.name)

        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            latency_ms=latency_ms,
        )
