"""Replicate predictions REST provider."""

from __future__ import annotations

import time
from typing import Any, Dict

import requests

from ..types import LLMRequest, LLMResult, ProviderError
from .base import resolve_api_key

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


class ReplicateProvider:
    name = "replicate"
    base_url = "https://api.replicate.com/v1"
    poll_interval_seconds = 1.0

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key = resolve_api_key(api_key, "REPLICATE_API_TOKEN", "REPLICATE_API_KEY")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def _create(self, request: LLMRequest) -> Dict[str, Any]:
        model_input: Dict[str, Any] = {
            "prompt": request.prompt,
            "system_prompt": request.system,
            "max_new_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": 0.9,
        }
        if request.stop:
            model_input["stop_sequences"] = ",".join(request.stop)

        # "owner/name:version" pins a version, "owner/name" runs the latest.
        if ":" in request.model:
            _, version = request.model.split(":", 1)
            url = f"{self.base_url}/predictions"
            payload: Dict[str, Any] = {"version": version, "input": model_input}
        else:
            url = f"{self.base_url}/models/{request.model}/predictions"
            payload = {"input": model_input}

        res = requests.post(url, headers=self._headers(), json=payload, timeout=request.timeout_seconds)
        res.raise_for_status()
        return res.json()

    def _wait(self, prediction: Dict[str, Any], deadline: float, timeout_seconds: float) -> Dict[str, Any]:
        while prediction.get("status") not in TERMINAL_STATUSES:
            if time.perf_counter() >= deadline:
                raise ProviderError("Replicate prediction did not finish in time", provider=self.name)
            time.sleep(self.poll_interval_seconds)
            get_url = (prediction.get("urls") or {}).get("get")
            if not get_url:
                raise ProviderError("Replicate prediction has no polling URL", provider=self.name)
            res = requests.get(get_url, headers=self._headers(), timeout=timeout_seconds)
            res.raise_for_status()
            prediction = res.json()
        return prediction

    def generate(self, request: LLMRequest) -> LLMResult:
        if not self._api_key:
            raise ProviderError("REPLICATE_API_TOKEN missing", provider=self.name)

        start = time.perf_counter()
        deadline = start + request.timeout_seconds
        try:
            prediction = self._wait(self._create(request), deadline, request.timeout_seconds)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Replicate API error: {exc}", provider=self.name) from exc

        if prediction.get("status") != "succeeded":
            raise ProviderError(
                f"Replicate prediction {prediction.get('status')}: {prediction.get('error')}",
                provider=self.name,
            )

        latency_ms = int((time.perf_counter() - start) * 1000)
        output = prediction.get("output")
        if isinstance(output, list):
            text = "".join(str(chunk) for chunk in output)
        elif isinstance(output, str):
            text = output
        else:
            raise ProviderError("Unexpected response format from Replicate", provider=self.name)
        if not text.strip():
            raise ProviderError("No content in Replicate response", provider=self.name)

        metrics = prediction.get("metrics") or {}
        return LLMResult(
            text=text.strip(),
            provider=self.name,
            model=request.model,
            tokens_in=int(metrics.get("input_token_count", 0) or 0),
            tokens_out=int(metrics.get("output_token_count", 0) or 0),
            latency_ms=latency_ms,
            raw={"id": prediction.get("id")},
        )
