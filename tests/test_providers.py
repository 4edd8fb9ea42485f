import pytest
import requests

from seo_content_agent.llm.providers import (
    anthropic_provider,
    gemini_provider,
    huggingface_provider,
    replicate_provider,
)
from seo_content_agent.llm.providers.anthropic_provider import AnthropicProvider
from seo_content_agent.llm.providers.base import resolve_api_key
from seo_content_agent.llm.providers.gemini_provider import GeminiProvider
from seo_content_agent.llm.providers.huggingface_provider import HuggingFaceProvider
from seo_content_agent.llm.providers.openai_provider import OpenAIProvider
from seo_content_agent.llm.providers.replicate_provider import ReplicateProvider
from seo_content_agent.llm.types import LLMRequest, ProviderError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def _request(model="m", json_mode=False):
    return LLMRequest(
        stage="keyword_research",
        prompt="user prompt",
        system="system prompt",
        model=model,
        temperature=0.3,
        max_tokens=200,
        timeout_seconds=5,
        stop=("</s>",),
        json_mode=json_mode,
    )


def test_gemini_uses_google_api_key_alias(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")

    provider = GeminiProvider()
    assert provider._api_key == "test-key"


def test_replicate_and_huggingface_env_aliases(monkeypatch):
    monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
    monkeypatch.setenv("REPLICATE_API_KEY", "r-key")
    monkeypatch.delenv("HUGGINGFACE_API_KEY", raising=False)
    monkeypatch.setenv("HF_TOKEN", "hf-key")

    assert ReplicateProvider()._api_key == "r-key"
    assert HuggingFaceProvider()._api_key == "hf-key"
    assert HuggingFaceProvider("explicit")._api_key == "explicit"


def test_empty_env_values_fall_through_to_the_next_alias(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")

    assert resolve_api_key(None, "GEMINI_API_KEY", "GOOGLE_API_KEY") == "g-key"
    assert resolve_api_key("", "GEMINI_API_KEY") is None
    assert GeminiProvider()._api_key == "g-key"


def test_missing_key_is_a_provider_error(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    for provider in (OpenAIProvider(), AnthropicProvider()):
        with pytest.raises(ProviderError):
            provider.generate(_request())


def test_anthropic_maps_request_fields(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeResponse(
            {
                "id": "msg_1",
                "content": [{"type": "text", "text": " hello "}],
                "usage": {"input_tokens": 12, "output_tokens": 3},
            }
        )

    monkeypatch.setattr(anthropic_provider.requests, "post", fake_post)

    result = AnthropicProvider("a-key").generate(_request(model="claude-3-opus-20240229"))

    assert result.text == "hello"
    assert (result.tokens_in, result.tokens_out) == (12, 3)
    assert captured["headers"]["x-api-key"] == "a-key"
    assert captured["json"]["system"] == "system prompt"
    assert captured["json"]["stop_sequences"] == ["</s>"]
    assert captured["timeout"] == 5


def test_http_errors_are_wrapped(monkeypatch):
    monkeypatch.setattr(anthropic_provider.requests, "post", lambda *a, **k: FakeResponse({}, status_code=429))

    with pytest.raises(ProviderError) as excinfo:
        AnthropicProvider("a-key").generate(_request())

    assert excinfo.value.provider == "anthropic"
    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


def test_replicate_joins_streamed_output(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json)
        return FakeResponse({"id": "p1", "status": "succeeded", "output": ["Hel", "lo", "."]})

    monkeypatch.setattr(replicate_provider.requests, "post", fake_post)

    result = ReplicateProvider("r-key").generate(_request(model="meta/llama-2-70b-chat"))

    assert result.text == "Hello."
    assert captured["url"].endswith("/models/meta/llama-2-70b-chat/predictions")
    assert captured["headers"]["Prefer"] == "wait"
    assert captured["json"]["input"]["system_prompt"] == "system prompt"


def test_replicate_failed_prediction_is_a_provider_error(monkeypatch):
    monkeypatch.setattr(
        replicate_provider.requests,
        "post",
        lambda *a, **k: FakeResponse({"status": "failed", "error": "out of memory"}),
    )

    with pytest.raises(ProviderError) as excinfo:
        ReplicateProvider("r-key").generate(_request(model="owner/name:abc123"))

    assert "out of memory" in str(excinfo.value)


def test_huggingface_prepends_system_prompt(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, json=json)
        return FakeResponse([{"generated_text": "Answer."}])

    monkeypatch.setattr(huggingface_provider.requests, "post", fake_post)

    result = HuggingFaceProvider("hf-key").generate(_request(model="mistralai/Mistral-7B-Instruct-v0.2"))

    assert result.text == "Answer."
    assert captured["url"].endswith("/mistralai/Mistral-7B-Instruct-v0.2")
    assert captured["json"]["inputs"] == "system prompt\n\nuser prompt"
    assert captured["json"]["parameters"]["return_full_text"] is False


def test_empty_generation_is_a_provider_error(monkeypatch):
    monkeypatch.setattr(huggingface_provider.requests, "post", lambda *a, **k: FakeResponse([{"generated_text": "  "}]))

    with pytest.raises(ProviderError):
        HuggingFaceProvider("hf-key").generate(_request())


def test_gemini_json_mode_and_key_redaction(monkeypatch):
    captured = {}

    def fake_post(url, json=None, timeout=None):
        captured.update(url=url, json=json)
        return FakeResponse({"candidates": [{"content": {"parts": [{"text": '{"a": 1}'}]}}]})

    monkeypatch.setattr(gemini_provider.requests, "post", fake_post)

    result = GeminiProvider("g-secret").generate(_request(model="gemini-pro", json_mode=True))

    assert result.text == '{"a": 1}'
    assert captured["json"]["generationConfig"]["responseMimeType"] == "application/json"
    assert captured["json"]["generationConfig"]["stopSequences"] == ["</s>"]

    def failing_post(url, json=None, timeout=None):
        raise requests.ConnectionError(f"cannot reach {url}")

    monkeypatch.setattr(gemini_provider.requests, "post", failing_post)

    with pytest.raises(ProviderError) as excinfo:
        GeminiProvider("g-secret").generate(_request(model="gemini-pro"))

    assert "g-secret" not in str(excinfo.value)
