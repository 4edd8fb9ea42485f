from copy import deepcopy

import pytest

from seo_content_agent.config import DEFAULT_SETTINGS, load_settings, parse_route, routes_for_model
from seo_content_agent.llm.registry import ProviderRegistry, build_chain, params_for_task
from seo_content_agent.orchestrator import route_table


class KeyRecordingProvider:
    def __init__(self, name, api_key):
        self.name = name
        self.api_key = api_key


def _registry():
    names = ["openai", "anthropic", "gemini", "replicate", "huggingface"]
    return ProviderRegistry({name: (lambda key, n=name: KeyRecordingProvider(n, key)) for name in names})


def test_parse_route_splits_on_first_colon():
    assert parse_route("openai:gpt-4") == ("openai", "gpt-4")
    assert parse_route("replicate:meta/llama-2-70b-chat:02e5") == ("replicate", "meta/llama-2-70b-chat:02e5")
    for bad in ("openai", ":gpt-4", "openai: "):
        with pytest.raises(ValueError):
            parse_route(bad)


def test_load_settings_merges_yaml_over_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("llm:\n  timeout_seconds: 12\ntasks:\n  meta_description:\n    max_tokens: 300\n")

    config = load_settings(str(path))

    assert config["llm"]["timeout_seconds"] == 12
    assert config["llm"]["temperature"] == DEFAULT_SETTINGS["llm"]["temperature"]
    assert config["tasks"]["meta_description"]["max_tokens"] == 300
    assert config["tasks"]["meta_description"]["timeout_seconds"] == 30
    assert load_settings(str(tmp_path / "missing.yaml")) == DEFAULT_SETTINGS


def test_task_params_layer_over_global_llm_settings():
    config = deepcopy(DEFAULT_SETTINGS)
    config["tasks"]["article_write"]["stop"] = ["</s>"]

    params = params_for_task(config, "article_write")

    assert params.max_tokens == 4000
    assert params.timeout_seconds == 90.0
    assert params.stop == ("</s>",)
    assert params_for_task(config, "keyword_research").json_mode is True


def test_mistral_chain_passes_caller_key_only_to_its_own_vendor():
    chain = build_chain(deepcopy(DEFAULT_SETTINGS), _registry(), "article_write", "mistral", api_key="user-key")

    assert [spec.route for spec in chain] == [
        "huggingface:mistralai/Mistral-7B-Instruct-v0.1",
        "huggingface:mistralai/Mistral-7B-Instruct-v0.2",
        "replicate:meta/llama-2-70b-chat",
    ]
    assert [spec.priority for spec in chain] == [0, 1, 2]
    assert [spec.provider.api_key for spec in chain] == ["user-key", "user-key", None]
    assert all(spec.params.timeout_seconds == 90.0 for spec in chain)


def test_duplicate_fallback_routes_are_dropped():
    config = deepcopy(DEFAULT_SETTINGS)
    config["fallbacks"]["gpt4"] = ["openai:gpt-4", "openai:gpt-3.5-turbo"]

    chain = build_chain(config, _registry(), "keyword_research", "gpt4")

    assert [spec.route for spec in chain] == ["openai:gpt-4", "openai:gpt-3.5-turbo"]


def test_task_level_fallbacks_override_global_ones():
    config = deepcopy(DEFAULT_SETTINGS)
    config["tasks"]["plagiarism_check"]["fallbacks"] = {"claude": ["openai:gpt-4"]}

    assert routes_for_model(config, "claude", "plagiarism_check") == [
        "anthropic:claude-3-opus-20240229",
        "openai:gpt-4",
    ]
    assert routes_for_model(config, "claude", "article_write") == ["anthropic:claude-3-opus-20240229"]


def test_unknown_alias_and_unknown_provider():
    config = deepcopy(DEFAULT_SETTINGS)
    with pytest.raises(KeyError):
        build_chain(config, _registry(), "article_write", "bard")

    config["models"]["local"] = "ollama:llama3"
    chain = build_chain(config, _registry(), "article_write", "local")
    assert chain[0].provider is None


def test_route_table_lists_every_alias_and_task():
    table = route_table(deepcopy(DEFAULT_SETTINGS))

    assert set(table) == set(DEFAULT_SETTINGS["models"])
    assert table["mistral"]["meta_description"][-1] == "replicate:meta/llama-2-70b-chat"
    assert table["gpt4"]["article_write"] == ["openai:gpt-4"]
