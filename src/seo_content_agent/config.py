"""Configuration loading and defaults."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List

import yaml

DEFAULT_SETTINGS: Dict[str, Any] = {
    "server": {
        "host": "0.0.0.0",
        "port": 8000,
    },
    "llm": {
        "temperature": 0.7,
        "max_tokens": 1000,
        "timeout_seconds": 30,
        "require_caller_key": True,
    },
    "tasks": {
        "article_write": {
            "temperature": 0.7,
            "max_tokens": 4000,
            "timeout_seconds": 90,
            "stop": [],
        },
        "keyword_research": {
            "temperature": 0.3,
            "max_tokens": 2000,
            "timeout_seconds": 45,
            "json_mode": True,
        },
        "content_optimize": {
            "temperature": 0.7,
            "max_tokens": 4000,
            "timeout_seconds": 90,
            "json_mode": True,
        },
        "meta_description": {
            "temperature": 0.7,
            "max_tokens": 200,
            "timeout_seconds": 30,
        },
        "plagiarism_check": {
            "temperature": 0.2,
            "max_tokens": 1000,
            "timeout_seconds": 60,
            "json_mode": True,
        },
    },
    "models": {
        "chatgpt": "openai:gpt-3.5-turbo",
        "gpt3.5": "openai:gpt-3.5-turbo",
        "gpt4": "openai:gpt-4",
        "claude": "anthropic:claude-3-opus-20240229",
        "gemini": "gemini:gemini-pro",
        "llama2": "replicate:meta/llama-2-70b-chat",
        "mistral": "huggingface:mistralai/Mistral-7B-Instruct-v0.1",
        "falcon": "huggingface:mistralai/Mistral-7B-Instruct-v0.2",
    },
    "fallbacks": {
        "chatgpt": [],
        "gpt3.5": [],
        "gpt4": [],
        "claude": [],
        "gemini": [],
        "llama2": [],
        "mistral": [
            "huggingface:mistralai/Mistral-7B-Instruct-v0.2",
            "replicate:meta/llama-2-70b-chat",
        ],
        "falcon": [],
    },
    "meta_description": {
        "count": 3,
        "fallback_text": (
            "Discover our comprehensive solutions and expert services. "
            "Learn more about how we can help you achieve your goals today."
        ),
    },
    "pricing": {
        "openai:gpt-3.5-turbo": {"input_per_1k": 0.0005, "output_per_1k": 0.0015},
        "openai:gpt-4": {"input_per_1k": 0.03, "output_per_1k": 0.06},
        "anthropic:claude-3-opus-20240229": {"input_per_1k": 0.015, "output_per_1k": 0.075},
        "gemini:gemini-pro": {"input_per_1k": 0.0005, "output_per_1k": 0.0015},
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Loads settings.yaml and merges it onto defaults."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        merged = _deep_merge(merged, user_cfg)
    return merged


def parse_route(route: str) -> tuple[str, str]:
    """Parses 'provider:model' route strings."""
    if ":" not in route:
        raise ValueError(f"Invalid route format: {route}")
    provider, model = route.split(":", 1)
    provider, model = provider.strip(), model.strip()
    if not provider or not model:
        raise ValueError(f"Invalid route format: {route}")
    return provider, model


def task_settings(config: Dict[str, Any], task_key: str) -> Dict[str, Any]:
    """Per-task llm settings layered over the global llm section."""
    merged = dict(config.get("llm", {}))
    merged.update(config.get("tasks", {}).get(task_key, {}))
    return merged


def routes_for_model(config: Dict[str, Any], alias: str, task_key: str | None = None) -> List[str]:
    """Primary route for a model alias followed by its fallback routes."""
    models = config.get("models", {})
    primary = models.get(alias)
    if not primary:
        raise KeyError(alias)

    fallbacks = None
    if task_key:
        fallbacks = config.get("tasks", {}).get(task_key, {}).get("fallbacks", {}).get(alias)
    if fallbacks is None:
        fallbacks = config.get("fallbacks", {}).get(alias, [])
    return [str(primary)] + [str(r) for r in fallbacks or []]
