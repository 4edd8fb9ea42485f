"""Provider lookup and per-request chain construction."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from ..config import parse_route, routes_for_model, task_settings
from .providers.anthropic_provider import AnthropicProvider
from .providers.base import LLMProvider, ProviderFactory
from .providers.gemini_provider import GeminiProvider
from .providers.huggingface_provider import HuggingFaceProvider
from .providers.openai_provider import OpenAIProvider
from .providers.replicate_provider import ReplicateProvider
from .types import GenerationParams, ProviderSpec

DEFAULT_FACTORIES: Dict[str, ProviderFactory] = {
    OpenAIProvider.name: OpenAIProvider,
    AnthropicProvider.name: AnthropicProvider,
    GeminiProvider.name: GeminiProvider,
    ReplicateProvider.name: ReplicateProvider,
    HuggingFaceProvider.name: HuggingFaceProvider,
}


class ProviderRegistry:
    def __init__(self, factories: Mapping[str, ProviderFactory] | None = None) -> None:
        self.factories = dict(factories if factories is not None else DEFAULT_FACTORIES)

    def names(self) -> List[str]:
        return sorted(self.factories)

    def create(self, provider_name: str, api_key: str | None = None) -> LLMProvider | None:
        factory = self.factories.get(provider_name)
        if factory is None:
            return None
        return factory(api_key)


def params_for_task(config: Dict[str, Any], task_key: str) -> GenerationParams:
    cfg = task_settings(config, task_key)
    return GenerationParams(
        temperature=float(cfg.get("temperature", 0.7)),
        max_tokens=int(cfg.get("max_tokens", 1000)),
        timeout_seconds=float(cfg.get("timeout_seconds", 30)),
        stop=tuple(str(s) for s in cfg.get("stop") or ()),
        json_mode=bool(cfg.get("json_mode", False)),
    )


def build_chain(
    config: Dict[str, Any],
    registry: ProviderRegistry,
    task_key: str,
    model_alias: str,
    api_key: str | None = None,
) -> List[ProviderSpec]:
    """Primary route for the caller's model choice followed by the static fallbacks.

    The caller's key is only handed to routes of the primary's vendor; other
    vendors fall back to their environment credentials. Raises KeyError for
    an unknown alias.
    """
    routes = routes_for_model(config, model_alias, task_key)
    params = params_for_task(config, task_key)
    primary_vendor, _ = parse_route(routes[0])

    chain: List[ProviderSpec] = []
    seen: set[str] = set()
    for route in routes:
        provider_name, model = parse_route(route)
        route_id = f"{provider_name}:{model}"
        if route_id in seen:
            continue
        seen.add(route_id)
        key = api_key if provider_name == primary_vendor else None
        chain.append(
            ProviderSpec(
                route=route_id,
                provider_name=provider_name,
                model=model,
                priority=len(chain),
                provider=registry.create(provider_name, key),
                params=params,
            )
        )
    return chain
