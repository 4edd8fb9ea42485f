"""Shared adapter contract and credential lookup."""

from __future__ import annotations

import os
from typing import Callable, Protocol

from ..types import LLMRequest, LLMResult


class LLMProvider(Protocol):
    """One vendor API. ``generate`` raises ProviderError on any failure."""

    name: str

    def generate(self, request: LLMRequest) -> LLMResult:
        ...


# Built per request; the argument is the caller's key, or None for env credentials.
ProviderFactory = Callable[[str | None], LLMProvider]


def resolve_api_key(api_key: str | None, *env_names: str) -> str | None:
    """Explicit key first, then the first non-empty environment variable."""
    if api_key:
        return api_key
    for env_name in env_names:
        value = os.getenv(env_name)
        if value:
            return value
    return None
