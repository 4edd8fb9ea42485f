"""Shared LLM data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_seconds: float = 30.0
    stop: Tuple[str, ...] = ()
    json_mode: bool = False


@dataclass
class LLMRequest:
    stage: str
    prompt: str
    system: str
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: float
    stop: Tuple[str, ...] = ()
    json_mode: bool = False
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: int = 0
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderSpec:
    """One entry of a fallback chain, immutable for the life of a request."""

    route: str
    provider_name: str
    model: str
    priority: int
    provider: Any
    params: GenerationParams = GenerationParams()


class ChainState(str, Enum):
    PENDING = "pending"
    TRYING = "trying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class AttemptRecord:
    route: str
    priority: int
    ok: bool
    latency_ms: int = 0
    tokens_in: int = 0
    tokens_out: int = 0
    cost_usd: float = 0.0
    error: str | None = None


@dataclass
class ChainResult(Generic[T]):
    value: T
    result: LLMResult
    route: str
    attempts: List[AttemptRecord] = field(default_factory=list)
    state: ChainState = ChainState.SUCCEEDED


class ProviderError(RuntimeError):
    """Provider failed to return a valid generation."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within the attempt bound."""


class GenerationCancelled(RuntimeError):
    """The caller abandoned the request; no further providers are tried."""


class ChainExhaustedError(RuntimeError):
    """Every provider in the chain failed."""

    def __init__(self, causes: List[Tuple[str, Exception]], attempts: List[AttemptRecord] | None = None) -> None:
        self.causes = list(causes)
        self.attempts = list(attempts or [])
        detail = " | ".join(f"{route}: {exc}" for route, exc in self.causes)
        super().__init__("All provider routes failed: " + detail)
