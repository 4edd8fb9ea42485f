"""Sequential provider fallback with bounded attempts."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Sequence, Tuple, TypeVar

from ..errors import OutputValidationError
from .types import (
    AttemptRecord,
    ChainExhaustedError,
    ChainResult,
    ChainState,
    GenerationCancelled,
    LLMRequest,
    LLMResult,
    ProviderError,
    ProviderSpec,
    ProviderTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Validator = Callable[[str], T]


def non_empty_text(text: str) -> str:
    """Default validator for free-text stages."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise OutputValidationError("empty output")
    return cleaned


class FallbackChainExecutor:
    """Tries each ProviderSpec in order until one output passes the validator.

    Attempts are strictly sequential and every route is called at most once per
    execution. Each attempt is bounded by its ProviderSpec ``timeout_seconds``
    regardless of what the adapter does with the value itself.
    """

    poll_interval_seconds = 0.05

    def __init__(self, config: Dict[str, Any] | None = None) -> None:
        self.config = config or {}

    def _estimate_cost(self, route: str, tokens_in: int, tokens_out: int) -> float:
        pricing = self.config.get("pricing", {}).get(route)
        if not pricing:
            return 0.0
        in_price = float(pricing.get("input_per_1k", 0.0))
        out_price = float(pricing.get("output_per_1k", 0.0))
        return ((tokens_in / 1000.0) * in_price) + ((tokens_out / 1000.0) * out_price)

    def _call_with_timeout(
        self,
        spec: ProviderSpec,
        request: LLMRequest,
        cancel_event: threading.Event | None,
    ) -> LLMResult:
        timeout = spec.params.timeout_seconds
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"llm-{spec.provider_name}")
        future = pool.submit(spec.provider.generate, request)
        deadline = time.monotonic() + timeout
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    future.cancel()
                    raise GenerationCancelled(f"request cancelled while waiting on {spec.route}")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    future.cancel()
                    raise ProviderTimeoutError(
                        f"no response within {timeout:g}s", provider=spec.provider_name
                    )
                done, _ = wait(
                    [future],
                    timeout=min(remaining, self.poll_interval_seconds),
                    return_when=FIRST_COMPLETED,
                )
                if done:
                    return future.result()
        finally:
            # A hung adapter thread is abandoned, never joined.
            pool.shutdown(wait=False)

    def execute(
        self,
        chain: Sequence[ProviderSpec],
        prompt: str,
        system: str,
        validate: Validator = non_empty_text,
        stage: str = "",
        cancel_event: threading.Event | None = None,
        meta: Dict[str, Any] | None = None,
    ) -> ChainResult:
        if not chain:
            raise ValueError("Fallback chain needs at least one provider")

        state = ChainState.PENDING
        causes: List[Tuple[str, Exception]] = []
        attempts: List[AttemptRecord] = []
        called: set[str] = set()

        for spec in chain:
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled(f"request cancelled before trying {spec.route}")
            if spec.route in called:
                continue
            called.add(spec.route)
            state = ChainState.TRYING
            logger.debug("stage=%s state=%s route=%s priority=%s", stage, state.value, spec.route, spec.priority)

            if spec.provider is None:
                exc = ProviderError("provider not available", provider=spec.provider_name)
                causes.append((spec.route, exc))
                attempts.append(AttemptRecord(route=spec.route, priority=spec.priority, ok=False, error=str(exc)))
                logger.warning("stage=%s route=%s skipped: provider not available", stage, spec.route)
                continue

            request = LLMRequest(
                stage=stage,
                prompt=prompt,
                system=system,
                model=spec.model,
                temperature=spec.params.temperature,
                max_tokens=spec.params.max_tokens,
                timeout_seconds=spec.params.timeout_seconds,
                stop=spec.params.stop,
                json_mode=spec.params.json_mode,
                meta=dict(meta or {}),
            )

            start = time.perf_counter()
            result: LLMResult | None = None
            try:
                result = self._call_with_timeout(spec, request, cancel_event)
                value = validate(result.text)
            except GenerationCancelled:
                raise
            except (ProviderError, OutputValidationError) as exc:
                self._record_failure(spec, stage, exc, result, start, causes, attempts)
                continue
            except Exception as exc:
                wrapped = ProviderError(f"{type(exc).__name__}: {exc}", provider=spec.provider_name)
                self._record_failure(spec, stage, wrapped, result, start, causes, attempts)
                continue

            cost_usd = self._estimate_cost(spec.route, result.tokens_in, result.tokens_out)
            attempts.append(
                AttemptRecord(
                    route=spec.route,
                    priority=spec.priority,
                    ok=True,
                    latency_ms=result.latency_ms or int((time.perf_counter() - start) * 1000),
                    tokens_in=result.tokens_in,
                    tokens_out=result.tokens_out,
                    cost_usd=cost_usd,
                )
            )
            logger.info(
                "stage=%s route=%s ok latency_ms=%s tokens_in=%s tokens_out=%s cost_usd=%.6f",
                stage,
                spec.route,
                result.latency_ms,
                result.tokens_in,
                result.tokens_out,
                cost_usd,
            )
            state = ChainState.SUCCEEDED
            return ChainResult(value=value, result=result, route=spec.route, attempts=attempts, state=state)

        state = ChainState.EXHAUSTED
        logger.debug("stage=%s state=%s", stage, state.value)
        error = ChainExhaustedError(causes, attempts)
        logger.error("stage=%s exhausted after %d attempt(s): %s", stage, len(attempts), error)
        raise error

    def _record_failure(
        self,
        spec: ProviderSpec,
        stage: str,
        exc: Exception,
        result: LLMResult | None,
        start: float,
        causes: List[Tuple[str, Exception]],
        attempts: List[AttemptRecord],
    ) -> None:
        tokens_in = result.tokens_in if result else 0
        tokens_out = result.tokens_out if result else 0
        causes.append((spec.route, exc))
        attempts.append(
            AttemptRecord(
                route=spec.route,
                priority=spec.priority,
                ok=False,
                latency_ms=int((time.perf_counter() - start) * 1000),
                tokens_in=tokens_in,
                tokens_out=tokens_out,
                cost_usd=self._estimate_cost(spec.route, tokens_in, tokens_out),
                error=str(exc),
            )
        )
        logger.warning("stage=%s route=%s failed (%s): %s", stage, spec.route, type(exc).__name__, exc)
