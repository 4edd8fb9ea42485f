"""Pure orchestration: request payload -> prompt -> provider chain -> response body."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List

from .config import routes_for_model
from .llm.chain import FallbackChainExecutor
from .llm.registry import ProviderRegistry, build_chain
from .tasks import GenerationTask, get_task
from .validators import require_api_key, require_fields, require_known_model

logger = logging.getLogger(__name__)


def run_task(
    task: GenerationTask | str,
    payload: Dict[str, Any],
    config: Dict[str, Any],
    registry: ProviderRegistry,
    cancel_event: threading.Event | None = None,
    executor: FallbackChainExecutor | None = None,
) -> Dict[str, Any]:
    """Runs one generation task end to end and returns its JSON response body.

    Raises InputValidationError before any provider is called when the
    payload is incomplete, and ChainExhaustedError when no provider produced
    acceptable output.
    """
    definition = get_task(task)
    require_fields(payload, definition.required)
    require_api_key(payload, config)
    alias = require_known_model(payload, config)

    prompt = definition.build_prompt(payload)
    chain = build_chain(config, registry, definition.task.value, alias, payload.get("apiKey") or None)
    executor = executor or FallbackChainExecutor(config)

    outcome = executor.execute(
        chain,
        prompt=prompt.user,
        system=prompt.system,
        validate=definition.make_validator(payload, config),
        stage=definition.task.value,
        cancel_event=cancel_event,
        meta={"model": alias},
    )
    logger.info(
        "task=%s model=%s served by %s after %d attempt(s)",
        definition.task.value,
        alias,
        outcome.route,
        len(outcome.attempts),
    )
    return definition.shape(outcome.value)


def route_table(config: Dict[str, Any]) -> Dict[str, Dict[str, List[str]]]:
    """Resolved provider routes per model alias and task."""
    table: Dict[str, Dict[str, List[str]]] = {}
    for alias in sorted(config.get("models", {})):
        table[alias] = {task.value: routes_for_model(config, alias, task.value) for task in GenerationTask}
    return table
