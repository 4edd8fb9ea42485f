"""Task registry: what each generation task needs, asks and returns."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Tuple

from .errors import OutputValidationError
from .postprocess import clean_optimized_content, finalize_article, finalize_meta_descriptions
from .prompts import (
    PromptPair,
    build_article_prompt,
    build_keyword_prompt,
    build_meta_prompt,
    build_optimize_prompt,
    build_plagiarism_prompt,
)
from .repair import parse_structured, validator_for
from .schemas import KeywordSet, OptimizationResult, PlagiarismResult

Payload = Dict[str, Any]
OutputValidator = Callable[[str], Any]


class GenerationTask(str, Enum):
    ARTICLE_WRITE = "article_write"
    KEYWORD_RESEARCH = "keyword_research"
    CONTENT_OPTIMIZE = "content_optimize"
    META_DESCRIPTION = "meta_description"
    PLAGIARISM_CHECK = "plagiarism_check"


@dataclass(frozen=True)
class TaskDefinition:
    task: GenerationTask
    path: str
    required: Tuple[str, ...]
    build_prompt: Callable[[Payload], PromptPair]
    make_validator: Callable[[Payload, Dict[str, Any]], OutputValidator]
    shape: Callable[[Any], Dict[str, Any]]


def _article_validator(payload: Payload, config: Dict[str, Any]) -> OutputValidator:
    topic = payload["topic"]
    return lambda text: finalize_article(text, topic)


def _optimize_validator(payload: Payload, config: Dict[str, Any]) -> OutputValidator:
    def _validate(text: str) -> OptimizationResult:
        result = parse_structured(text, OptimizationResult)
        cleaned = clean_optimized_content(result.optimized_content)
        if not cleaned:
            raise OutputValidationError("optimizedContent is empty after cleanup")
        return result.model_copy(update={"optimized_content": cleaned})

    return _validate


def _meta_validator(payload: Payload, config: Dict[str, Any]) -> OutputValidator:
    meta_cfg = config.get("meta_description", {})
    fallback = str(meta_cfg.get("fallback_text", ""))
    count = int(meta_cfg.get("count", 3))
    return lambda text: finalize_meta_descriptions(text, fallback, count)


def _schema_validator(schema):
    return lambda payload, config: validator_for(schema)


def _as_response(value) -> Dict[str, Any]:
    return value.to_response()


TASKS: Dict[GenerationTask, TaskDefinition] = {
    GenerationTask.ARTICLE_WRITE: TaskDefinition(
        task=GenerationTask.ARTICLE_WRITE,
        path="/api/article-writer",
        required=("topic", "keywords", "tone"),
        build_prompt=lambda p: build_article_prompt(p["topic"], p["keywords"], p["tone"], p.get("length")),
        make_validator=_article_validator,
        shape=lambda article: {"article": article},
    ),
    GenerationTask.KEYWORD_RESEARCH: TaskDefinition(
        task=GenerationTask.KEYWORD_RESEARCH,
        path="/api/keyword-research",
        required=("niche",),
        build_prompt=lambda p: build_keyword_prompt(p["niche"]),
        make_validator=_schema_validator(KeywordSet),
        shape=_as_response,
    ),
    GenerationTask.CONTENT_OPTIMIZE: TaskDefinition(
        task=GenerationTask.CONTENT_OPTIMIZE,
        path="/api/content-optimizer",
        required=("content", "targetKeywords"),
        build_prompt=lambda p: build_optimize_prompt(p["content"], p["targetKeywords"]),
        make_validator=_optimize_validator,
        shape=_as_response,
    ),
    GenerationTask.META_DESCRIPTION: TaskDefinition(
        task=GenerationTask.META_DESCRIPTION,
        path="/api/meta-description",
        required=("title", "keywords", "content"),
        build_prompt=lambda p: build_meta_prompt(p["title"], p["keywords"], p["content"]),
        make_validator=_meta_validator,
        shape=lambda descriptions: {"descriptions": descriptions},
    ),
    GenerationTask.PLAGIARISM_CHECK: TaskDefinition(
        task=GenerationTask.PLAGIARISM_CHECK,
        path="/api/plagiarism-check",
        required=("content",),
        build_prompt=lambda p: build_plagiarism_prompt(p["content"]),
        make_validator=_schema_validator(PlagiarismResult),
        shape=_as_response,
    ),
}


def get_task(task: GenerationTask | str) -> TaskDefinition:
    return TASKS[GenerationTask(task)]
