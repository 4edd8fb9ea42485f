"""HTTP surface: one POST endpoint per generation task."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from .config import load_settings
from .errors import InputValidationError
from .llm.registry import ProviderRegistry
from .llm.types import ChainExhaustedError, GenerationCancelled
from .orchestrator import run_task
from .tasks import GenerationTask, get_task

logger = logging.getLogger(__name__)

Keywords = Union[str, List[str]]


class TaskRequest(BaseModel):
    # Fields stay optional so missing values surface as {"error": ...} with 400.
    model_config = ConfigDict(extra="ignore")

    model: Optional[str] = None
    apiKey: Optional[str] = None


class ArticleRequest(TaskRequest):
    topic: Optional[str] = None
    keywords: Optional[Keywords] = None
    tone: Optional[str] = None
    length: Optional[str] = None


class KeywordResearchRequest(TaskRequest):
    niche: Optional[str] = None


class ContentOptimizeRequest(TaskRequest):
    content: Optional[str] = None
    targetKeywords: Optional[Keywords] = None


class MetaDescriptionRequest(TaskRequest):
    title: Optional[str] = None
    keywords: Optional[Keywords] = None
    content: Optional[str] = None


class PlagiarismCheckRequest(TaskRequest):
    content: Optional[str] = None


DISCONNECT_POLL_SECONDS = 0.1


async def _watch_disconnect(request: Request, cancel_event: threading.Event, task: GenerationTask) -> None:
    # Servers only flag a dropped connection; the handler coroutine keeps running.
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            logger.info("task=%s client disconnected", task.value)
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def _dispatch(request: Request, task: GenerationTask, body: TaskRequest) -> Dict[str, Any]:
    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event, task))
    try:
        return await run_in_threadpool(
            run_task,
            task,
            body.model_dump(),
            request.app.state.config,
            request.app.state.registry,
            cancel_event,
        )
    except asyncio.CancelledError:
        cancel_event.set()
        logger.info("task=%s cancelled by client", task.value)
        raise
    finally:
        watcher.cancel()


router = APIRouter()


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "healthy"}


@router.post(get_task(GenerationTask.ARTICLE_WRITE).path)
async def article_writer(body: ArticleRequest, request: Request):
    return await _dispatch(request, GenerationTask.ARTICLE_WRITE, body)


@router.post(get_task(GenerationTask.KEYWORD_RESEARCH).path)
async def keyword_research(body: KeywordResearchRequest, request: Request):
    return await _dispatch(request, GenerationTask.KEYWORD_RESEARCH, body)


@router.post(get_task(GenerationTask.CONTENT_OPTIMIZE).path)
async def content_optimizer(body: ContentOptimizeRequest, request: Request):
    return await _dispatch(request, GenerationTask.CONTENT_OPTIMIZE, body)


@router.post(get_task(GenerationTask.META_DESCRIPTION).path)
async def meta_description(body: MetaDescriptionRequest, request: Request):
    return await _dispatch(request, GenerationTask.META_DESCRIPTION, body)


@router.post(get_task(GenerationTask.PLAGIARISM_CHECK).path)
async def plagiarism_check(body: PlagiarismCheckRequest, request: Request):
    return await _dispatch(request, GenerationTask.PLAGIARISM_CHECK, body)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(config: Dict[str, Any] | None = None, registry: ProviderRegistry | None = None) -> FastAPI:
    app = FastAPI(title="SEO Content Agent")
    app.state.config = config if config is not None else load_settings()
    app.state.registry = registry or ProviderRegistry()

    @app.exception_handler(InputValidationError)
    async def _input_error(request: Request, exc: InputValidationError):
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _body_error(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body")

    @app.exception_handler(ChainExhaustedError)
    async def _exhausted(request: Request, exc: ChainExhaustedError):
        return _error(500, str(exc))

    @app.exception_handler(GenerationCancelled)
    async def _cancelled(request: Request, exc: GenerationCancelled):
        return _error(499, str(exc))

    app.include_router(router)
    return app
