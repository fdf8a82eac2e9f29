from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Type

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sitebuilder.core.errors import GenerationServiceError
from sitebuilder.core.models import (
    GenerationMetadata,
    GenerationRequest,
    GenerationResponse,
    SitemapGenerationRequest,
    SitemapStructure,
    StyleGenerationRequest,
    StyleGuide,
    Wireframe,
    WireframeGenerationRequest,
)
from sitebuilder.settings import get_settings
from sitebuilder.utils.json_parser import extract_json_object
from sitebuilder.utils.logging import get_logger

from .adapter import BaseGenerationService
from .cache import get_cached, set_cached
from .concurrency import get_generation_semaphore
from .prompts import PromptBuilder

LOGGER = get_logger(__name__)


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, GenerationServiceError):
        return exc.retryable
    return isinstance(exc, Exception)


class LLMGenerationService(BaseGenerationService):
    """Generation backed by any OpenAI-compatible chat completion API."""

    def __init__(self, model: str, base_url: Optional[str] = None, api_key: Optional[str] = None) -> None:
        if not api_key:
            LOGGER.warning("No API key configured for model %s. Generation calls will fail.", model)
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key or "missing")
        self.model = model
        LOGGER.info("Initialized LLM generation service with model: %s", model)

    async def generate_artifact(self, request: GenerationRequest, *, fresh: bool = False) -> GenerationResponse:
        started = time.perf_counter()
        prompt = PromptBuilder.build(request)

        raw = None if fresh else get_cached(request.kind, prompt)
        tokens_used = 0
        if raw is None:
            raw, tokens_used = await self._complete_with_retry(prompt)

        artifact = self._parse(request, raw)
        set_cached(request.kind, prompt, raw)

        elapsed = int((time.perf_counter() - started) * 1000)
        return GenerationResponse(
            artifact=artifact,
            metadata=GenerationMetadata(
                confidence=0.9 if tokens_used else 0.8,
                processing_time_ms=elapsed,
                tokens_used=tokens_used,
            ),
        )

    async def _complete_with_retry(self, prompt: str) -> tuple[str, int]:
        settings = get_settings()
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_should_retry),
            wait=wait_exponential(multiplier=1, min=2, max=20),
            stop=stop_after_attempt(settings.generation_max_attempts),
            before_sleep=before_sleep_log(LOGGER, logging.INFO),
            reraise=True,
        ):
            with attempt:
                async with get_generation_semaphore():
                    return await self._invoke(prompt)
        raise GenerationServiceError("Generation retries exhausted")

    async def _invoke(self, prompt: str) -> tuple[str, int]:
        LOGGER.info("Calling model '%s' (prompt length=%d)", self.model, len(prompt))
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": PromptBuilder.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            max_tokens=8000,
            response_format={"type": "json_object"},
        )

        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "length":
            LOGGER.error("Model response truncated due to token limit")
            raise GenerationServiceError("Response truncated (finish_reason=length)")

        content = choice.message.content or ""
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        LOGGER.info("Model response received (length=%d, tokens=%d)", len(content), tokens)
        return content, tokens

    def _parse(self, request: GenerationRequest, raw: str) -> BaseModel:
        try:
            payload = extract_json_object(raw)
        except ValueError as exc:
            raise GenerationServiceError(f"Model returned unparseable output: {exc}", retryable=False) from exc

        model_cls, payload = self._shape(request, payload)
        try:
            return model_cls.model_validate(payload)
        except ValidationError as exc:
            LOGGER.error("Model output failed validation for %s: %s", request.kind, exc)
            raise GenerationServiceError(f"Model output is not a valid {request.kind}", retryable=False) from exc

    def _shape(self, request: GenerationRequest, payload: Dict[str, Any]) -> tuple[Type[BaseModel], Dict[str, Any]]:
        # Fill the fields the model is not asked to produce
        if isinstance(request, SitemapGenerationRequest):
            payload.setdefault("title", request.domain or "Generated sitemap")
            payload.setdefault("website_type", request.website_type or "business")
            payload["model_used"] = self.model
            _link_parents(payload.get("pages") or [], None)
            return SitemapStructure, payload
        if isinstance(request, WireframeGenerationRequest):
            payload.setdefault("name", f"{request.page_title or request.page_path} wireframe")
            payload["metadata"] = {**(payload.get("metadata") or {}), "page_id": request.page_id}
            return Wireframe, payload
        if isinstance(request, StyleGenerationRequest):
            payload.setdefault("name", f"{request.brand_guidelines.name} style guide")
            payload["brand_guidelines"] = request.brand_guidelines.model_dump()
            payload["design_style"] = request.design_style
            return StyleGuide, payload
        raise GenerationServiceError(f"Unsupported request kind: {getattr(request, 'kind', '?')}", retryable=False)


def _link_parents(pages: list, parent_id: Optional[str]) -> None:
    for page in pages:
        if isinstance(page, dict):
            page["parent_id"] = parent_id
            _link_parents(page.get("children") or [], page.get("id"))
