from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from sitebuilder.core.models import GenerationRequest, GenerationResponse
from sitebuilder.settings import get_settings


class BaseGenerationService(ABC):
    """External generator of sitemaps, wireframes and style guides.

    Implementations raise on failure; the coordinator turns that into state.
    ``fresh`` asks the service to bypass any response cache (regeneration).
    """

    @abstractmethod
    async def generate_artifact(self, request: GenerationRequest, *, fresh: bool = False) -> GenerationResponse:
        ...


_cached_service: Optional[BaseGenerationService] = None


def get_generation_service() -> BaseGenerationService:
    global _cached_service
    if _cached_service:
        return _cached_service

    settings = get_settings()
    if settings.generation_mode == "mock":
        from .mock_service import MockGenerationService
        _cached_service = MockGenerationService()

    elif settings.generation_mode == "deepseek":
        from .llm_service import LLMGenerationService
        _cached_service = LLMGenerationService(
            model=settings.deepseek_model,
            base_url="https://api.deepseek.com",
            api_key=settings.deepseek_api_key,
        )

    else:  # openai
        from .llm_service import LLMGenerationService
        _cached_service = LLMGenerationService(
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
        )

    return _cached_service


def reset_generation_service() -> None:
    global _cached_service
    _cached_service = None
