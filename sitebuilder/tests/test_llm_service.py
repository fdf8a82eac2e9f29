import asyncio
import json
from types import SimpleNamespace

import pytest

from sitebuilder import settings as settings_module
from sitebuilder.core.errors import GenerationServiceError
from sitebuilder.core.models import BrandGuidelines, SitemapGenerationRequest, StyleGenerationRequest
from sitebuilder.generation.cache import clear_cache
from sitebuilder.generation.concurrency import reset_generation_semaphore
from sitebuilder.generation.llm_service import LLMGenerationService


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_ROOT", str(tmp_path))
    settings_module.get_settings.cache_clear()
    reset_generation_semaphore()
    clear_cache()
    yield
    clear_cache()
    settings_module.get_settings.cache_clear()


class FakeCompletions:
    def __init__(self, content, finish_reason="stop"):
        self.content = content
        self.finish_reason = finish_reason
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        return SimpleNamespace(
            choices=[SimpleNamespace(finish_reason=self.finish_reason, message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(total_tokens=42),
        )


def _service(completions):
    service = LLMGenerationService(model="test-model", api_key="sk-test")
    service.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return service


SITEMAP_JSON = json.dumps({
    "title": "Acme",
    "pages": [
        {"id": "home", "title": "Home", "path": "/"},
        {"id": "about", "title": "About", "path": "/about", "children": [
            {"id": "team", "title": "Team", "path": "/about/team"},
        ]},
    ],
})


def test_sitemap_response_is_parsed_and_linked():
    async def inner():
        completions = FakeCompletions(f"```json\n{SITEMAP_JSON}\n```")
        service = _service(completions)
        response = await service.generate_artifact(SitemapGenerationRequest(prompt="landing page"))

        sitemap = response.artifact
        assert sitemap.title == "Acme"
        assert sitemap.model_used == "test-model"
        assert sitemap.pages[1].children[0].parent_id == "about"
        assert response.metadata.tokens_used == 42

    asyncio.run(inner())


def test_cache_is_used_unless_fresh():
    async def inner():
        completions = FakeCompletions(SITEMAP_JSON)
        service = _service(completions)
        request = SitemapGenerationRequest(prompt="landing page")

        await service.generate_artifact(request)
        await service.generate_artifact(request)
        assert completions.calls == 1

        await service.generate_artifact(request, fresh=True)
        assert completions.calls == 2

    asyncio.run(inner())


def test_style_keeps_requested_brand():
    async def inner():
        completions = FakeCompletions(json.dumps({"color_palette": {"primary": {"500": "#111111"}}}))
        service = _service(completions)
        request = StyleGenerationRequest(brand_guidelines=BrandGuidelines(name="Acme"), design_style="tech")
        guide = (await service.generate_artifact(request)).artifact

        assert guide.name == "Acme style guide"
        assert guide.design_style == "tech"
        assert guide.brand_guidelines.name == "Acme"

    asyncio.run(inner())


def test_unparseable_output_is_not_retried():
    async def inner():
        completions = FakeCompletions("sorry, I cannot help with that")
        service = _service(completions)
        with pytest.raises(GenerationServiceError) as info:
            await service.generate_artifact(SitemapGenerationRequest(prompt="x"))
        assert info.value.retryable is False
        assert completions.calls == 1

    asyncio.run(inner())


def test_truncated_response_raises(monkeypatch):
    monkeypatch.setenv("GENERATION_MAX_ATTEMPTS", "1")
    settings_module.get_settings.cache_clear()

    async def inner():
        completions = FakeCompletions(SITEMAP_JSON, finish_reason="length")
        service = _service(completions)
        with pytest.raises(GenerationServiceError):
            await service.generate_artifact(SitemapGenerationRequest(prompt="x"))
        assert completions.calls == 1

    asyncio.run(inner())
