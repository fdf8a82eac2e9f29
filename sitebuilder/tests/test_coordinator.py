import asyncio

from sitebuilder.core.event_bus import EventBus
from sitebuilder.core.models import (
    GenerationResponse,
    SitemapGenerationRequest,
    SitemapPage,
    SitemapStructure,
    Wireframe,
    WireframeGenerationRequest,
    WorkflowStep,
)
from sitebuilder.generation.adapter import BaseGenerationService
from sitebuilder.generation.mock_service import MockGenerationService


class SlowWireframeService(BaseGenerationService):
    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def generate_artifact(self, request, *, fresh=False):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return GenerationResponse(artifact=Wireframe(name=f"{request.page_id} wireframe"))


def test_sitemap_generation_walks_idle_generating_success(make_session):
    async def inner():
        bus = EventBus(broadcast=False)
        session = make_session(event_bus=bus)
        observed = []
        bus.subscribe(lambda event: observed.append((event.type, session.state.generation["sitemap"].status)))

        session.create_project("Acme")
        assert session.state.generation["sitemap"].status == "idle"

        outcome = await session.generate_sitemap(SitemapGenerationRequest(prompt="landing page"))

        assert outcome.accepted and outcome.status == "success"
        assert observed == [
            ("generation.started", "generating"),
            ("generation.completed", "success"),
        ]
        gen = session.state.generation["sitemap"]
        assert gen.progress == 100
        assert gen.confidence == 0.85
        assert WorkflowStep.SITEMAP in session.state.completed_steps
        assert session.state.sitemap is not None
        assert session.history.current.action == "generate-sitemap"

    asyncio.run(inner())


def test_second_wireframe_generation_is_rejected_while_in_flight(make_session):
    async def inner():
        bus = EventBus(broadcast=False)
        events = []
        bus.subscribe(events.append)
        service = SlowWireframeService()
        session = make_session(service=service, event_bus=bus)
        session.create_project("Acme")
        request = WireframeGenerationRequest(page_id="home", page_title="Home")

        first = asyncio.create_task(session.generate_wireframe(request))
        await service.started.wait()
        assert session.state.generation["wireframe"].status == "generating"

        second = await session.generate_wireframe(request)
        assert not second.accepted
        assert second.reason == "already_generating"
        assert session.state.generation["wireframe"].status == "generating"

        service.release.set()
        outcome = await first

        assert outcome.status == "success"
        assert service.calls == 1
        assert [e.type for e in events].count("generation.completed") == 1
        assert "home" in session.state.wireframes

    asyncio.run(inner())


def test_failure_keeps_previous_artifact(make_session):
    async def inner():
        service = MockGenerationService()
        session = make_session(service=service)
        session.create_project("Acme", "landing page", "business")
        await session.generate_sitemap(SitemapGenerationRequest(prompt="landing page"))
        previous = session.state.sitemap

        service.fail_kinds.add("sitemap")
        outcome = await session.regenerate_sitemap()

        gen = session.state.generation["sitemap"]
        assert outcome.accepted and outcome.status == "error"
        assert gen.status == "error"
        assert gen.progress == 10
        assert "failed" in gen.error
        assert session.state.sitemap is previous
        assert session.diagnostics.errors[-1].code == "SITEMAP_GENERATION_FAILED"
        assert session.diagnostics.errors[-1].step is WorkflowStep.SITEMAP

    asyncio.run(inner())


def test_wrong_artifact_type_is_a_failure(make_session):
    class WrongKind(BaseGenerationService):
        async def generate_artifact(self, request, *, fresh=False):
            return GenerationResponse(artifact=Wireframe(name="not a sitemap"))

    async def inner():
        session = make_session(service=WrongKind())
        session.create_project("Acme")
        outcome = await session.generate_sitemap(SitemapGenerationRequest(prompt="x"))
        assert outcome.status == "error"
        assert session.state.sitemap is None
        assert WorkflowStep.SITEMAP not in session.state.completed_steps

    asyncio.run(inner())


def test_structurally_broken_sitemap_is_rejected(make_session):
    class BrokenTree(MockGenerationService):
        def __init__(self):
            super().__init__()
            self.broken = False

        async def generate_artifact(self, request, *, fresh=False):
            if not self.broken:
                return await super().generate_artifact(request, fresh=fresh)
            return GenerationResponse(artifact=SitemapStructure(
                title="Broken",
                pages=[
                    SitemapPage(id="a", title="A", path="/"),
                    SitemapPage(id="a", title="Ghost child", path="/ghost", parent_id="ghost"),
                ],
            ))

    async def inner():
        service = BrokenTree()
        session = make_session(service=service)
        session.create_project("Acme", "landing page")
        await session.generate_sitemap(SitemapGenerationRequest(prompt="landing page"))
        previous = session.state.sitemap
        entries = len(session.history.entries)

        service.broken = True
        outcome = await session.regenerate_sitemap()

        assert outcome.status == "error"
        assert session.state.generation["sitemap"].status == "error"
        assert "appears 2 times" in outcome.error
        assert "missing parent 'ghost'" in outcome.error
        assert session.state.sitemap is previous
        assert len(session.history.entries) == entries
        assert session.diagnostics.errors[-1].code == "SITEMAP_GENERATION_FAILED"

    asyncio.run(inner())


def test_broken_first_sitemap_leaves_step_incomplete(make_session):
    class Duplicates(BaseGenerationService):
        async def generate_artifact(self, request, *, fresh=False):
            page = SitemapPage(id="a", title="A", path="/")
            return GenerationResponse(artifact=SitemapStructure(title="Dup", pages=[page, page.model_copy()]))

    async def inner():
        session = make_session(service=Duplicates())
        session.create_project("Acme")
        outcome = await session.generate_sitemap(SitemapGenerationRequest(prompt="x"))
        assert outcome.status == "error"
        assert session.state.sitemap is None
        assert WorkflowStep.SITEMAP not in session.state.completed_steps

    asyncio.run(inner())


def test_kinds_have_independent_state(make_session):
    async def inner():
        service = MockGenerationService(fail_kinds={"style"})
        session = make_session(service=service)
        session.create_project("Acme")
        await session.generate_sitemap(SitemapGenerationRequest(prompt="x"))

        assert session.state.generation["sitemap"].status == "success"
        assert session.state.generation["wireframe"].status == "idle"
        assert session.state.generation["style"].status == "idle"

    asyncio.run(inner())


def test_regenerate_passes_fresh_flag(make_session):
    class Recording(MockGenerationService):
        def __init__(self):
            super().__init__()
            self.fresh_flags = []

        async def generate_artifact(self, request, *, fresh=False):
            self.fresh_flags.append(fresh)
            return await super().generate_artifact(request, fresh=fresh)

    async def inner():
        service = Recording()
        session = make_session(service=service)
        session.create_project("Acme", "landing page")
        await session.generate_sitemap(SitemapGenerationRequest(prompt="landing page"))
        await session.regenerate_sitemap()
        assert service.fresh_flags == [False, True]
        assert service.calls[-1].prompt == "landing page"

    asyncio.run(inner())
