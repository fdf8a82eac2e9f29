import pytest

from sitebuilder.core.event_bus import EventBus
from sitebuilder.core.models import SitemapPage, SitemapStructure
from sitebuilder.core.session import BuilderSession
from sitebuilder.generation.mock_service import MockGenerationService
from sitebuilder.memory.persistence import InMemoryPersistenceAdapter
from sitebuilder.settings import Settings


def build_sitemap() -> SitemapStructure:
    """home, about(team, careers(jobs)), contact"""
    jobs = SitemapPage(id="jobs", title="Jobs", path="/about/careers/jobs", parent_id="careers", order=1)
    careers = SitemapPage(id="careers", title="Careers", path="/about/careers", parent_id="about", order=2, children=[jobs])
    team = SitemapPage(id="team", title="Team", path="/about/team", parent_id="about", priority=7, order=1)
    return SitemapStructure(
        title="Acme",
        pages=[
            SitemapPage(id="home", title="Home", path="/", priority=10, order=1),
            SitemapPage(id="about", title="About", path="/about", order=2, children=[team, careers]),
            SitemapPage(id="contact", title="Contact", path="/contact", order=3),
        ],
    )


@pytest.fixture
def make_session():
    def _make(service=None, persistence=None, event_bus=None, **settings_overrides):
        settings = Settings(auto_save_enabled=False, **settings_overrides)
        return BuilderSession(
            persistence=persistence if persistence is not None else InMemoryPersistenceAdapter(),
            service=service if service is not None else MockGenerationService(),
            settings=settings,
            event_bus=event_bus if event_bus is not None else EventBus(broadcast=False),
        )

    return _make
