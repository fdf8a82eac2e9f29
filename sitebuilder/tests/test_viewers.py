import asyncio
import json

from sitebuilder.core.event_bus import EventBus
from sitebuilder.core.viewers import ProjectViewers


class FakeSocket:
    def __init__(self, fail=False, stall=False):
        self.accepted = False
        self.sent = []
        self.fail = fail
        self.stall = stall

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        if self.stall:
            await asyncio.sleep(10)
        self.sent.append(json.loads(message))


def _event(project_id, msg="hello"):
    return EventBus(broadcast=False).emit(project_id, msg, event_type="generation.started", source="sitemap")


def test_publish_reaches_only_viewers_of_that_project():
    async def inner():
        viewers = ProjectViewers()
        mine, other = FakeSocket(), FakeSocket()
        await viewers.attach("p1", mine)
        await viewers.attach("p2", other)
        assert mine.accepted

        delivered = await viewers.publish(await _event("p1"))

        assert delivered == 1
        assert mine.sent[0]["type"] == "generation.started"
        assert mine.sent[0]["project_id"] == "p1"
        assert other.sent == []

    asyncio.run(inner())


def test_failed_and_stalled_viewers_are_detached():
    async def inner():
        viewers = ProjectViewers(send_timeout=0.05)
        healthy, broken, stalled = FakeSocket(), FakeSocket(fail=True), FakeSocket(stall=True)
        for ws in (healthy, broken, stalled):
            await viewers.attach("p1", ws)

        assert await viewers.publish(await _event("p1")) == 1
        assert viewers.count("p1") == 1

        assert await viewers.publish(await _event("p1", "again")) == 1
        assert [e["msg"] for e in healthy.sent] == ["hello", "again"]

    asyncio.run(inner())


def test_detach_forgets_empty_projects():
    async def inner():
        viewers = ProjectViewers()
        ws = FakeSocket()
        await viewers.attach("p1", ws)
        viewers.detach("p1", ws)
        viewers.detach("p1", ws)
        assert viewers.count("p1") == 0
        assert await viewers.publish(await _event("p1")) == 0

    asyncio.run(inner())
