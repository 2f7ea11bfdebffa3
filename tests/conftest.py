"""Shared fixtures: in-memory database, story builders and an HTTP client."""

from __future__ import annotations

from types import SimpleNamespace
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from petstory.canon import db
from petstory.config import config
from petstory.core.logs import clear_logs
from petstory.engine import consistency
from petstory.models import (
    ChapterCreate,
    ChapterRequirement,
    Choice,
    EventContent,
    EventCreate,
    PlotCreate,
    StoryEventType,
    UserStoryProgressSQL,
)
from petstory.web.main import create_app


@pytest.fixture
async def engine():
    eng = db.init_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.ensure_schema()
    clear_logs()
    yield eng
    await db.dispose_engine()


@pytest.fixture
async def session(engine):
    async with db.get_pg() as s:
        yield s


@pytest.fixture
async def client(engine):
    app = create_app(run_bootstrap=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": config.system.admin_token}


class StoryBuilder:
    """Create content through the consistency engine."""

    def __init__(self, session):
        self.session = session

    def _detach(self, obj):
        # Keep fixtures readable after a later rollback expires the session
        self.session.expunge(obj)
        return obj

    async def plot(self, title: str = "Walk in the park", **kwargs):
        data = PlotCreate(title=title, description=f"{title} description", **kwargs)
        return self._detach(await consistency.create_plot(self.session, data))

    async def chapter(self, plot_id: UUID, title: str = "Chapter", sort_order: int = 0, **kwargs):
        data = ChapterCreate(
            plot_id=plot_id,
            title=title,
            description=f"{title} description",
            sort_order=sort_order,
            **kwargs,
        )
        return self._detach(await consistency.create_chapter(self.session, data))

    async def event(
        self,
        chapter_id: UUID,
        title: str = "Event",
        sort_order: int = 0,
        next_event_id: UUID | None = None,
        **kwargs,
    ):
        data = EventCreate(
            chapter_id=chapter_id,
            title=title,
            sort_order=sort_order,
            next_event_id=next_event_id,
            **kwargs,
        )
        return self._detach(await consistency.create_event(self.session, data))

    async def choice_event(
        self, chapter_id: UUID, targets: list[UUID | None], title: str = "Choose", **kwargs
    ):
        content = EventContent(
            choices=[
                Choice(text=f"option {i}", next_event_id=target)
                for i, target in enumerate(targets)
            ]
        )
        return await self.event(
            chapter_id,
            title=title,
            event_type=StoryEventType.MULTI_CHOICE,
            content=content,
            **kwargs,
        )

    async def linear_story(self) -> SimpleNamespace:
        """Two chapters: C1 holds E1 -> E2, C2 holds E3."""
        plot = await self.plot()
        c1 = await self.chapter(plot.id, "Meeting", sort_order=0)
        c2 = await self.chapter(
            plot.id,
            "Friendship",
            sort_order=1,
            requirement=ChapterRequirement(previous_chapter=c1.id),
        )
        e2 = await self.event(c1.id, "Sniff around", sort_order=1)
        e1 = await self.event(c1.id, "Hello", sort_order=0, next_event_id=e2.id)
        e3 = await self.event(c2.id, "Play fetch", sort_order=0)
        return SimpleNamespace(plot=plot, c1=c1, c2=c2, e1=e1, e2=e2, e3=e3)


@pytest.fixture
def builder(session) -> StoryBuilder:
    return StoryBuilder(session)


@pytest.fixture
def fetch_progress(session):
    """Reload a progress row from the database, bypassing cached state."""

    async def _fetch(user_id: str, plot_id: UUID) -> UserStoryProgressSQL | None:
        result = await session.execute(
            select(UserStoryProgressSQL)
            .where(
                UserStoryProgressSQL.user_id == user_id,
                UserStoryProgressSQL.plot_id == plot_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    return _fetch
