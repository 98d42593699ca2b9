"""Shared fixtures: in-memory database, fake show source, recording transport."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from tvreminder.database import init_db, make_engine
from tvreminder.models.episode import CachedEpisode
from tvreminder.modules.sources.base import EpisodeInfo, ShowResult, ShowSource
from tvreminder.modules.transport.base import ChatTransport, ReplyOptions
from tvreminder.utils.timezone import utc_now


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = make_engine("sqlite://")
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def now() -> datetime:
    return utc_now().replace(microsecond=0)


def add_episode(db, provider_show_id, season, number, title=None, aired_at=None, provider="tvmaze") -> CachedEpisode:
    """Insert one cached episode and flush it."""
    episode = CachedEpisode(
        provider=provider,
        provider_show_id=str(provider_show_id),
        provider_episode_id=f"{provider_show_id}-{season}-{number}",
        season=season,
        number=number,
        title=title or f"Episode {number}",
        aired_at_utc=aired_at,
    )
    db.add(episode)
    db.flush()
    return episode


def airstamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() + "+00:00" if value else None


class FakeSource(ShowSource):
    """In-memory show source keyed by show id."""

    name = "fake"

    def __init__(self):
        self.shows: List[ShowResult] = []
        self.episodes: Dict[int, List[EpisodeInfo]] = {}
        self.error: Optional[Exception] = None
        self.searches: List[str] = []

    def add_show(self, show_id: int, name: str, episodes):
        """episodes: iterable of (season, number, title, aired_at)"""
        self.shows.append(ShowResult(id=show_id, name=name, premiered="2020-01-01"))
        self.episodes[show_id] = [
            EpisodeInfo(
                id=show_id * 1000 + season * 100 + number,
                season=season,
                number=number,
                title=title,
                airdate=aired_at.strftime("%Y-%m-%d") if aired_at else None,
                airtime=aired_at.strftime("%H:%M") if aired_at else None,
                airstamp=airstamp(aired_at),
            )
            for season, number, title, aired_at in episodes
        ]

    async def search(self, query: str) -> List[ShowResult]:
        self.searches.append(query)
        if self.error:
            raise self.error
        return [show for show in self.shows if query.lower() in show.name.lower()]

    async def list_episodes(self, show_id: int) -> List[EpisodeInfo]:
        if self.error:
            raise self.error
        return list(self.episodes.get(show_id, []))


class RecordingTransport(ChatTransport):
    """Chat transport that keeps everything it was asked to do."""

    def __init__(self):
        self.sent = []
        self.edited = []
        self.answered = []
        self.fail_sends = False
        self.send_error: Optional[Exception] = None

    async def send_message(self, chat_id: int, text: str, options: ReplyOptions = None):
        if self.send_error:
            raise self.send_error
        if self.fail_sends:
            raise ConnectionError("chat platform unreachable")
        self.sent.append((chat_id, text, options))

    async def edit_message(self, chat_id: int, message_id: int, text: str, options: ReplyOptions = None):
        self.edited.append((chat_id, message_id, text, options))

    async def answer_callback(self, callback_id: str):
        self.answered.append(callback_id)

    @property
    def last_text(self) -> str:
        return self.sent[-1][1]

    @property
    def last_edit(self) -> str:
        return self.edited[-1][2]


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


def days(n: int) -> timedelta:
    return timedelta(days=n)
