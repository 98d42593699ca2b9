"""
Session Store

Ephemeral per-user conversation context. Each state is its own frozen
dataclass and carries only the data that state needs; a user without an
entry is Idle. Nothing here is persisted.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Tuple, Type, Union

from tvreminder.errors import SessionExpiredError
from tvreminder.modules.sources.base import ShowResult
from tvreminder.services.subscriptions import ShowProgress


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class AwaitingShowName:
    pass


@dataclass(frozen=True)
class ChoosingShow:
    results: Tuple[ShowResult, ...]

    def pick(self, position: int) -> ShowResult:
        """1-based, as shown on the buttons"""
        if position < 1 or position > len(self.results):
            raise IndexError(f"search result {position} out of range 1..{len(self.results)}")
        return self.results[position - 1]


@dataclass(frozen=True)
class ChoosingSeason:
    show_id: int
    provider_show_id: str
    show_name: str
    seasons: Tuple[int, ...]


@dataclass(frozen=True)
class ChoosingEpisode:
    show_id: int
    provider_show_id: str
    show_name: str
    season: int


@dataclass(frozen=True)
class BrowsingShows:
    rows: Tuple[ShowProgress, ...]

    def row(self, index: int) -> ShowProgress:
        """0-based, as encoded in the buttons"""
        if index < 0 or index >= len(self.rows):
            raise IndexError(f"show row {index} out of range 0..{len(self.rows) - 1}")
        return self.rows[index]


SessionState = Union[Idle, AwaitingShowName, ChoosingShow, ChoosingSeason, ChoosingEpisode, BrowsingShows]


class SessionStore:
    """
    In-memory map of user id -> state.

    Every read-modify-write for a user runs under that user's lock
    (`async with store.locked(user_id)`); users never wait on each other.
    A lock lives only while the user has a session or someone holds or
    waits on it.
    """

    def __init__(self):
        self._states: Dict[int, SessionState] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def _drop_idle_lock(self, user_id: int):
        if user_id not in self._states and not self._lock_users.get(user_id):
            self._locks.pop(user_id, None)

    @asynccontextmanager
    async def locked(self, user_id: int):
        lock = self._lock_for(user_id)
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
            self._drop_idle_lock(user_id)

    def get(self, user_id: int) -> SessionState:
        return self._states.get(user_id, Idle())

    def set(self, user_id: int, state: SessionState):
        if isinstance(state, Idle):
            self.clear(user_id)
            return
        self._states[user_id] = state
        logger.debug(f"Session {user_id} -> {type(state).__name__}")

    def clear(self, user_id: int):
        if self._states.pop(user_id, None) is not None:
            logger.debug(f"Session {user_id} cleared")
        self._drop_idle_lock(user_id)

    def expect(self, user_id: int, *state_types: Type) -> SessionState:
        """Current state if it is one of state_types, else clear it and raise SessionExpiredError"""
        state = self.get(user_id)
        if not isinstance(state, state_types):
            self.clear(user_id)
            expected = "/".join(t.__name__ for t in state_types)
            raise SessionExpiredError(f"user {user_id}: expected {expected}, found {type(state).__name__}")
        return state

    def __len__(self):
        return len(self._states)
