"""Session memory registry and chat history persistence."""

import asyncio
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from manus_agent.config import Config, get_config
from manus_agent.logging import get_logger
from manus_agent.memory import SessionMemory
from manus_agent.session.json_store import JsonFileHistoryStore
from manus_agent.session.sqlite_store import SqliteHistoryStore
from manus_agent.session.store import ChatHistoryStore, SessionInfo, SessionKey, session_key

log = get_logger(__name__)


class SessionRegistry:
    """Live session memories addressed by (user_id, session_id).

    Each key has its own ``asyncio.Lock``; holders of :meth:`open` have
    exclusive use of that session's memory until they leave the block.
    At most ``max_cached`` memories stay cached. Idle ones are evicted
    least recently used first and reload from the store on next use.
    """

    def __init__(self, store: ChatHistoryStore, max_cached: int = 256):
        self.store = store
        self.max_cached = max(1, int(max_cached))
        self._sessions: OrderedDict[SessionKey, SessionMemory] = OrderedDict()
        self._locks: dict[SessionKey, asyncio.Lock] = {}
        self._users: dict[SessionKey, int] = {}

    def _lock_for(self, key: SessionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def _hold(self, key: SessionKey) -> AsyncIterator[None]:
        # Keys with users (holders or waiters) are never evicted.
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with self._lock_for(key):
                yield
        finally:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                if key not in self._sessions:
                    self._locks.pop(key, None)
            self._evict()

    def _evict(self) -> None:
        excess = len(self._sessions) - self.max_cached
        if excess <= 0:
            return
        for key in list(self._sessions):
            if excess <= 0:
                break
            if key in self._users:
                continue
            del self._sessions[key]
            self._locks.pop(key, None)
            excess -= 1
            log.debug("Session evicted from cache", session_id=key[1], user_id=key[0])

    @property
    def cached_count(self) -> int:
        return len(self._sessions)

    def is_busy(self, session_id: str, user_id: str | None = None) -> bool:
        lock = self._locks.get(session_key(session_id, user_id))
        return bool(lock and lock.locked())

    def get(self, session_id: str, user_id: str | None = None) -> SessionMemory | None:
        """Return the live memory if this process has it cached."""
        return self._sessions.get(session_key(session_id, user_id))

    async def _get_or_load(self, key: SessionKey) -> SessionMemory:
        memory = self._sessions.get(key)
        if memory is None:
            memory = await self.store.load(key[1], key[0])
            self._sessions[key] = memory
            log.debug("Session loaded", session_id=key[1], user_id=key[0], messages=len(memory.messages))
        self._sessions.move_to_end(key)
        return memory

    async def load(self, session_id: str, user_id: str | None = None) -> SessionMemory:
        """Return the cached memory, loading it from the store if needed."""
        key = session_key(session_id, user_id)
        memory = await self._get_or_load(key)
        self._evict()
        return memory

    @asynccontextmanager
    async def open(self, session_id: str, user_id: str | None = None) -> AsyncIterator[SessionMemory]:
        """Lock a session, yield its memory and queue a save on exit."""
        key = session_key(session_id, user_id)
        async with self._hold(key):
            memory = await self._get_or_load(key)
            try:
                yield memory
            finally:
                await self.store.save(key[1], memory, key[0])

    async def clear(self, session_id: str, user_id: str | None = None) -> None:
        """Empty a session's memory and delete its stored history."""
        key = session_key(session_id, user_id)
        async with self._hold(key):
            memory = self._sessions.pop(key, None)
            if memory is not None:
                memory.clear()
            await self.store.delete(key[1], key[0])
        log.info("Session cleared", session_id=key[1], user_id=key[0])

    async def list_sessions(self, user_id: str | None = None) -> list[SessionInfo]:
        return await self.store.list_sessions(user_id)

    async def close(self) -> None:
        await self.store.close()


def create_history_store(config: Config | None = None) -> ChatHistoryStore:
    """Build the configured chat history backend."""
    cfg = config or get_config()
    options = {
        "flush_interval": cfg.session.flush_interval,
        "queue_size": cfg.session.queue_size,
        "default_title": "新对话" if cfg.is_chinese else "New conversation",
    }
    path = cfg.resolved_session_path()
    if cfg.session.storage == "sqlite":
        return SqliteHistoryStore(path, **options)
    return JsonFileHistoryStore(path, **options)


__all__ = [
    "ChatHistoryStore",
    "JsonFileHistoryStore",
    "SessionInfo",
    "SessionRegistry",
    "SqliteHistoryStore",
    "create_history_store",
    "session_key",
]
