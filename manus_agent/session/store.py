"""Chat history store contract and the shared background flush queue."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from manus_agent.logging import get_logger
from manus_agent.memory import SessionMemory

log = get_logger(__name__)

SessionKey = tuple[str, str]

TITLE_MAX_CHARS = 30
_EPOCH = datetime.min.replace(tzinfo=UTC)


def session_key(session_id: str, user_id: str | None = None) -> SessionKey:
    """Return the (user_id, session_id) key used for caching and locking."""
    return (str(user_id or "").strip(), str(session_id or "").strip())


@dataclass
class SessionInfo:
    """Summary of a stored conversation."""

    id: str
    title: str
    message_count: int
    last_activity: datetime | None = None


def session_title(memory: SessionMemory, default: str) -> str:
    """Title a session after its first user message."""
    for message in memory.messages:
        if message.role != "user":
            continue
        text = message.content
        if len(text) > TITLE_MAX_CHARS:
            return text[:TITLE_MAX_CHARS] + "..."
        return text
    return default


class ChatHistoryStore(ABC):
    """Load/save session memory keyed by (session_id, user_id).

    ``save`` only records a snapshot in a bounded pending queue; a
    background task writes the queue out every ``flush_interval`` seconds.
    Anything still pending when the process dies is lost, as are saves
    refused because the queue is full.
    """

    def __init__(
        self,
        flush_interval: float = 2.0,
        queue_size: int = 1000,
        default_title: str = "New conversation",
    ):
        self.flush_interval = max(0.01, float(flush_interval))
        self.queue_size = max(1, int(queue_size))
        self.default_title = default_title
        self._pending: dict[SessionKey, SessionMemory] = {}
        self._inflight: dict[SessionKey, SessionMemory] = {}
        self._flush_lock = asyncio.Lock()
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    # Backend hooks

    @abstractmethod
    async def _read(self, session_id: str, user_id: str) -> dict[str, Any] | None:
        """Return the serialized memory, or None when nothing is stored."""

    @abstractmethod
    async def _write(self, session_id: str, user_id: str, payload: dict[str, Any]) -> None:
        """Persist one serialized memory."""

    @abstractmethod
    async def _remove(self, session_id: str, user_id: str) -> bool:
        """Delete one stored memory; return whether anything was removed."""

    @abstractmethod
    async def _list_ids(self, user_id: str) -> list[str]:
        """Return stored session ids for a user ("" for no user)."""

    async def _close_backend(self) -> None:
        return None

    def _check_key(self, session_id: str, user_id: str) -> None:
        """Raise SessionError for ids the backend cannot store."""
        return None

    # Public contract

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def load(self, session_id: str, user_id: str | None = None) -> SessionMemory:
        """Load a session's memory; unknown or unreadable sessions start empty."""
        key = session_key(session_id, user_id)
        self._check_key(key[1], key[0])
        queued = self._pending.get(key) or self._inflight.get(key)
        if queued is not None:
            return queued.copy()

        try:
            payload = await self._read(key[1], key[0])
        except Exception as e:
            log.warning("Failed to read chat history", session_id=key[1], user_id=key[0], error=str(e))
            return SessionMemory()

        if payload is None:
            return SessionMemory()
        try:
            return SessionMemory.from_dict(payload)
        except (TypeError, ValueError, AttributeError) as e:
            log.warning("Discarding unreadable chat history", session_id=key[1], error=str(e))
            return SessionMemory()

    async def save(self, session_id: str, memory: SessionMemory, user_id: str | None = None) -> None:
        """Queue a snapshot for the background writer; returns immediately."""
        if self._closed:
            log.warning("Save after store close ignored", session_id=session_id)
            return
        key = session_key(session_id, user_id)
        self._check_key(key[1], key[0])
        if key not in self._pending and len(self._pending) >= self.queue_size:
            log.warning("Save queue full, dropping snapshot", session_id=key[1], queue_size=self.queue_size)
            return
        self._pending[key] = memory.copy()
        self._ensure_worker()

    async def flush(self) -> int:
        """Write every pending snapshot now; return how many were written."""
        async with self._flush_lock:
            if not self._pending:
                return 0
            self._inflight = self._pending
            self._pending = {}
            written = 0
            try:
                for key in list(self._inflight):
                    user_id, session_id = key
                    try:
                        await self._write(session_id, user_id, self._inflight[key].to_dict())
                        written += 1
                    except Exception as e:
                        log.error("Failed to persist chat history", session_id=session_id, error=str(e))
                    del self._inflight[key]
            finally:
                # Requeue whatever an interrupted flush did not reach.
                for key, memory in self._inflight.items():
                    self._pending.setdefault(key, memory)
                self._inflight = {}
            log.debug("Flushed chat history", written=written)
            return written

    async def delete(self, session_id: str, user_id: str | None = None) -> bool:
        """Drop queued snapshots and stored history of a session.

        Waits for a running flush so it cannot write the session back.
        """
        key = session_key(session_id, user_id)
        async with self._flush_lock:
            dropped = self._pending.pop(key, None) is not None
            removed = await self._remove(key[1], key[0])
        return removed or dropped

    async def list_sessions(self, user_id: str | None = None) -> list[SessionInfo]:
        """List stored sessions for a user, most recently active first."""
        uid = session_key("", user_id)[0]
        ids = set(await self._list_ids(uid))
        ids.update(sid for (owner, sid) in self._pending if owner == uid)

        infos: list[SessionInfo] = []
        for sid in ids:
            memory = await self.load(sid, uid)
            last = memory.last()
            infos.append(
                SessionInfo(
                    id=sid,
                    title=session_title(memory, self.default_title),
                    message_count=memory.count(include_system=False),
                    last_activity=last.timestamp if last else None,
                )
            )
        infos.sort(key=lambda info: info.last_activity or _EPOCH, reverse=True)
        return infos

    async def close(self) -> None:
        """Stop the background writer and flush what is still pending."""
        self._closed = True
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        await self.flush()
        await self._close_backend()

    # Background worker

    def _ensure_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.create_task(self._run_worker())

    async def _run_worker(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            try:
                await self.flush()
            except Exception as e:
                log.error("Background history writer error", error=str(e))
