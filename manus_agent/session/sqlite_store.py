"""Chat history stored in a SQLite database."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from manus_agent.logging import get_logger
from manus_agent.session.store import ChatHistoryStore

log = get_logger(__name__)

DEFAULT_DB_FILENAME = "chat_history.db"


class SqliteHistoryStore(ChatHistoryStore):
    """Store sessions as rows keyed by (user_id, session_id)."""

    def __init__(self, db_path: Path | str, **kwargs: Any):
        super().__init__(**kwargs)
        path = Path(db_path).expanduser()
        if path.suffix != ".db":
            path = path / DEFAULT_DB_FILENAME
        self.db_path = path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database is initialized."""
        if self._db is None:
            self._db = await aiosqlite.connect(str(self.db_path))
            await self._db.execute("""
                CREATE TABLE IF NOT EXISTS chat_sessions (
                    session_id TEXT NOT NULL,
                    user_id TEXT NOT NULL DEFAULT '',
                    messages TEXT NOT NULL DEFAULT '[]',
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, session_id)
                )
            """)
            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_sessions_updated_at ON chat_sessions(user_id, updated_at DESC)"
            )
            await self._db.commit()
            log.debug("Opened chat history database", path=str(self.db_path))
        return self._db

    async def _read(self, session_id: str, user_id: str) -> dict[str, Any] | None:
        db = await self._ensure_db()
        async with db.execute(
            "SELECT messages FROM chat_sessions WHERE user_id = ? AND session_id = ?",
            (user_id, session_id),
        ) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        return {"messages": json.loads(row[0])}

    async def _write(self, session_id: str, user_id: str, payload: dict[str, Any]) -> None:
        db = await self._ensure_db()
        await db.execute("""
            INSERT OR REPLACE INTO chat_sessions (session_id, user_id, messages, updated_at)
            VALUES (?, ?, ?, ?)
        """, (
            session_id,
            user_id,
            json.dumps(payload.get("messages", []), ensure_ascii=False),
            datetime.now(UTC).isoformat(),
        ))
        await db.commit()

    async def _remove(self, session_id: str, user_id: str) -> bool:
        db = await self._ensure_db()
        cursor = await db.execute(
            "DELETE FROM chat_sessions WHERE user_id = ? AND session_id = ?",
            (user_id, session_id),
        )
        await db.commit()
        return cursor.rowcount > 0

    async def _list_ids(self, user_id: str) -> list[str]:
        db = await self._ensure_db()
        async with db.execute(
            "SELECT session_id FROM chat_sessions WHERE user_id = ? ORDER BY updated_at DESC",
            (user_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def _close_backend(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
