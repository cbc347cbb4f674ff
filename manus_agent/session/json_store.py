"""Chat history stored as one JSON file per session."""

import asyncio
import json
from pathlib import Path
from typing import Any

from manus_agent.exceptions import SessionError
from manus_agent.logging import get_logger
from manus_agent.session.store import ChatHistoryStore

log = get_logger(__name__)

_INVALID_FILENAME_CHARS = set('<>:"/\\|?*')


def clean_file_id(value: str) -> str:
    """Return an id usable as a file name, rejecting ones that are not.

    Ids are never rewritten, so two distinct ids cannot share a file.
    """
    cleaned = str(value or "").strip()
    if cleaned in ("", ".", "..") or any(
        ch in _INVALID_FILENAME_CHARS or ord(ch) < 32 for ch in cleaned
    ):
        raise SessionError(f"Invalid session identifier: {value!r}")
    return cleaned


class JsonFileHistoryStore(ChatHistoryStore):
    """Store each session as ``<root>/<session>.json``.

    Sessions owned by a user live under ``<root>/users/<user>/``.
    """

    def __init__(self, root: Path | str, **kwargs: Any):
        super().__init__(**kwargs)
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _user_dir(self, user_id: str) -> Path:
        if not user_id:
            return self.root
        return self.root / "users" / clean_file_id(user_id)

    def session_path(self, session_id: str, user_id: str = "") -> Path:
        return self._user_dir(user_id) / f"{clean_file_id(session_id)}.json"

    def _check_key(self, session_id: str, user_id: str) -> None:
        self.session_path(session_id, user_id)

    async def _read(self, session_id: str, user_id: str) -> dict[str, Any] | None:
        path = self.session_path(session_id, user_id)

        def _load() -> dict[str, Any] | None:
            if not path.is_file():
                return None
            return json.loads(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_load)

    async def _write(self, session_id: str, user_id: str, payload: dict[str, Any]) -> None:
        path = self.session_path(session_id, user_id)
        text = json.dumps(payload, ensure_ascii=False, indent=2)

        def _dump() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(text, encoding="utf-8")
            tmp_path.replace(path)

        await asyncio.to_thread(_dump)

    async def _remove(self, session_id: str, user_id: str) -> bool:
        path = self.session_path(session_id, user_id)

        def _unlink() -> bool:
            if not path.is_file():
                return False
            path.unlink()
            return True

        return await asyncio.to_thread(_unlink)

    async def _list_ids(self, user_id: str) -> list[str]:
        directory = self._user_dir(user_id)

        def _scan() -> list[str]:
            if not directory.is_dir():
                return []
            return [p.stem for p in directory.glob("*.json") if p.is_file()]

        return await asyncio.to_thread(_scan)
