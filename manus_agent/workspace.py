"""File access scoped to the agent workspace root."""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from manus_agent.logging import get_logger

log = get_logger(__name__)


@dataclass
class FileEntry:
    """One entry of a directory listing."""

    name: str
    path: str
    is_directory: bool
    size: int = 0


class Workspace:
    """Read, write and list files relative to a workspace root.

    Relative paths are joined onto the root as given; ``..`` segments and
    absolute paths are not rejected, so callers can reach outside the root.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def full_path(self, relative_path: str = "") -> Path:
        return self.root / (relative_path or "")

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    async def read(self, relative_path: str) -> str:
        path = self.full_path(relative_path)

        def _read() -> str:
            if not path.is_file():
                raise FileNotFoundError(f"File not found: {relative_path}")
            return path.read_text(encoding="utf-8")

        return await asyncio.to_thread(_read)

    async def write(self, relative_path: str, content: str) -> None:
        path = self.full_path(relative_path)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)
        log.debug("Workspace file written", path=relative_path, chars=len(content))

    async def list(self, relative_dir: str = "") -> list[FileEntry]:
        """List a directory: subdirectories first, then files, each by name.

        A missing directory lists as empty.
        """
        directory = self.full_path(relative_dir)

        def _scan() -> list[FileEntry]:
            if not directory.is_dir():
                return []
            children = sorted(directory.iterdir(), key=lambda p: p.name)
            dirs = [
                FileEntry(name=p.name, path=self._relative(p), is_directory=True)
                for p in children
                if p.is_dir()
            ]
            files = [
                FileEntry(name=p.name, path=self._relative(p), is_directory=False, size=p.stat().st_size)
                for p in children
                if p.is_file()
            ]
            return dirs + files

        return await asyncio.to_thread(_scan)

    async def exists(self, relative_path: str) -> bool:
        return await asyncio.to_thread(self.full_path(relative_path).is_file)
