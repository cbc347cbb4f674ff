"""Load and render the agent's instruction templates.

Templates ship in ``manus_agent/instructions/``. When ``agent.instructions_dir``
is set, a file with the same name in that directory takes precedence.
"""

from collections.abc import Iterable, Mapping
from pathlib import Path

from manus_agent.config import get_config
from manus_agent.tools.registry import Tool

SYSTEM_PROMPT_TEMPLATE = "system_prompt.md"
_BASE_DIR = Path(__file__).resolve().parent / "instructions"


class _SafeFormatDict(dict[str, str]):
    """Leave unknown placeholders untouched instead of raising KeyError."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


class InstructionLoader:
    """Read and render instruction templates with override support.

    Resolution order for every template:
      1. ``override_dir / name``  (``agent.instructions_dir``)
      2. ``base_dir / name``      (packaged ``instructions/``)
    """

    def __init__(
        self,
        base_dir: Path | str | None = None,
        override_dir: Path | str | None = None,
    ):
        self.base_dir = Path(base_dir).expanduser().resolve() if base_dir is not None else _BASE_DIR
        if override_dir is None:
            override_dir = get_config().agent.instructions_dir or None
        self.override_dir: Path | None = (
            Path(override_dir).expanduser().resolve() if override_dir else None
        )
        self._cache: dict[str, str] = {}

    def _path(self, name: str) -> Path:
        if self.override_dir is not None:
            candidate = self.override_dir / name
            if candidate.is_file():
                return candidate
        return self.base_dir / name

    def is_overridden(self, name: str) -> bool:
        return self.override_dir is not None and (self.override_dir / name).is_file()

    def load(self, name: str) -> str:
        """Load instruction template content by filename."""
        cached = self._cache.get(name)
        if cached is not None:
            return cached

        path = self._path(name)
        if not path.is_file():
            raise FileNotFoundError(f"Instruction template not found: {path}")
        content = path.read_text(encoding="utf-8").strip()
        self._cache[name] = content
        return content

    def render(self, name: str, **variables: object) -> str:
        """Render template with simple ``str.format`` placeholder substitution."""
        template = self.load(name)
        values: Mapping[str, str] = {k: str(v) for k, v in variables.items()}
        return template.format_map(_SafeFormatDict(values))


class SystemPromptBuilder:
    """Builds the system prompt that advertises the registered tools."""

    def __init__(self, loader: InstructionLoader | None = None):
        self.loader = loader or InstructionLoader()

    @staticmethod
    def format_tool_list(tools: Iterable[Tool]) -> str:
        return "\n".join(f"- {tool.name}: {tool.description}" for tool in tools)

    def build(self, tools: Iterable[Tool]) -> str:
        return self.loader.render(SYSTEM_PROMPT_TEMPLATE, tool_list=self.format_tool_list(tools))
