"""Configuration management for Manus Agent."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from manus_agent.exceptions import ConfigurationError


# Paths
DEFAULT_CONFIG_PATH = Path("~/.manus-agent/config.yaml").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"


class LLMConfig(BaseModel):
    """OpenAI-compatible endpoint configuration."""

    base_url: str = "http://localhost:1234/v1/"
    api_key: str = ""
    model: str = "gemma-3-12b-it-qat"
    max_tokens: int = 4096
    temperature: float = 0.6
    timeout: float = 120.0


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_steps: int = 10
    language: str = "zh-CN"
    duplicate_system_prompt: bool = False
    instructions_dir: str = ""


class PythonToolConfig(BaseModel):
    """Python execution tool configuration."""

    interpreter: str = ""
    timeout_ms: int = 30000
    max_output_chars: int = 10000


class SearchToolConfig(BaseModel):
    """Search tool configuration."""

    provider: Literal["stub", "brave"] = "stub"
    api_key: str = ""
    base_url: str = "https://api.search.brave.com/res/v1/web/search"
    max_results: int = 5
    timeout: float = 20.0


class ToolsConfig(BaseModel):
    """Tools configuration."""

    enabled: list[str] = [
        "file_operation",
        "python_execute",
        "search",
        "terminate",
    ]
    python: PythonToolConfig = Field(default_factory=PythonToolConfig)
    search: SearchToolConfig = Field(default_factory=SearchToolConfig)


class SessionConfig(BaseModel):
    """Chat history persistence configuration."""

    storage: Literal["json", "sqlite"] = "json"
    path: str = "./Data/ChatHistory"
    flush_interval: float = 2.0
    queue_size: int = 1000
    max_cached_sessions: int = 256


class WorkspaceConfig(BaseModel):
    """Workspace root used by file tools."""

    path: str = "./workspace"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["console", "json"] = "console"


class Config(BaseSettings):
    """Main configuration for Manus Agent."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="MANUS_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment beats them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration; environment variables win over YAML values."""
        return cls.from_yaml(path)

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def _resolve_relative(self, raw_path: str, runtime_base: Path | str | None) -> Path:
        raw = Path(raw_path).expanduser()
        if raw.is_absolute():
            return raw.resolve()
        anchor = Path(runtime_base).expanduser().resolve() if runtime_base is not None else Path.cwd().resolve()
        return (anchor / raw).resolve()

    def resolved_workspace_path(self, runtime_base: Path | str | None = None) -> Path:
        """Resolve workspace path, anchoring relative paths to runtime base/cwd."""
        return self._resolve_relative(self.workspace.path, runtime_base)

    def resolved_session_path(self, runtime_base: Path | str | None = None) -> Path:
        """Resolve chat history location, anchoring relative paths to runtime base/cwd."""
        return self._resolve_relative(self.session.path, runtime_base)

    @property
    def is_chinese(self) -> bool:
        """Whether user-facing fallback texts should be Chinese."""
        return self.agent.language.strip().lower().startswith("zh")


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
