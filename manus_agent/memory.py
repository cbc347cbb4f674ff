"""Per-session conversation memory."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]

ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return _utcnow()
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
    return _utcnow()


@dataclass(frozen=True)
class Message:
    """A message in a session's history."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    tool_call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys of the history files."""
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "toolCallId": self.tool_call_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from a serialized history entry (camelCase or snake_case)."""
        role = str(data.get("role", "")).strip().lower()
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        tool_call_id = data.get("toolCallId", data.get("tool_call_id"))
        return cls(
            role=role,  # type: ignore[arg-type]
            content=str(data.get("content") or ""),
            timestamp=_parse_timestamp(data.get("timestamp")),
            tool_call_id=str(tool_call_id) if tool_call_id else None,
        )

    def to_wire(self) -> dict[str, str]:
        """Role/content pair sent to the chat-completions endpoint."""
        return {"role": self.role, "content": self.content}


@dataclass
class SessionMemory:
    """Ordered, role-tagged message history of one conversation."""

    messages: list[Message] = field(default_factory=list)

    def add_message(self, role: Role, content: str, tool_call_id: str | None = None) -> Message:
        """Append a message and return it."""
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        message = Message(role=role, content=content, tool_call_id=tool_call_id)
        self.messages.append(message)
        return message

    def set_system_prompt(self, prompt: str, duplicate: bool = False) -> None:
        """Place the system prompt at index 0.

        With ``duplicate`` a new system message is inserted on every call,
        leaving earlier copies in place. Otherwise all existing system
        messages are dropped first so at most one remains.
        """
        if not duplicate:
            self.messages = [m for m in self.messages if m.role != "system"]
        self.messages.insert(0, Message(role="system", content=prompt))

    def clear(self) -> None:
        """Drop all messages."""
        self.messages.clear()

    def count(self, *, include_system: bool = True) -> int:
        if include_system:
            return len(self.messages)
        return sum(1 for m in self.messages if m.role != "system")

    def last(self, role: Role | None = None) -> Message | None:
        """Return the most recent message, optionally filtered by role."""
        for message in reversed(self.messages):
            if role is None or message.role == role:
                return message
        return None

    def to_wire(self) -> list[dict[str, str]]:
        return [m.to_wire() for m in self.messages]

    def to_dict(self) -> dict[str, Any]:
        return {"messages": [m.to_dict() for m in self.messages]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionMemory":
        raw = data.get("messages") or []
        return cls(messages=[Message.from_dict(item) for item in raw if isinstance(item, dict)])

    def copy(self) -> "SessionMemory":
        """Shallow snapshot; messages themselves are immutable."""
        return SessionMemory(messages=list(self.messages))
