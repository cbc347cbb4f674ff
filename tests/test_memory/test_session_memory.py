from datetime import UTC, datetime

import pytest

from manus_agent.memory import Message, SessionMemory


def test_add_message_appends_in_order():
    memory = SessionMemory()
    memory.add_message("user", "one")
    memory.add_message("assistant", "two")
    tool = memory.add_message("tool", "three", tool_call_id="c1")

    assert [m.content for m in memory.messages] == ["one", "two", "three"]
    assert tool.tool_call_id == "c1"
    assert memory.last().content == "three"
    assert memory.last("assistant").content == "two"


def test_add_message_rejects_unknown_role():
    with pytest.raises(ValueError):
        SessionMemory().add_message("narrator", "x")


def test_messages_are_immutable():
    message = Message(role="user", content="hi")

    with pytest.raises(AttributeError):
        message.content = "changed"


def test_system_prompt_refresh_keeps_single_copy_at_front():
    memory = SessionMemory()
    memory.add_message("user", "hello")
    memory.set_system_prompt("v1")
    memory.add_message("assistant", "hi")
    memory.set_system_prompt("v2")

    assert [(m.role, m.content) for m in memory.messages] == [
        ("system", "v2"),
        ("user", "hello"),
        ("assistant", "hi"),
    ]


def test_system_prompt_duplicate_mode_keeps_earlier_copies():
    memory = SessionMemory()
    memory.add_message("user", "hello")
    memory.set_system_prompt("p", duplicate=True)
    memory.set_system_prompt("p", duplicate=True)

    assert [m.role for m in memory.messages] == ["system", "system", "user"]


def test_count_and_clear():
    memory = SessionMemory()
    memory.set_system_prompt("p")
    memory.add_message("user", "hello")

    assert memory.count() == 2
    assert memory.count(include_system=False) == 1

    memory.clear()

    assert memory.messages == []
    assert memory.last() is None


def test_message_dict_uses_history_file_keys():
    stamp = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
    message = Message(role="tool", content="out", timestamp=stamp, tool_call_id="c9")

    data = message.to_dict()

    assert data == {
        "role": "tool",
        "content": "out",
        "timestamp": "2024-05-01T12:30:00+00:00",
        "toolCallId": "c9",
    }
    assert Message.from_dict(data) == message


def test_message_from_dict_accepts_snake_case_and_naive_timestamps():
    message = Message.from_dict(
        {"role": "Assistant", "content": None, "timestamp": "2024-05-01T12:30:00", "tool_call_id": "x"}
    )

    assert message.role == "assistant"
    assert message.content == ""
    assert message.timestamp == datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
    assert message.tool_call_id == "x"


def test_memory_dict_round_trip_and_wire_format():
    memory = SessionMemory()
    memory.add_message("user", "hello")
    memory.add_message("tool", "result", tool_call_id="c1")

    restored = SessionMemory.from_dict(memory.to_dict())

    assert restored.messages == memory.messages
    assert restored.to_wire() == [
        {"role": "user", "content": "hello"},
        {"role": "tool", "content": "result"},
    ]


def test_copy_is_independent_of_later_appends():
    memory = SessionMemory()
    memory.add_message("user", "hello")
    snapshot = memory.copy()
    memory.add_message("assistant", "hi")

    assert len(snapshot.messages) == 1
