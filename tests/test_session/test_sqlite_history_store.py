import pytest

from manus_agent.memory import SessionMemory
from manus_agent.session import SqliteHistoryStore


@pytest.mark.asyncio
async def test_directory_path_gets_default_database_name(tmp_path):
    store = SqliteHistoryStore(tmp_path / "history", flush_interval=60)
    try:
        assert store.db_path == tmp_path / "history" / "chat_history.db"
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_round_trip_preserves_role_content_and_tool_call_id(tmp_path):
    db_path = tmp_path / "sessions.db"
    memory = SessionMemory()
    memory.add_message("user", "search python")
    memory.add_message("assistant", "Searching")
    memory.add_message("tool", "Search results for 'python':", tool_call_id="call-7")

    store = SqliteHistoryStore(db_path, flush_interval=60)
    try:
        await store.save("s1", memory, user_id="bob")
        await store.flush()
    finally:
        await store.close()

    assert db_path.exists()
    reopened = SqliteHistoryStore(db_path, flush_interval=60)
    try:
        loaded = await reopened.load("s1", user_id="bob")
        other_user = await reopened.load("s1", user_id="carol")
    finally:
        await reopened.close()

    assert [(m.role, m.content, m.tool_call_id) for m in loaded.messages] == [
        ("user", "search python", None),
        ("assistant", "Searching", None),
        ("tool", "Search results for 'python':", "call-7"),
    ]
    assert other_user.messages == []


@pytest.mark.asyncio
async def test_list_and_delete_are_scoped_to_user(tmp_path):
    store = SqliteHistoryStore(tmp_path / "sessions.db", flush_interval=60)
    try:
        first = SessionMemory()
        first.add_message("user", "hello")
        await store.save("a", first, user_id="bob")
        await store.save("b", first)
        await store.flush()

        bob_sessions = await store.list_sessions("bob")
        anonymous = await store.list_sessions()
        removed = await store.delete("a", user_id="bob")
        after = await store.list_sessions("bob")
    finally:
        await store.close()

    assert [info.id for info in bob_sessions] == ["a"]
    assert [info.id for info in anonymous] == ["b"]
    assert removed is True
    assert after == []
