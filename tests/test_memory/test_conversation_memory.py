import json

from reactloop.memory import ConversationMemory


def test_history_is_ordered_and_system_messages_are_filtered():
    memory = ConversationMemory()
    memory.add_message("system", "stale prompt")
    memory.add_message("user", "hi")
    memory.add_message("assistant", "hello")

    assert [m.role for m in memory.history] == ["system", "user", "assistant"]
    assert [m.content for m in memory.history_without_system()] == ["hi", "hello"]


def test_history_property_is_a_copy():
    memory = ConversationMemory()
    memory.add_message("user", "hi")

    memory.history.clear()

    assert len(memory.history) == 1


def test_memory_message_is_none_until_something_is_remembered():
    memory = ConversationMemory()

    assert memory.memory_message() is None

    memory.record_tool_use("web_search", at_ms=1_700_000_000_000)
    message = memory.memory_message()

    assert message.role == "system"
    prefix = "Memory from previous interactions: "
    assert message.content.startswith(prefix)
    assert json.loads(message.content[len(prefix):]) == {
        "last_tool_used": "web_search",
        "last_message_at": 1_700_000_000_000,
    }


def test_record_tool_use_overwrites_previous_tool():
    memory = ConversationMemory()
    memory.remember("topic", "weather")
    memory.record_tool_use("a", at_ms=1)
    memory.record_tool_use("b", at_ms=2)

    assert memory.scratchpad == {"topic": "weather", "last_tool_used": "b", "last_message_at": 2}


def test_clear_history_keeps_scratchpad_and_clear_drops_both():
    memory = ConversationMemory()
    memory.add_message("user", "hi")
    memory.remember("k", "v")

    memory.clear_history()
    assert memory.history == []
    assert memory.scratchpad == {"k": "v"}

    memory.clear()
    assert memory.scratchpad == {}


def test_export_round_trip():
    memory = ConversationMemory()
    memory.add_message("user", "hi")
    memory.add_message("assistant", "hello")
    memory.record_tool_use("show_status", at_ms=5)

    exported = memory.export()
    restored = ConversationMemory.from_export(json.loads(json.dumps(exported)))

    assert exported["messages"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]
    assert restored.history == memory.history
    assert restored.scratchpad == memory.scratchpad


def test_from_export_ignores_malformed_entries():
    restored = ConversationMemory.from_export({"messages": ["junk", {"role": "user", "content": "ok"}], "memory": []})

    assert [m.content for m in restored.history] == ["ok"]
    assert restored.scratchpad == {}
