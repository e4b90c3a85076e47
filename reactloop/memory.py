"""Conversation memory carried across runs of one session."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

from reactloop.llm import Message
from reactloop.logging import get_logger

log = get_logger(__name__)


@dataclass
class ConversationMemorySnapshot:
    """Serializable memory snapshot."""

    messages: list[dict[str, Any]]
    scratchpad: dict[str, Any]


class ConversationMemory:
    """Ordered message history plus a small key/value scratchpad.

    History is replayed to the backend on every run (minus system messages,
    which are rebuilt fresh). The scratchpad gives the model lightweight
    continuity (last tool used, last activity) without replaying everything.
    """

    def __init__(self) -> None:
        self._history: list[Message] = []
        self._scratchpad: dict[str, Any] = {}

    def add_message(self, role: str, content: str | None, **extra: Any) -> Message:
        message = Message(role=role, content=content, **extra)
        self._history.append(message)
        return message

    def history_without_system(self) -> list[Message]:
        return [msg for msg in self._history if msg.role != "system"]

    def record_tool_use(self, tool_name: str, at_ms: int | None = None) -> None:
        self._scratchpad = {
            **self._scratchpad,
            "last_tool_used": tool_name,
            "last_message_at": int(time.time() * 1000) if at_ms is None else at_ms,
        }

    def remember(self, key: str, value: Any) -> None:
        self._scratchpad = {**self._scratchpad, key: value}

    def memory_message(self) -> Message | None:
        """System message carrying the scratchpad, or None when it is empty."""
        if not self._scratchpad:
            return None
        return Message(
            role="system",
            content=f"Memory from previous interactions: {json.dumps(self._scratchpad, default=str)}",
        )

    def clear_history(self) -> None:
        self._history.clear()

    def clear(self) -> None:
        self._history.clear()
        self._scratchpad = {}

    def snapshot(self) -> ConversationMemorySnapshot:
        return ConversationMemorySnapshot(
            messages=[msg.to_dict() for msg in self._history],
            scratchpad=dict(self._scratchpad),
        )

    def export(self) -> dict[str, Any]:
        """Plain-dict form for hosts that persist sessions themselves."""
        snap = self.snapshot()
        return {"messages": snap.messages, "memory": snap.scratchpad}

    @classmethod
    def from_export(cls, data: dict[str, Any]) -> ConversationMemory:
        memory = cls()
        for raw in data.get("messages", []) or []:
            if isinstance(raw, dict):
                memory._history.append(Message.from_dict(raw))
        scratchpad = data.get("memory", {}) or {}
        if isinstance(scratchpad, dict):
            memory._scratchpad = dict(scratchpad)
        log.debug("Conversation memory restored", messages=len(memory._history))
        return memory

    @property
    def history(self) -> list[Message]:
        return list(self._history)

    @property
    def scratchpad(self) -> dict[str, Any]:
        return dict(self._scratchpad)
