"""ReAct agent loop: reason, act through tools, observe, answer."""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import structlog

from reactloop.cancellation import CancellationToken
from reactloop.components import ComponentRegistry, create_default_component_registry
from reactloop.config import Config, get_config
from reactloop.content import (
    THINKING_MAX_CHARS,
    ContentItem,
    ContentStream,
    TextItem,
    make_comment,
    split_text,
    truncate_text,
)
from reactloop.instructions import InstructionLoader, build_system_prompt
from reactloop.llm import (
    CompletionOptions,
    CompletionResult,
    LLMProvider,
    Message,
    create_provider_from_config,
)
from reactloop.logging import get_logger
from reactloop.memory import ConversationMemory
from reactloop.parser import ParsedAction, parse_response
from reactloop.tools import create_default_registry
from reactloop.tools.dispatcher import ToolDispatcher
from reactloop.tools.registry import Tool, ToolRegistry

log = get_logger(__name__)

EMPTY_RESPONSE_NOTICE = (
    "❌ Agent returned empty response. This might be due to content filtering or model "
    "issues. Try rephrasing your request or use simpler language."
)
SOFT_RECOVERY_QUESTION = (
    "Let me try to help you with a simpler approach. Could you tell me a bit more "
    "about what you're looking for?"
)
MAX_ITERATIONS_NOTICE = "⚠️ Agent reached maximum iterations"


class RunOutcome(str, Enum):
    """Terminal state of one ``run`` call."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    MAX_ITERATIONS = "max_iterations"
    ERRORED = "errored"


@dataclass
class AgentRunState:
    """Mutable state of one conversation; owned by a single ReActAgent."""

    is_running: bool = False
    content: ContentStream = field(default_factory=ContentStream)
    error: str | None = None
    cancellation_token: CancellationToken | None = None
    memory: ConversationMemory = field(default_factory=ConversationMemory)
    last_outcome: RunOutcome | None = None


class ReActAgent:
    """One agent session: runs the ReAct loop and keeps its conversation.

    Construct one instance per conversation. Instances share nothing, so
    several sessions can run side by side in the same event loop.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        tools: ToolRegistry | None = None,
        components: ComponentRegistry | None = None,
        instructions: InstructionLoader | None = None,
        config: Config | None = None,
        session_id: str | None = None,
    ):
        """Initialize the agent.

        Args:
            provider: Completion backend (defaults to the configured provider)
            tools: Tool registry used when ``run`` is given no tool list
            components: Component schemas used to check component props
            instructions: Loader for the system prompt template
            config: Configuration override (defaults to the global config)
            session_id: Identifier bound into log context
        """
        self.config = config or get_config()
        self.provider = provider or create_provider_from_config(self.config)
        self.tools = tools if tools is not None else create_default_registry(self.config)
        self.components = components or create_default_component_registry()
        self.instructions = instructions or InstructionLoader()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.completion_options = CompletionOptions(
            temperature=self.config.model.temperature,
            max_tokens=self.config.model.max_tokens,
        )
        self._state = AgentRunState()

    # Read-only consumer surface

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def content(self) -> list[ContentItem]:
        return self._state.content.items

    @property
    def content_stream(self) -> ContentStream:
        return self._state.content

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def conversation_history(self) -> list[Message]:
        return self._state.memory.history

    @property
    def memory(self) -> dict[str, Any]:
        return self._state.memory.scratchpad

    @property
    def last_outcome(self) -> RunOutcome | None:
        return self._state.last_outcome

    def subscribe(self, callback: Callable[[ContentItem], None]) -> Callable[[], None]:
        """Receive each content item as it is pushed."""
        return self._state.content.subscribe(callback)

    # Lifecycle

    def stop(self) -> None:
        """Signal cancellation and mark the agent idle without waiting."""
        token = self._state.cancellation_token
        if not self._state.is_running and token is None:
            return
        if token is not None:
            token.cancel("stopped by caller")
        self._state.cancellation_token = None
        self._state.is_running = False
        log.info("Agent stop requested", session_id=self.session_id)

    def clear(self) -> None:
        """Clear the content stream and error; keep history and memory."""
        if self._state.is_running:
            log.warning("Ignoring clear while agent is running", session_id=self.session_id)
            return
        self._state.content.clear()
        self._state.error = None

    def clear_all(self) -> None:
        """Start a new logical conversation."""
        if self._state.is_running:
            log.warning("Ignoring clear_all while agent is running", session_id=self.session_id)
            return
        self._state.content.clear()
        self._state.error = None
        self._state.memory.clear()

    def export_state(self) -> dict[str, Any]:
        """History and memory as plain data, for hosts that persist sessions."""
        return self._state.memory.export()

    def import_state(self, data: dict[str, Any]) -> None:
        """Restore history and memory exported by :meth:`export_state`."""
        if self._state.is_running:
            raise RuntimeError("Cannot import state while the agent is running")
        self._state.memory = ConversationMemory.from_export(data)

    async def aclose(self) -> None:
        """Stop any active run and close the provider and registered tools."""
        self.stop()
        await self.provider.close()
        await self.tools.close()

    # Main loop

    async def run(
        self,
        user_message: str,
        page_context: str | None = None,
        max_iterations: int | None = None,
        tools: list[Tool] | None = None,
        extra_context: str | None = None,
        system_prompt_override: str | None = None,
    ) -> RunOutcome | None:
        """Run the ReAct loop for one user message.

        Returns:
            The terminal RunOutcome, or None when a run is already in progress
        """
        if self._state.is_running:
            log.warning("Run requested while agent is busy", session_id=self.session_id)
            return None

        token = CancellationToken()
        self._state.is_running = True
        self._state.error = None
        self._state.cancellation_token = token
        outcome = RunOutcome.ERRORED

        with structlog.contextvars.bound_contextvars(session_id=self.session_id):
            try:
                log.info("Starting ReAct agent", message=user_message)
                outcome = await self._run_loop(
                    token,
                    user_message,
                    page_context=page_context,
                    max_iterations=(
                        self.config.agent.max_iterations if max_iterations is None else max_iterations
                    ),
                    tools=tools,
                    extra_context=extra_context,
                    system_prompt_override=system_prompt_override,
                )
            except asyncio.CancelledError:
                token.cancel("task cancelled")
                outcome = RunOutcome.STOPPED
                raise
            except Exception as e:
                error = str(e) or type(e).__name__
                log.error("ReAct agent error", error=error)
                if self._owns(token):
                    self._state.error = error
                    self._push(make_comment(f"❌ Agent error: {error}"))
                outcome = RunOutcome.ERRORED
            finally:
                if self._owns(token) or self._state.cancellation_token is None:
                    self._state.last_outcome = outcome
                if self._owns(token):
                    self._state.is_running = False
                    self._state.cancellation_token = None
                log.info("ReAct agent finished", outcome=outcome.value)
        return outcome

    def _owns(self, token: CancellationToken) -> bool:
        return self._state.cancellation_token is token

    def _push(self, item: Any) -> ContentItem:
        return self._state.content.push(item)

    def _push_text(self, text: str) -> None:
        # Long answers span several text items rather than failing validation.
        for chunk in split_text(text):
            self._push(TextItem(content=chunk))

    def _system_message(
        self,
        registry: ToolRegistry,
        page_context: str | None,
        extra_context: str | None,
        system_prompt_override: str | None,
    ) -> Message:
        if system_prompt_override:
            return Message(role="system", content=system_prompt_override)
        if extra_context:
            context = f"{extra_context}\n\n{page_context or ''}".strip()
        else:
            context = page_context
        prompt = build_system_prompt(
            self.instructions,
            registry.format_for_prompt(),
            context,
            max_context_chars=self.config.agent.context_char_budget,
        )
        return Message(role="system", content=prompt)

    async def _complete(self, messages: list[Message]) -> CompletionResult:
        try:
            return await self.provider.complete(messages, self.completion_options)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("Completion backend raised", error=str(e))
            return CompletionResult(success=False, error=str(e) or type(e).__name__)

    async def _run_loop(
        self,
        token: CancellationToken,
        user_message: str,
        *,
        page_context: str | None,
        max_iterations: int,
        tools: list[Tool] | None,
        extra_context: str | None,
        system_prompt_override: str | None,
    ) -> RunOutcome:
        memory = self._state.memory
        self._push_text(f"**User:** {user_message}")

        registry = ToolRegistry(tools) if tools is not None else self.tools.snapshot()
        dispatcher = ToolDispatcher(
            registry,
            components=self.components,
            default_timeout=self.config.tools.default_timeout,
        )
        system_message = self._system_message(
            registry, page_context, extra_context, system_prompt_override
        )
        memory_message = memory.memory_message()
        memory.add_message("user", user_message)

        limit = max(0, int(max_iterations))
        for iteration in range(1, limit + 1):
            if token.cancelled:
                return RunOutcome.STOPPED

            messages = [system_message]
            if memory_message is not None:
                messages.append(memory_message)
            messages.extend(memory.history_without_system())
            log.info("ReAct iteration", iteration=iteration, max_iterations=limit, messages=len(messages))

            response = await self._complete(messages)
            if token.cancelled:
                log.info("Discarding completion received after stop", iteration=iteration)
                return RunOutcome.STOPPED

            if not response.success:
                error = response.error or "No response from AI"
                self._state.error = error
                self._push(make_comment(f"❌ Agent error: {error}"))
                return RunOutcome.ERRORED

            text = response.content or ""
            if not text.strip():
                self._push(make_comment(EMPTY_RESPONSE_NOTICE))
                if iteration == 1:
                    self._push(TextItem(content=SOFT_RECOVERY_QUESTION))
                self._state.error = "Agent returned empty response"
                return RunOutcome.ERRORED

            memory.add_message("assistant", text)

            parsed = parse_response(
                text,
                registry.tools(),
                min_search_query_length=self.config.agent.min_search_query_length,
            )
            if parsed.thinking:
                thinking = truncate_text(parsed.thinking, THINKING_MAX_CHARS)
                self._push({"type": "thinking", "content": thinking})

            if parsed.action is not None:
                await self._act(parsed.action, dispatcher, token)
                if token.cancelled:
                    return RunOutcome.STOPPED
                continue

            if parsed.final_answer is not None:
                self._push_text(parsed.final_answer)
                return RunOutcome.COMPLETED

            self._push_text(parsed.plain_text)

        self._push(make_comment(MAX_ITERATIONS_NOTICE))
        return RunOutcome.MAX_ITERATIONS

    async def _act(
        self,
        action: ParsedAction,
        dispatcher: ToolDispatcher,
        token: CancellationToken,
    ) -> None:
        """Execute one action and append its observation as a user turn."""
        memory = self._state.memory
        if token.cancelled:
            log.info("Skipping tool call requested before stop", tool=action.name)
            return
        if action.suppressed:
            log.info("Skipping search for simple query", tool=action.name, params=action.params)
            memory.add_message("user", action.suppressed_observation)
            return

        dispatch = await dispatcher.dispatch(action.name, action.params, token)
        if token.cancelled:
            log.info("Discarding tool result received after stop", tool=action.name)
            return

        for item in dispatch.items:
            accepted = self._push(item)
            if accepted.type in ("tool_result", "comment"):
                memory.record_tool_use(action.name)

        memory.add_message("user", dispatch.observation)
