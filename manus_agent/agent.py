"""Agent execution loop for Manus Agent."""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from manus_agent.config import Config, get_config
from manus_agent.exceptions import LLMEmptyResponseError
from manus_agent.intent import IntentExtractor, KeywordIntentExtractor
from manus_agent.llm import LLMProvider, LLMUsage, get_provider
from manus_agent.logging import get_logger
from manus_agent.memory import SessionMemory
from manus_agent.prompts import InstructionLoader, SystemPromptBuilder
from manus_agent.session import SessionRegistry, create_history_store
from manus_agent.tools import Tool, ToolCall, ToolRegistry, create_tool_registry

log = get_logger(__name__)

MAX_STEPS_MESSAGE = "Task execution reached maximum steps without completion"

_COMPLETION_MARKERS = ("任务完成", "task completed")

_TEXTS = {
    "zh": {
        "unavailable": "抱歉，AI服务暂时不可用: {error}",
        "no_response": "抱歉，无法获取AI响应。",
        "cancelled": "请求已取消",
    },
    "en": {
        "unavailable": "Sorry, the AI service is temporarily unavailable: {error}",
        "no_response": "Sorry, no AI response could be obtained.",
        "cancelled": "Request cancelled",
    },
}

ChunkCallback = Callable[[str], Awaitable[None] | None]


@dataclass
class AgentResponse:
    """Outcome of a single LLM call within a step."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    is_finished: bool = False
    finish_reason: str | None = None
    usage: LLMUsage | None = None


class AgentExecutionResult(BaseModel):
    """Summary of one ``execute_task`` call."""

    session_id: str
    steps: list[str] = Field(default_factory=list)
    is_completed: bool = False
    final_result: str = ""
    error: str | None = None
    usage: LLMUsage | None = None


class AgentLoop:
    """Drives the LLM through tool-assisted steps for one session at a time."""

    def __init__(
        self,
        provider: LLMProvider | None = None,
        registry: ToolRegistry | None = None,
        sessions: SessionRegistry | None = None,
        extractor: IntentExtractor | None = None,
        config: Config | None = None,
        prompt_builder: SystemPromptBuilder | None = None,
    ):
        """Initialize the loop.

        Args:
            provider: LLM provider; defaults to the global provider
            registry: Tool registry; defaults to the tools enabled in config
            sessions: Session registry; defaults to the configured history store
            extractor: Maps assistant text to tool calls; defaults to keyword matching
            config: Configuration; defaults to the global config
            prompt_builder: Renders the system prompt
        """
        self.config = config or get_config()
        self.provider = provider or get_provider()
        self.registry = registry or create_tool_registry(self.config)
        self.sessions = sessions or SessionRegistry(
            create_history_store(self.config),
            max_cached=self.config.session.max_cached_sessions,
        )
        # close() only releases what this loop built; the global provider is shared.
        self._owns_registry = registry is None
        self._owns_sessions = sessions is None
        self.extractor = extractor or KeywordIntentExtractor()
        self.prompt_builder = prompt_builder or SystemPromptBuilder(
            InstructionLoader(override_dir=self.config.agent.instructions_dir)
        )
        self._texts = _TEXTS["zh"] if self.config.is_chinese else _TEXTS["en"]

    def _system_prompt(self) -> str:
        return self.prompt_builder.build(self.registry.tools())

    @staticmethod
    def _is_finished(content: str, finish_reason: str | None) -> bool:
        lowered = content.lower()
        if any(marker in lowered for marker in _COMPLETION_MARKERS):
            return True
        return finish_reason == "stop"

    async def execute_task(
        self,
        session_id: str,
        user_message: str,
        max_steps: int | None = None,
        model: str | None = None,
        user_id: str | None = None,
        on_chunk: ChunkCallback | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> AgentExecutionResult:
        """Run the step loop for one user message.

        Tool failures and LLM outages are absorbed into the conversation.
        Anything else is reported through ``result.error`` with the steps
        recorded so far; this method does not raise.

        Args:
            session_id: Conversation to append to
            user_message: The user's request
            max_steps: Step budget; defaults to ``agent.max_steps``
            model: Model override for this call
            user_id: Optional owner of the session
            on_chunk: Receives streamed content deltas; enables streaming
            abort_event: When set during a stream, the call is cancelled
        """
        result = AgentExecutionResult(session_id=session_id)
        budget = self.config.agent.max_steps if max_steps is None else max_steps

        log.info("Executing task", session_id=session_id, user_id=user_id, max_steps=budget)
        try:
            async with self.sessions.open(session_id, user_id) as memory:
                memory.add_message("user", user_message)
                await self._run_steps(memory, result, budget, model, on_chunk, abort_event)
        except Exception as e:
            log.error("Task execution failed", session_id=session_id, error=str(e), exc_info=True)
            result.error = str(e)

        log.info(
            "Task finished",
            session_id=session_id,
            completed=result.is_completed,
            steps=len(result.steps),
            error=result.error,
        )
        return result

    async def _run_steps(
        self,
        memory: SessionMemory,
        result: AgentExecutionResult,
        max_steps: int,
        model: str | None,
        on_chunk: ChunkCallback | None,
        abort_event: asyncio.Event | None,
    ) -> None:
        for step in range(1, max_steps + 1):
            memory.set_system_prompt(
                self._system_prompt(),
                duplicate=self.config.agent.duplicate_system_prompt,
            )

            response = await self._call_llm(memory, model, on_chunk, abort_event)
            memory.add_message("assistant", response.content)
            result.steps.append(f"Step {step}: {response.content}")
            if response.usage is not None:
                result.usage = response.usage if result.usage is None else result.usage + response.usage

            response.tool_calls = self.extractor.extract(response.content)
            if response.tool_calls:
                for call in response.tool_calls:
                    tool_result = await self.registry.execute(call)
                    memory.add_message("tool", tool_result.content, tool_call_id=call.id)
                    result.steps.append(f"Tool {call.name}: {tool_result.content}")
                continue

            if response.is_finished or "terminate" in response.content.lower():
                result.is_completed = True
                result.final_result = response.content
                log.debug("Task completed", step=step, finish_reason=response.finish_reason)
                return

        result.is_completed = False
        result.final_result = MAX_STEPS_MESSAGE
        log.warning("Maximum steps reached", max_steps=max_steps)

    async def _call_llm(
        self,
        memory: SessionMemory,
        model: str | None,
        on_chunk: ChunkCallback | None,
        abort_event: asyncio.Event | None,
    ) -> AgentResponse:
        """Ask the LLM for the next assistant turn; outages become apology text."""
        messages = memory.to_wire()
        try:
            if on_chunk is not None:
                return await self._call_llm_streaming(messages, model, on_chunk, abort_event)

            response = await self.provider.complete(messages, model=model)
            return AgentResponse(
                content=response.content,
                is_finished=self._is_finished(response.content, response.finish_reason),
                finish_reason=response.finish_reason,
                usage=response.usage,
            )
        except LLMEmptyResponseError as e:
            log.warning("LLM returned no choices", error=str(e))
            return AgentResponse(content=self._texts["no_response"])
        except Exception as e:
            log.error("LLM call failed", error=str(e))
            return AgentResponse(content=self._texts["unavailable"].format(error=e))

    async def _call_llm_streaming(
        self,
        messages: list[dict[str, str]],
        model: str | None,
        on_chunk: ChunkCallback,
        abort_event: asyncio.Event | None,
    ) -> AgentResponse:
        parts: list[str] = []
        finish_reason: str | None = None
        usage: LLMUsage | None = None

        async with aclosing(self.provider.complete_streaming(messages, model=model)) as stream:
            async for chunk in stream:
                if abort_event is not None and abort_event.is_set():
                    log.info("LLM stream cancelled")
                    return AgentResponse(content=self._texts["cancelled"], is_finished=True)
                if chunk.done:
                    finish_reason = chunk.finish_reason
                    usage = chunk.usage
                    break
                if chunk.content:
                    parts.append(chunk.content)
                    await self._emit_chunk(on_chunk, chunk.content)

        content = "".join(parts)
        return AgentResponse(
            content=content,
            is_finished=self._is_finished(content, finish_reason),
            finish_reason=finish_reason,
            usage=usage,
        )

    @staticmethod
    async def _emit_chunk(on_chunk: ChunkCallback, content: str) -> None:
        """Forward a content delta; callback errors do not abort the stream."""
        try:
            outcome = on_chunk(content)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            log.warning("Chunk callback failed", error=str(e))

    def get_session(self, session_id: str, user_id: str | None = None) -> SessionMemory | None:
        """Return the live memory of a session handled by this process."""
        return self.sessions.get(session_id, user_id)

    async def clear_session(self, session_id: str, user_id: str | None = None) -> None:
        await self.sessions.clear(session_id, user_id)

    @property
    def cancelled_message(self) -> str:
        return self._texts["cancelled"]

    def get_available_tools(self) -> list[Tool]:
        return self.registry.tools()

    async def close(self) -> None:
        """Flush pending history and release the tools this loop created.

        Injected registries and the provider stay open for their owner.
        """
        if self._owns_sessions:
            await self.sessions.close()
        if self._owns_registry:
            await self.registry.close()
