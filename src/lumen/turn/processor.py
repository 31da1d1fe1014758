"""
Turn Processor: one user input in, one finalized assistant message out.

Flow of a turn:
1. Single-flight guard (a second turn while one is running is a no-op)
2. Record the conversation start time, append the user message
3. Memory bookkeeping (tier creation) when memory is enabled
4. Assemble [system prompt, memory block?, ...transcript] (+ vision parts)
5. Call the chat service with streaming, forwarding partial text
6. If the model asked for tools: run them once, make one follow-up call
7. Append the assistant message, emit the result, run memory cleanup

Failures are logged and reported through Signal.ERROR. TURN_END is always
emitted. The user message stays in the transcript even when a turn fails.
"""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

from lumen.core.errors import UnresolvedToolCallError
from lumen.core.logging import TurnTimer
from lumen.core.metrics import metrics
from lumen.core.signals import Signal, SignalBus
from lumen.llm.contracts import (
    ChatMessage,
    ChatResponseLength,
    Completion,
    ImagePart,
    Message,
    StopReason,
    TextBlock,
    TextPart,
    ToolCallMessage,
    ToolResultBlock,
    ToolResultMessage,
    ToolUseBlock,
    VisionMessage,
    max_tokens_for_length,
)
from lumen.llm.screenplay import Screenplay, text_to_screenplay
from lumen.memory.manager import MemoryManager
from lumen.providers.base import ChatService
from lumen.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_VISION_PROMPT = (
    "You are a friendly AI avatar. Comment on the situation based on the broadcast screen."
)

ModelCall = Callable[[Sequence[ChatMessage]], Awaitable[Completion]]


@dataclass(frozen=True)
class TurnOptions:
    system_prompt: str = ""
    vision_system_prompt: str | None = None
    vision_prompt: str | None = None
    use_memory: bool = True
    memory_note: str | None = None
    max_tokens: int | None = None
    response_length: ChatResponseLength | str | None = None
    vision_max_tokens: int | None = None
    vision_response_length: ChatResponseLength | str | None = None

    @classmethod
    def from_config(cls, chat_config: Any) -> TurnOptions:
        """Build options from a lumen.core.config.ChatConfig section."""
        return cls(
            system_prompt=chat_config.system_prompt,
            vision_system_prompt=chat_config.vision_system_prompt,
            vision_prompt=chat_config.vision_prompt,
            use_memory=chat_config.use_memory,
            memory_note=chat_config.memory_note,
            max_tokens=chat_config.max_tokens,
            response_length=chat_config.response_length,
            vision_max_tokens=chat_config.vision_max_tokens,
            vision_response_length=chat_config.vision_response_length,
        )


@dataclass(frozen=True)
class TurnResult:
    message: Message
    screenplay: Screenplay
    completion: Completion
    tool_uses: list[ToolUseBlock] = field(default_factory=list)
    tool_results: list[ToolResultBlock] = field(default_factory=list)
    vision_source: str | None = None


class TurnProcessor:
    """
    Drives conversational turns over one chat service.

    Owns the transcript. Only one turn runs at a time, so the transcript
    and the memory record set never see concurrent writers.
    """

    def __init__(
        self,
        chat_service: ChatService,
        options: TurnOptions,
        memory_manager: MemoryManager | None = None,
        tool_executor: ToolExecutor | None = None,
        signals: SignalBus | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.chat_service = chat_service
        self.options = options
        self.memory_manager = memory_manager
        self.tool_executor = tool_executor
        self.signals = signals or SignalBus()
        self._clock = clock
        self._chat_log: list[Message] = []
        self._chat_start_time: float | None = None
        self._processing = False

    # --- Transcript ---

    def add_to_chat_log(self, message: Message) -> None:
        self._chat_log.append(message)
        self.signals.emit(Signal.CHAT_LOG_UPDATED, self.get_chat_log())

    def get_chat_log(self) -> list[Message]:
        return list(self._chat_log)

    def clear_chat_log(self) -> None:
        self._chat_log = []
        self.signals.emit(Signal.CHAT_LOG_UPDATED, [])

    def set_chat_log(self, messages: Sequence[Message]) -> None:
        self._chat_log = list(messages)
        self.signals.emit(Signal.CHAT_LOG_UPDATED, self.get_chat_log())

    @property
    def chat_start_time(self) -> float | None:
        return self._chat_start_time

    @chat_start_time.setter
    def chat_start_time(self, value: float | None) -> None:
        self._chat_start_time = value

    @property
    def is_processing(self) -> bool:
        return self._processing

    def update_options(self, **changes: Any) -> None:
        self.options = dataclasses.replace(self.options, **changes)

    # --- Turns ---

    async def process_text_chat(
        self, text: str, chat_type: str = "chat_form"
    ) -> TurnResult | None:
        if self._processing:
            logger.warning("Another turn is in progress, ignoring %s input", chat_type)
            return None
        self._processing = True
        turn_id = uuid.uuid4().hex[:12]
        self.signals.emit(Signal.TURN_START, {"type": chat_type, "text": text, "turn_id": turn_id})

        try:
            timer = TurnTimer()
            start_time = self._ensure_start_time()
            self.add_to_chat_log(Message(role="user", content=text, timestamp=self._clock()))
            await self._memory_bookkeeping(start_time)
            timer.mark("memory")

            max_tokens = self._max_tokens_for_chat()

            async def call(messages: Sequence[ChatMessage]) -> Completion:
                return await self.chat_service.chat_once(
                    messages, True, self._forward_partial, max_tokens
                )

            return await self._complete(self._prepare_messages(), call, None, timer, turn_id)
        except Exception as e:
            self._fail(e, turn_id)
            return None
        finally:
            self._processing = False
            self.signals.emit(Signal.TURN_END, {"turn_id": turn_id})

    async def process_vision_chat(self, image_url: str) -> TurnResult | None:
        if self._processing:
            logger.warning("Another turn is in progress, ignoring vision input")
            return None
        self._processing = True
        turn_id = uuid.uuid4().hex[:12]
        self.signals.emit(
            Signal.TURN_START, {"type": "vision", "image_url": image_url, "turn_id": turn_id}
        )

        try:
            timer = TurnTimer()
            start_time = self._ensure_start_time()
            await self._memory_bookkeeping(start_time)
            timer.mark("memory")

            messages: list[ChatMessage] = list(self._prepare_messages())
            if self.options.vision_system_prompt:
                messages.append(Message(role="system", content=self.options.vision_system_prompt))
            messages.append(
                VisionMessage(
                    role="user",
                    content=(
                        TextPart(self.options.vision_prompt or DEFAULT_VISION_PROMPT),
                        ImagePart(url=image_url, detail="low"),
                    ),
                )
            )
            max_tokens = self._max_tokens_for_vision()

            async def call(msgs: Sequence[ChatMessage]) -> Completion:
                return await self.chat_service.vision_chat_once(
                    msgs, True, self._forward_partial, max_tokens
                )

            return await self._complete(messages, call, image_url, timer, turn_id)
        except Exception as e:
            self._fail(e, turn_id)
            return None
        finally:
            self._processing = False
            self.signals.emit(Signal.TURN_END, {"turn_id": turn_id})

    # --- Steps ---

    def _ensure_start_time(self) -> float:
        if self._chat_start_time is None:
            self._chat_start_time = self._clock()
        return self._chat_start_time

    async def _memory_bookkeeping(self, start_time: float) -> None:
        if not (self.options.use_memory and self.memory_manager):
            return
        await self.memory_manager.create_memory_if_needed(self.get_chat_log(), start_time)

    def _prepare_messages(self) -> list[ChatMessage]:
        messages: list[ChatMessage] = []
        if self.options.system_prompt:
            messages.append(Message(role="system", content=self.options.system_prompt))

        if self.options.use_memory and self.memory_manager:
            memory_text = self.memory_manager.get_memory_for_prompt()
            if memory_text:
                if self.options.memory_note:
                    memory_text = f"{memory_text}\n\n{self.options.memory_note}"
                messages.append(Message(role="system", content=memory_text))

        messages.extend(m for m in self._chat_log if m.content.strip())
        return messages

    def _max_tokens_for_chat(self) -> int | None:
        if self.options.max_tokens is not None:
            return self.options.max_tokens
        # None -> provider default
        return max_tokens_for_length(self.options.response_length)

    def _max_tokens_for_vision(self) -> int | None:
        if self.options.vision_max_tokens is not None:
            return self.options.vision_max_tokens
        preset = max_tokens_for_length(self.options.vision_response_length)
        if preset is not None:
            return preset
        return self._max_tokens_for_chat()

    def _forward_partial(self, text: str) -> None:
        self.signals.emit(Signal.PARTIAL_TEXT, text)

    async def _complete(
        self,
        messages: Sequence[ChatMessage],
        call: ModelCall,
        vision_source: str | None,
        timer: TurnTimer,
        turn_id: str,
    ) -> TurnResult:
        completion = await call(messages)
        tool_uses: list[ToolUseBlock] = []
        tool_results: list[ToolResultBlock] = []
        if completion.stop_reason is StopReason.TOOL_USE:
            completion, tool_uses, tool_results = await self._resolve_tools(
                messages, completion, call, turn_id
            )
        timer.mark("llm")

        full = "".join(
            b.text if isinstance(b, TextBlock) else b.content
            for b in completion.blocks
            if isinstance(b, (TextBlock, ToolResultBlock))
        )
        message = Message(role="assistant", content=full, timestamp=self._clock())
        self.add_to_chat_log(message)

        result = TurnResult(
            message=message,
            screenplay=text_to_screenplay(full),
            completion=completion,
            tool_uses=tool_uses,
            tool_results=tool_results,
            vision_source=vision_source,
        )
        self.signals.emit(Signal.ASSISTANT_RESPONSE, result)

        if self.memory_manager:
            await self.memory_manager.cleanup_old_memories()
        timer.mark("cleanup")

        metrics.inc("turn.completed")
        metrics.observe("turn.latency_ms", timer.total() * 1000)
        logger.info(
            "Turn %s: %s",
            turn_id,
            timer.summary(),
            extra={
                "turn_id": turn_id,
                "provider": self.chat_service.provider,
                "duration_ms": round(timer.total() * 1000),
            },
        )
        return result

    async def _resolve_tools(
        self,
        messages: Sequence[ChatMessage],
        completion: Completion,
        call: ModelCall,
        turn_id: str,
    ) -> tuple[Completion, list[ToolUseBlock], list[ToolResultBlock]]:
        """Run the requested tools once and make a single follow-up call."""
        uses = completion.tool_uses
        names = ", ".join(u.name for u in uses)
        if self.tool_executor is None:
            raise UnresolvedToolCallError(
                f"Model requested tools ({names}) but no tool executor is attached"
            )

        logger.info("Turn %s: running tools %s", turn_id, names, extra={"turn_id": turn_id})
        self.signals.emit(Signal.TOOL_USE, uses)
        results = await self.tool_executor.run(uses)
        self.signals.emit(Signal.TOOL_RESULT, results)

        follow_up = [
            *messages,
            ToolCallMessage(tool_uses=tuple(uses), text=completion.text),
            ToolResultMessage(results=tuple(results)),
        ]
        final = await call(follow_up)
        if final.stop_reason is StopReason.TOOL_USE:
            again = ", ".join(u.name for u in final.tool_uses)
            raise UnresolvedToolCallError(
                f"Model requested more tools ({again}) after its tool results; "
                "only one tool round is resolved per turn"
            )
        return final, uses, results

    def _fail(self, error: Exception, turn_id: str) -> None:
        metrics.inc("turn.failed")
        logger.error(
            "Turn %s failed: %s",
            turn_id,
            error,
            exc_info=True,
            extra={"turn_id": turn_id, "status": "error"},
        )
        self.signals.emit(Signal.ERROR, error)
