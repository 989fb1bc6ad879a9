"""Streaming chat execution for UI-facing callers.

Wraps `TurnEngine.send_message` and keeps a persisted snapshot of the reply
up to date as events arrive. The reply is split into sub-messages: a tool
call that follows visible text starts a new sub-message, so a client can
render text and tool activity in the order they happened.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from podstream.core.engine import TurnEngine
from podstream.core.ports import EventSinkPort, MessageStorePort
from podstream.errors import TurnCancelledError
from podstream.models import MessageInput
from podstream.runners.ports import (
    CompleteEvent,
    ErrorEvent,
    NormalizedEvent,
    TextEvent,
    ToolResultEvent,
    ToolUseEvent,
)

log = logging.getLogger("streaming")

OnComplete = Callable[[str, str], Awaitable[None]]
OnError = Callable[[str, str, BaseException], Awaitable[None]]
OnAborted = Callable[[str, str, str], Awaitable[None]]


@dataclass
class SubMessageState:
    message_id: str
    content: str = ""
    sub_messages: list[dict] = field(default_factory=list)
    current_content: str = ""
    current_tools: list[dict] = field(default_factory=list)
    counter: int = 0

    @property
    def has_content(self) -> bool:
        return bool(self.content or self.sub_messages or self.current_content or self.current_tools)

    def _sub_message(self, index: int, *, clone: bool) -> dict:
        tools = copy.deepcopy(self.current_tools) if clone else list(self.current_tools)
        sub: dict = {"id": f"{self.message_id}-sub-{index}", "content": self.current_content}
        if tools:
            sub["toolUse"] = tools
        return sub

    def flush(self) -> None:
        if not self.current_content and not self.current_tools:
            return
        self.sub_messages.append(self._sub_message(self.counter, clone=False))
        self.counter += 1
        self.current_content = ""
        self.current_tools = []

    def add_text(self, text: str) -> None:
        self.content += text
        self.current_content += text

    def add_tool_use(self, event: ToolUseEvent) -> None:
        # Only split when there is visible text, to avoid empty sub-messages.
        if self.current_content.strip():
            self.flush()
        self.current_tools.append(
            {
                "toolUseId": event.tool_use_id,
                "toolName": event.tool_name,
                "input": event.input,
                "status": "completed",
            }
        )

    def add_tool_result(self, event: ToolResultEvent) -> None:
        for sub in self.sub_messages:
            for tool in sub.get("toolUse", []):
                if tool["toolUseId"] == event.tool_use_id:
                    tool["output"] = event.output
                    break
            else:
                continue
            break
        for tool in self.current_tools:
            if tool["toolUseId"] == event.tool_use_id:
                tool["output"] = event.output

    def snapshot(self) -> dict:
        """Deep copy of the reply so far, including unflushed content."""
        sub_messages = copy.deepcopy(self.sub_messages)
        if self.current_content or self.current_tools:
            sub_messages.append(self._sub_message(self.counter, clone=True))

        message: dict = {
            "id": self.message_id,
            "role": "assistant",
            "content": self.content,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if sub_messages:
            message["subMessages"] = sub_messages
        return message


@dataclass(frozen=True)
class StreamingChatResult:
    message_id: str
    content: str
    has_content: bool
    aborted: bool


class StreamingChatExecutor:
    def __init__(
        self,
        engine: TurnEngine,
        messages: MessageStorePort,
        events: EventSinkPort | None = None,
    ):
        self._engine = engine
        self._messages = messages
        self._events = events

    async def execute(
        self,
        canvas_id: str,
        pod_id: str,
        message: MessageInput,
        *,
        connection_id: str | None = None,
        support_abort: bool = True,
        on_complete: OnComplete | None = None,
        on_error: OnError | None = None,
        on_aborted: OnAborted | None = None,
    ) -> StreamingChatResult:
        message_id = str(uuid.uuid4())
        state = SubMessageState(message_id=message_id)

        def persist() -> None:
            self._messages.upsert_message(canvas_id, pod_id, state.snapshot())

        async def on_stream(event: NormalizedEvent) -> None:
            if isinstance(event, TextEvent):
                state.add_text(event.content)
                persist()
            elif isinstance(event, ToolUseEvent):
                state.add_tool_use(event)
                persist()
            elif isinstance(event, ToolResultEvent):
                state.add_tool_result(event)
                persist()
            elif isinstance(event, CompleteEvent):
                state.flush()
            elif isinstance(event, ErrorEvent):
                log.error(f"Pod {pod_id} streaming failed")

            if self._events is not None:
                await self._events.emit(canvas_id, pod_id, message_id, event)

        try:
            await self._engine.send_message(
                pod_id, message, on_stream, connection_id=connection_id
            )
        except TurnCancelledError:
            if not support_abort:
                raise
            state.flush()
            if state.has_content:
                persist()
            if on_aborted is not None:
                await on_aborted(canvas_id, pod_id, message_id)
            return StreamingChatResult(
                message_id=message_id,
                content=state.content,
                has_content=state.has_content,
                aborted=True,
            )
        except Exception as e:
            if on_error is not None:
                await on_error(canvas_id, pod_id, e)
            raise

        if state.has_content:
            persist()
        if on_complete is not None:
            await on_complete(canvas_id, pod_id)

        return StreamingChatResult(
            message_id=message_id,
            content=state.content,
            has_content=state.has_content,
            aborted=False,
        )
