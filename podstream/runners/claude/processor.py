"""Claude stream processing.

Turns validated provider messages into normalized events while keeping the
per-turn state current. Separates parsing concerns from provider
orchestration in `podstream.runners.claude.runner` and the engine.
"""

from __future__ import annotations

import logging

from podstream.models import ToolUseInfo
from podstream.runners.base import ToolCall, TurnPhase, TurnState
from podstream.runners.claude.messages import (
    AssistantMessage,
    ContentPart,
    ResultMessage,
    SystemMessage,
    ToolProgressMessage,
    UserMessage,
    ingest,
)
from podstream.runners.ports import (
    CompleteEvent,
    ErrorEvent,
    NormalizedEvent,
    TextEvent,
    ToolResultEvent,
    ToolUseEvent,
)

log = logging.getLogger("claude")


class ClaudeStreamProcessor:
    """Stateless handler set; all turn state lives in `TurnState`."""

    def _handle_system(self, message: SystemMessage, state: TurnState) -> list[NormalizedEvent]:
        if not message.is_init or not message.session_id:
            return []
        if state.session_id is None:
            state.session_id = message.session_id
        elif state.session_id != message.session_id:
            log.debug(f"Ignoring later session id {message.session_id}")
        state.advance(TurnPhase.STREAMING)
        return []

    def _handle_text(self, part: ContentPart, state: TurnState) -> NormalizedEvent | None:
        if not part.text:
            return None
        state.append_text(part.text)
        return TextEvent(part.text)

    def _handle_tool_use(self, part: ContentPart, state: TurnState) -> NormalizedEvent | None:
        if not part.id:
            log.debug("Dropping tool_use block without id")
            return None
        name = part.name or "unknown"
        state.tool_count += 1
        state.active_tools[part.id] = ToolCall(tool_name=name, input=part.input)
        state.current_tool = ToolUseInfo(
            tool_use_id=part.id,
            tool_name=name,
            input=part.input,
        )
        return ToolUseEvent(tool_use_id=part.id, tool_name=name, input=part.input)

    def _handle_assistant(self, message: AssistantMessage, state: TurnState) -> list[NormalizedEvent]:
        events: list[NormalizedEvent] = []
        for part in message.message.parts():
            result: NormalizedEvent | None = None
            if part.type == "text":
                result = self._handle_text(part, state)
            elif part.type == "tool_use":
                result = self._handle_tool_use(part, state)
            if result:
                events.append(result)
        return events

    def _record_output(self, tool_use_id: str, output: str, state: TurnState) -> NormalizedEvent | None:
        call = state.active_tools.get(tool_use_id)
        if call is None:
            log.debug(f"Dropping output for unknown tool {tool_use_id}")
            return None
        current = state.current_tool
        if current and current.tool_use_id == tool_use_id and current.output is None:
            current.output = output
        return ToolResultEvent(tool_use_id=tool_use_id, tool_name=call.tool_name, output=output)

    def _handle_user(self, message: UserMessage, state: TurnState) -> list[NormalizedEvent]:
        events: list[NormalizedEvent] = []
        for part in message.message.parts():
            if part.type != "tool_result" or not part.tool_use_id:
                continue
            result = self._record_output(part.tool_use_id, part.result_text(), state)
            if result:
                events.append(result)
        return events

    def _handle_tool_progress(self, message: ToolProgressMessage, state: TurnState) -> list[NormalizedEvent]:
        output = message.output_text
        if not output:
            return []

        tool_use_id = message.tool_use_id
        if tool_use_id and tool_use_id in state.active_tools:
            result = self._record_output(tool_use_id, output, state)
            return [result] if result else []

        # Uncorrelated progress: best guess is the most recent tool.
        current = state.current_tool
        if current is None:
            return []
        if current.output is None:
            current.output = output
        return [
            ToolResultEvent(
                tool_use_id=current.tool_use_id,
                tool_name=current.tool_name,
                output=output,
            )
        ]

    def _handle_result(self, message: ResultMessage, state: TurnState) -> list[NormalizedEvent]:
        state.advance(TurnPhase.TERMINAL)
        state.cost = float(message.total_cost_usd or 0.0)
        state.turns = int(message.num_turns or 0)
        state.tokens_total = message.total_tokens
        state.provider_duration_s = float(message.duration_ms or 0.0) / 1000

        if message.is_success:
            state.result_text = message.result
            if not state.text and message.result:
                state.append_text(message.result)
            return [CompleteEvent()]

        state.failure = message.error_text
        state.failure_subtype = message.subtype or None
        return [ErrorEvent()]

    def parse_event(self, raw: object, state: TurnState) -> list[NormalizedEvent]:
        """Process one raw provider message in arrival order."""
        if state.terminal:
            return []

        message = ingest(raw)
        if message is None:
            return []

        if isinstance(message, SystemMessage):
            return self._handle_system(message, state)

        state.advance(TurnPhase.STREAMING)
        if isinstance(message, AssistantMessage):
            return self._handle_assistant(message, state)
        if isinstance(message, UserMessage):
            return self._handle_user(message, state)
        if isinstance(message, ToolProgressMessage):
            return self._handle_tool_progress(message, state)
        if isinstance(message, ResultMessage):
            return self._handle_result(message, state)

        return []

    def summary(self, state: TurnState) -> str:
        """One-line run summary for the server log."""
        tokens_k = state.tokens_total / 1000
        return (
            f"[{state.turns}t {state.tool_count}tools ${state.cost:.3f}"
            f" {state.provider_duration_s:.1f}s | {tokens_k:.1f}k tok]"
        )
