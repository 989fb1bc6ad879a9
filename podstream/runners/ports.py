"""Ports (interfaces) for runner implementations.

The rest of the system (engine, executor, CLI) should depend on these
contracts rather than concrete provider implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, ClassVar, Protocol, Sequence, Union

from podstream.errors import GENERIC_ERROR_MESSAGE
from podstream.models import ToolServer


@dataclass(frozen=True)
class TextEvent:
    type: ClassVar[str] = "text"
    content: str

    def to_dict(self) -> dict:
        return {"type": self.type, "content": self.content}


@dataclass(frozen=True)
class ToolUseEvent:
    type: ClassVar[str] = "tool_use"
    tool_use_id: str
    tool_name: str
    input: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "toolUseId": self.tool_use_id,
            "toolName": self.tool_name,
            "input": self.input,
        }


@dataclass(frozen=True)
class ToolResultEvent:
    type: ClassVar[str] = "tool_result"
    tool_use_id: str
    tool_name: str
    output: str

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "toolUseId": self.tool_use_id,
            "toolName": self.tool_name,
            "output": self.output,
        }


@dataclass(frozen=True)
class CompleteEvent:
    type: ClassVar[str] = "complete"

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    error: str = GENERIC_ERROR_MESSAGE

    def to_dict(self) -> dict:
        return {"type": self.type, "error": self.error}


NormalizedEvent = Union[TextEvent, ToolUseEvent, ToolResultEvent, CompleteEvent, ErrorEvent]

# Stream callbacks may be plain functions or coroutines.
StreamCallback = Callable[[NormalizedEvent], Union[None, Awaitable[None]]]

# Raw provider messages are JSON objects; a prompt is text or a stream of
# user messages.
ProviderMessage = dict[str, Any]
ProviderPrompt = Union[str, AsyncIterator[ProviderMessage]]


class Provider(Protocol):
    """Starts one agent query.

    `options.cancel_event` is the cooperative cancellation signal: once set,
    the provider is expected to stop and raise `TurnCancelledError`.
    """

    def __call__(self, prompt: ProviderPrompt, options: Any) -> AsyncIterator[ProviderMessage]:
        ...


class StyleLookup(Protocol):
    def get_content(self, style_id: str) -> str | None: ...


class ToolServerLookup(Protocol):
    def get_by_ids(self, ids: Sequence[str]) -> list[ToolServer]: ...
