"""Claude stream-json message models.

Every raw message from the provider is validated once here into one of a
closed set of models discriminated by `type`. Unknown kinds are dropped at
this boundary so the processor only ever sees known shapes.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

log = logging.getLogger("claude")


class _Message(BaseModel):
    # Providers add fields between releases; keep them instead of failing.
    model_config = ConfigDict(extra="allow")


class ContentPart(_Message):
    """One block inside an assistant or user message."""

    type: str
    text: str | None = None

    # tool_use
    id: str | None = None
    name: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)

    # tool_result
    tool_use_id: str | None = None
    content: str | list[Any] | None = None

    def result_text(self) -> str:
        """Flatten tool_result content to a string."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts: list[str] = []
        for item in self.content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
        return "\n".join(parts)


class MessageBody(_Message):
    role: str | None = None
    content: str | list[ContentPart] = Field(default_factory=list)

    def parts(self) -> list[ContentPart]:
        if isinstance(self.content, str):
            return [ContentPart(type="text", text=self.content)] if self.content else []
        return self.content


class SystemMessage(_Message):
    type: Literal["system"]
    subtype: str = ""
    session_id: str | None = None

    @property
    def is_init(self) -> bool:
        return self.subtype == "init"


class AssistantMessage(_Message):
    type: Literal["assistant"]
    message: MessageBody = Field(default_factory=MessageBody)
    session_id: str | None = None


class UserMessage(_Message):
    type: Literal["user"]
    message: MessageBody = Field(default_factory=MessageBody)
    session_id: str | None = None


class ToolProgressMessage(_Message):
    type: Literal["tool_progress"]
    tool_use_id: str | None = None
    output: str | None = None
    result: str | None = None

    @property
    def output_text(self) -> str:
        return self.output or self.result or ""


class ResultMessage(_Message):
    type: Literal["result"]
    subtype: str = ""
    is_error: bool = False
    result: str | None = None
    errors: list[str] = Field(default_factory=list)
    session_id: str | None = None
    total_cost_usd: float = 0.0
    num_turns: int = 0
    duration_ms: float = 0.0
    usage: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.subtype == "success" and not self.is_error

    @property
    def error_text(self) -> str:
        if self.errors:
            return ", ".join(self.errors)
        return self.result or "Unknown error"

    @property
    def total_tokens(self) -> int:
        total = 0
        for key in (
            "input_tokens",
            "cache_creation_input_tokens",
            "cache_read_input_tokens",
            "output_tokens",
        ):
            value = self.usage.get(key)
            if isinstance(value, (int, float)):
                total += int(value)
        return total


class StreamEventMessage(_Message):
    """Partial-message deltas; the engine relies on full assistant messages."""

    type: Literal["stream_event"]
    event: dict[str, Any] = Field(default_factory=dict)


ProviderMessageModel = Annotated[
    Union[
        SystemMessage,
        AssistantMessage,
        UserMessage,
        ToolProgressMessage,
        ResultMessage,
        StreamEventMessage,
    ],
    Field(discriminator="type"),
]

KNOWN_TYPES = frozenset(
    {"system", "assistant", "user", "tool_progress", "result", "stream_event"}
)

_adapter: TypeAdapter[ProviderMessageModel] = TypeAdapter(ProviderMessageModel)


def ingest(raw: object) -> ProviderMessageModel | None:
    """Validate one raw provider message, or return None to drop it."""
    if not isinstance(raw, dict):
        log.debug(f"Dropping non-object provider message: {type(raw).__name__}")
        return None

    kind = raw.get("type")
    if kind not in KNOWN_TYPES:
        log.debug(f"Dropping provider message of unknown type {kind!r}")
        return None

    try:
        return _adapter.validate_python(raw)
    except ValidationError as e:
        log.warning(f"Dropping malformed {kind} message: {e.error_count()} error(s)")
        return None
