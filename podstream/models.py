"""Shared data structures."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union


@dataclass(frozen=True)
class PodSnapshot:
    """Read-only view of a pod as the engine needs it."""

    id: str
    workspace_path: str
    model: str
    repository_id: str | None = None
    claude_session_id: str | None = None
    output_style_id: str | None = None
    command_id: str | None = None
    mcp_server_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class PodLookup:
    canvas_id: str
    pod: PodSnapshot


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = "text"


@dataclass(frozen=True)
class ImageBlock:
    media_type: str
    base64_data: str
    type: str = "image"


ContentBlock = Union[TextBlock, ImageBlock]

# What a caller may send as one user turn.
MessageInput = Union[str, list[ContentBlock]]


@dataclass(frozen=True)
class ToolServer:
    """A configured MCP server: `config` is passed to the provider verbatim."""

    name: str
    config: dict


@dataclass
class ToolUseInfo:
    tool_use_id: str
    tool_name: str
    input: dict
    output: str | None = None

    def to_dict(self) -> dict:
        return {
            "toolUseId": self.tool_use_id,
            "toolName": self.tool_name,
            "input": self.input,
            "output": self.output,
        }


@dataclass
class AssistantReply:
    """Finalized result of one successful turn."""

    pod_id: str
    content: str
    tool_use: ToolUseInfo | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    role: str = "assistant"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class DisposableResult:
    success: bool
    content: str = ""
    error: str | None = None
