"""Agent turn streaming engine for pods."""

from podstream.core.engine import TurnEngine
from podstream.core.registry import ActiveQuery, QueryRegistry
from podstream.core.streaming import StreamingChatExecutor, StreamingChatResult
from podstream.errors import (
    GENERIC_ERROR_MESSAGE,
    PathTraversalError,
    PodNotFoundError,
    ProviderError,
    TurnCancelledError,
    TurnError,
)
from podstream.models import (
    AssistantReply,
    DisposableResult,
    ImageBlock,
    PodLookup,
    PodSnapshot,
    TextBlock,
    ToolServer,
    ToolUseInfo,
)

__all__ = [
    "TurnEngine",
    "ActiveQuery",
    "QueryRegistry",
    "StreamingChatExecutor",
    "StreamingChatResult",
    "GENERIC_ERROR_MESSAGE",
    "PathTraversalError",
    "PodNotFoundError",
    "ProviderError",
    "TurnCancelledError",
    "TurnError",
    "AssistantReply",
    "DisposableResult",
    "ImageBlock",
    "PodLookup",
    "PodSnapshot",
    "TextBlock",
    "ToolServer",
    "ToolUseInfo",
]
