"""Provider runners and stream normalization."""

from podstream.runners.claude import ClaudeCliProvider, ClaudeStreamProcessor
from podstream.runners.ports import (
    CompleteEvent,
    ErrorEvent,
    NormalizedEvent,
    Provider,
    StreamCallback,
    TextEvent,
    ToolResultEvent,
    ToolUseEvent,
)

__all__ = [
    "ClaudeCliProvider",
    "ClaudeStreamProcessor",
    "CompleteEvent",
    "ErrorEvent",
    "NormalizedEvent",
    "Provider",
    "StreamCallback",
    "TextEvent",
    "ToolResultEvent",
    "ToolUseEvent",
]
