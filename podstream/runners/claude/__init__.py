from podstream.runners.claude.processor import ClaudeStreamProcessor
from podstream.runners.claude.runner import ClaudeCliProvider

__all__ = ["ClaudeCliProvider", "ClaudeStreamProcessor"]
