"""Engine exceptions.

These exception types let callers tell a user cancellation apart from a
provider failure without scraping strings.
"""

from __future__ import annotations

# Shown to end users in place of any raw provider text.
GENERIC_ERROR_MESSAGE = "與 Claude 通訊時發生錯誤，請稍後再試"


class TurnError(RuntimeError):
    """Base class for turn engine errors."""


class TurnCancelledError(TurnError):
    """The turn was aborted through its cancellation signal."""

    def __init__(self, message: str = "Query was aborted"):
        super().__init__(message)


class ProviderError(TurnError):
    """The provider reported a failure or its stream raised."""

    def __init__(self, message: str, *, subtype: str | None = None):
        self.message = message or "Unknown error"
        self.subtype = subtype
        super().__init__(self.message)


class PathTraversalError(TurnError):
    """A pod's repository id resolves outside the repositories root."""

    def __init__(self, repository_id: str, *, root: str):
        self.repository_id = repository_id
        self.root = root
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"Working directory escapes repositories root: {self.repository_id}"


class PodNotFoundError(TurnError):
    """No pod with the given id exists."""

    def __init__(self, pod_id: str):
        self.pod_id = pod_id
        super().__init__(f"Pod {pod_id} not found")


def is_cancellation(error: BaseException) -> bool:
    return isinstance(error, TurnCancelledError)


def error_text(error: BaseException) -> str:
    if isinstance(error, ProviderError):
        return error.message
    text = str(error)
    return text or type(error).__name__
