"""Retry and error policy for turns."""

from __future__ import annotations

from podstream.errors import PathTraversalError, PodNotFoundError, error_text, is_cancellation

# One first attempt plus at most one session-expired retry.
MAX_ATTEMPTS = 2

_SESSION_MARKERS = ("session", "resume")


def looks_like_session_error(error: BaseException) -> bool:
    message = error_text(error)
    return any(marker in message for marker in _SESSION_MARKERS)


def should_retry_session(
    error: BaseException,
    previous_session_id: str | None,
    attempt: int,
) -> bool:
    """True only for a first-attempt resume failure on a pod with a session.

    `attempt` is 1-based.
    """
    if is_cancellation(error):
        return False
    # Raised before the provider runs; never a resume problem.
    if isinstance(error, (PathTraversalError, PodNotFoundError)):
        return False
    if attempt >= MAX_ATTEMPTS:
        return False
    if not previous_session_id:
        return False
    return looks_like_session_error(error)
