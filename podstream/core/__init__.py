"""Turn orchestration.

This package implements per-pod turn execution with:
- single-flight tracking and cooperative cancellation (registry)
- at-most-once retry for expired resumable sessions (policy)
- streaming snapshots for UI callers (streaming)

Storage and transport are injected via ports.
"""

from podstream.core.engine import TurnEngine

__all__ = ["TurnEngine"]
