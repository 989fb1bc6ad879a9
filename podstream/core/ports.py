"""Ports for the turn engine.

These interfaces keep the engine independent of storage (SQLite) and of the
transport that delivers events to clients.
"""

from __future__ import annotations

from typing import Protocol

from podstream.models import PodLookup
from podstream.runners.ports import NormalizedEvent


class PodStorePort(Protocol):
    def get_by_id_global(self, pod_id: str) -> PodLookup | None: ...


class SessionStorePort(Protocol):
    def set_claude_session_id(self, canvas_id: str, pod_id: str, session_id: str) -> None: ...


class MessageStorePort(Protocol):
    def upsert_message(self, canvas_id: str, pod_id: str, message: dict) -> None: ...


class EventSinkPort(Protocol):
    async def emit(self, canvas_id: str, pod_id: str, message_id: str, event: NormalizedEvent) -> None: ...
