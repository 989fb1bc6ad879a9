"""Active query registry.

Tracks at most one in-flight turn per pod id together with its cooperative
cancellation signal. Every method is synchronous, so no caller can interleave
with another between a lookup and a mutation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

log = logging.getLogger("registry")


@dataclass
class ActiveQuery:
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    connection_id: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class QueryRegistry:
    def __init__(self):
        self._active: dict[str, ActiveQuery] = {}

    def start(self, pod_id: str, handle: ActiveQuery) -> None:
        if pod_id in self._active:
            log.warning(f"Pod {pod_id} already has an active query; replacing it")
        self._active[pod_id] = handle

    def abort(self, pod_id: str) -> bool:
        """Signal the pod's turn to stop.

        Only the signal is set: the provider is left to unwind on its own so
        the turn's consumer sees a cancellation instead of a silent end.
        """
        handle = self._active.pop(pod_id, None)
        if handle is None:
            return False
        handle.cancel_event.set()
        log.info(f"Aborted query for pod {pod_id}")
        return True

    def end(self, pod_id: str) -> None:
        self._active.pop(pod_id, None)

    def is_active(self, pod_id: str) -> bool:
        return pod_id in self._active

    def get(self, pod_id: str) -> ActiveQuery | None:
        return self._active.get(pod_id)

    def abort_all(self) -> int:
        pod_ids = list(self._active)
        for pod_id in pod_ids:
            self.abort(pod_id)
        return len(pod_ids)

    def __len__(self) -> int:
        return len(self._active)
