"""Shared runner pipeline helpers.

Reads newline-delimited JSON from a provider's stdout while watching a
cooperative cancellation event. Non-JSON lines (CLI warnings, stderr) are
kept for diagnostics instead of being parsed.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import AsyncIterator

from podstream.errors import TurnCancelledError

MAX_NON_JSON_LINES = 50


@dataclass
class JSONLineStats:
    emitted_any: bool = False
    saw_result: bool = False
    non_json_lines: list[str] = field(default_factory=list)


async def iter_json_lines(
    stream: asyncio.StreamReader,
    *,
    cancel_event: asyncio.Event,
    stats: JSONLineStats,
) -> AsyncIterator[dict]:
    """Yield JSON objects line by line until EOF.

    Raises `TurnCancelledError` as soon as `cancel_event` is set, even while
    blocked waiting for the next line.
    """
    cancel_wait = asyncio.ensure_future(cancel_event.wait())
    try:
        while True:
            read = asyncio.ensure_future(stream.readline())
            done, _ = await asyncio.wait(
                {read, cancel_wait}, return_when=asyncio.FIRST_COMPLETED
            )
            if cancel_wait in done:
                read.cancel()
                raise TurnCancelledError()

            raw_line = read.result()
            if not raw_line:
                break

            line = raw_line.decode(errors="replace").strip()
            if not line:
                continue

            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                if len(stats.non_json_lines) < MAX_NON_JSON_LINES:
                    stats.non_json_lines.append(line)
                continue

            if not isinstance(event, dict):
                continue

            stats.emitted_any = True
            if event.get("type") == "result":
                stats.saw_result = True
            yield event
    finally:
        cancel_wait.cancel()
