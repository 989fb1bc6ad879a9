"""Per-turn state shared by the stream processor and the engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from podstream.models import ToolUseInfo


class TurnPhase(enum.Enum):
    INIT = "init"
    STREAMING = "streaming"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class ToolCall:
    tool_name: str
    input: dict


@dataclass
class TurnState:
    """Accumulates state during one provider invocation."""

    start_time: datetime = field(default_factory=datetime.now)
    phase: TurnPhase = TurnPhase.INIT
    session_id: str | None = None
    text: str = ""

    # Every tool_use seen this turn, by id. Entries are never removed so late
    # results can still be correlated.
    active_tools: dict[str, ToolCall] = field(default_factory=dict)

    # Last tool_use seen; uncorrelated progress output attaches here.
    current_tool: ToolUseInfo | None = None

    # Summary text of a success result.
    result_text: str | None = None

    # Provider failure text from a non-success result.
    failure: str | None = None
    failure_subtype: str | None = None

    tool_count: int = 0
    cost: float = 0.0
    turns: int = 0
    tokens_total: int = 0
    provider_duration_s: float = 0.0

    @property
    def terminal(self) -> bool:
        return self.phase is TurnPhase.TERMINAL

    @property
    def duration_s(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()

    def advance(self, phase: TurnPhase) -> None:
        """Move forward through INIT -> STREAMING -> TERMINAL; never back."""
        order = list(TurnPhase)
        if order.index(phase) > order.index(self.phase):
            self.phase = phase

    def append_text(self, delta: str) -> None:
        self.text += delta
