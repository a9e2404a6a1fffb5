"""Consensus Event Models and in-memory event bus.

Events:
- RoundStarted: a round's adapter calls are about to be launched
- RoundEvaluated: a round has been scored
- ConsensusWarning: a round scored below warning_threshold
- SessionFinished: the session reached a terminal state

Every event carries phase_id, a per-session sequence number and a UTC
timestamp, and serializes to SSE via to_sse().
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsensusEvent(BaseModel):
    """Base class for all consensus events.

    Attributes:
        event_type: Event type identifier (set by subclasses)
        phase_id: Phase of the emitting session
        sequence: Event sequence number within the session
        timestamp: Event creation time (UTC)
    """

    model_config = ConfigDict(frozen=True)

    event_type: str = Field(..., description="Event type identifier")
    phase_id: str = Field(..., description="Phase identifier")
    sequence: int = Field(..., description="Event sequence number", ge=1)
    timestamp: datetime = Field(default_factory=_utcnow, description="Event timestamp")

    def to_sse(self) -> str:
        """Serialize event to SSE format.

        Returns:
            SSE-formatted string with event type and JSON data
        """
        data = self.model_dump(mode="json", exclude={"event_type"})
        return f"event: {self.event_type}\ndata: {json.dumps(data)}\n\n"


class RoundStarted(ConsensusEvent):
    """Emitted before the adapters of a round are invoked."""

    event_type: Literal["round_started"] = "round_started"
    round: int = Field(..., ge=1)
    agents: list[str] = Field(default_factory=list, description="Agents invoked this round")


class RoundEvaluated(ConsensusEvent):
    """Emitted once a round has been scored."""

    event_type: Literal["round_evaluated"] = "round_evaluated"
    round: int = Field(..., ge=1)
    consensus_score: float = Field(..., ge=0.0, le=1.0)
    per_category_score: dict[str, float] = Field(default_factory=dict)
    dropped_agents: list[str] = Field(default_factory=list)


class ConsensusWarning(ConsensusEvent):
    """Emitted whenever a round scores below warning_threshold."""

    event_type: Literal["consensus_warning"] = "consensus_warning"
    round: int = Field(..., ge=1)
    consensus_score: float = Field(..., ge=0.0, le=1.0)
    warning_threshold: float = Field(..., ge=0.0, le=1.0)


class SessionFinished(ConsensusEvent):
    """Emitted once when the session reaches a terminal state."""

    event_type: Literal["session_finished"] = "session_finished"
    final_state: str
    total_rounds: int = Field(..., ge=0)
    reason: str | None = None
    annotation: str = ""


# =============================================================================
# InMemoryEventBus
# =============================================================================


class InMemoryEventBus:
    """Fan-out event bus satisfying EventSinkProtocol.

    Keeps full history and delivers each event to every subscriber queue.
    Subscribers that join late can replay history first.
    """

    def __init__(self) -> None:
        self._history: list[ConsensusEvent] = []
        self._subscribers: list[asyncio.Queue[ConsensusEvent]] = []

    @property
    def history(self) -> tuple[ConsensusEvent, ...]:
        return tuple(self._history)

    def events_for(
        self,
        phase_id: str,
        event_type: str | None = None,
    ) -> list[ConsensusEvent]:
        """History filtered by phase and, optionally, event type."""
        return [
            e for e in self._history
            if e.phase_id == phase_id and (event_type is None or e.event_type == event_type)
        ]

    def subscribe(self, *, replay: bool = False) -> asyncio.Queue[ConsensusEvent]:
        """Register a subscriber queue.

        Args:
            replay: Pre-fill the queue with the existing history.
        """
        queue: asyncio.Queue[ConsensusEvent] = asyncio.Queue()
        if replay:
            for event in self._history:
                queue.put_nowait(event)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ConsensusEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    async def publish(self, event: ConsensusEvent) -> None:
        self._history.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)


__all__ = [
    "ConsensusEvent",
    "ConsensusWarning",
    "InMemoryEventBus",
    "RoundEvaluated",
    "RoundStarted",
    "SessionFinished",
]
