"""Protocol definitions for consensus engine collaborators.

- AgentAdapterProtocol: black-box producer of one analysis per round
- EventSinkProtocol: consumer of RoundStarted/RoundEvaluated/... events
- RoundStoreProtocol: append-only persistence of round results

Uses @runtime_checkable for isinstance() support.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from src.consensus.events import ConsensusEvent
    from src.consensus.models import RoundContext, RoundResult


@runtime_checkable
class AgentAdapterProtocol(Protocol):
    """Protocol for agent adapters taking part in a consensus session.

    Adapters return raw text; the engine's extractor turns it into an
    AnalysisDocument. Raising any exception marks the attempt failed.

    Example:
        >>> class MyAdapter:
        ...     @property
        ...     def agent_id(self) -> str: ...
        ...     async def analyze(self, prompt, context) -> str: ...
        >>>
        >>> isinstance(MyAdapter(), AgentAdapterProtocol)
        True
    """

    @property
    def agent_id(self) -> str:
        """Unique identifier for this adapter instance."""
        ...

    async def analyze(self, prompt: str, context: RoundContext) -> str:
        """Produce one analysis for the given round.

        Args:
            prompt: The phase prompt, identical for every agent.
            context: Prior-round score and disagreement summary.

        Returns:
            Raw analysis text.
        """
        ...


@runtime_checkable
class EventSinkProtocol(Protocol):
    """Receives consensus events (event bus, SSE bridge, progress UI)."""

    async def publish(self, event: ConsensusEvent) -> None:
        """Deliver one event."""
        ...


@runtime_checkable
class RoundStoreProtocol(Protocol):
    """Append-only store for round results."""

    async def persist_round(self, phase_id: str, result: RoundResult) -> None:
        """Persist one evaluated round."""
        ...
