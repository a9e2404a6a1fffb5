"""RoundStore - In-memory round result storage.

Implements:
- Append-only persistence of RoundResult per phase
- Snapshot reads (tuples, never the live list)
- Thread-safe operations using threading.Lock
"""

import threading

from src.consensus.models import RoundResult


class InMemoryRoundStore:
    """In-memory round storage satisfying RoundStoreProtocol.

    Attributes:
        _rounds: Internal dictionary mapping phase IDs to round lists
        _lock: Threading lock for thread-safe operations
    """

    def __init__(self) -> None:
        """Initialize empty store with thread lock."""
        self._rounds: dict[str, list[RoundResult]] = {}
        self._lock = threading.Lock()

    async def persist_round(self, phase_id: str, result: RoundResult) -> None:
        """Append one round result for a phase.

        Args:
            phase_id: Phase identifier
            result: Evaluated round
        """
        with self._lock:
            self._rounds.setdefault(phase_id, []).append(result)

    def get_rounds(self, phase_id: str) -> tuple[RoundResult, ...]:
        """Rounds persisted for a phase, oldest first.

        Args:
            phase_id: Phase identifier

        Returns:
            Tuple of round results (empty if the phase is unknown)
        """
        with self._lock:
            return tuple(self._rounds.get(phase_id, ()))

    def list_phases(self) -> list[str]:
        """Phase IDs with at least one persisted round."""
        with self._lock:
            return list(self._rounds)

    def archive(self, phase_id: str) -> tuple[RoundResult, ...]:
        """Remove and return all rounds for a phase.

        Args:
            phase_id: Phase identifier

        Returns:
            The removed rounds
        """
        with self._lock:
            return tuple(self._rounds.pop(phase_id, ()))
