"""Round Controller: the consensus round-escalation state machine.

States: IN_PROGRESS → {CONSENSUS_REACHED, MAX_ROUNDS_EXHAUSTED,
HUMAN_REVIEW_REQUIRED}. All three outcomes are terminal.

Rules evaluated after round r is appended:
1. score < warning_threshold → warning (never stops the session)
2. r < min_rounds → continue, even on a high score
3. score >= threshold → CONSENSUS_REACHED
4. r >= max_rounds → MAX_ROUNDS_EXHAUSTED
5. r > min_rounds and |score_r - score_(r-1)| < stagnation_threshold
   → HUMAN_REVIEW_REQUIRED (stagnation)
6. otherwise continue

The session's round log is append-only and owned by one controller;
readers get SessionSnapshot copies only.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from src.consensus.config import SessionConfig
from src.consensus.models import (
    FinalState,
    ReviewReason,
    RoundResult,
    SessionSnapshot,
)
from src.core.exceptions import ConsensusConfigError, SessionClosedError
from src.core.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Decision
# =============================================================================


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of applying the transition rules to the latest round.

    Attributes:
        state: State the session moves to (IN_PROGRESS means run another round)
        warning: True when the round scored below warning_threshold
        reason: Reason code for HUMAN_REVIEW_REQUIRED
        delta: Score change from the previous round, if computed
    """

    state: FinalState
    warning: bool = False
    reason: ReviewReason | None = None
    delta: float | None = None

    @property
    def should_continue(self) -> bool:
        return self.state is FinalState.IN_PROGRESS


def decide(config: SessionConfig, rounds: Sequence[RoundResult]) -> Decision:
    """Apply the transition rules after the last round in ``rounds``.

    Args:
        config: Session thresholds and round limits.
        rounds: All rounds so far, oldest first (at least one).

    Returns:
        Decision for the session.
    """
    if not rounds:
        raise ValueError("decide() needs at least one round")

    r = len(rounds)
    score = rounds[-1].consensus_score
    warning = score < config.warning_threshold
    delta = score - rounds[-2].consensus_score if r > 1 else None

    if r < config.min_rounds:
        return Decision(FinalState.IN_PROGRESS, warning=warning, delta=delta)

    if score >= config.threshold:
        return Decision(FinalState.CONSENSUS_REACHED, warning=warning, delta=delta)

    if r >= config.max_rounds:
        return Decision(FinalState.MAX_ROUNDS_EXHAUSTED, warning=warning, delta=delta)

    if delta is not None and r > config.min_rounds and abs(delta) < config.stagnation_threshold:
        return Decision(
            FinalState.HUMAN_REVIEW_REQUIRED,
            warning=warning,
            reason=ReviewReason.STAGNATION,
            delta=delta,
        )

    return Decision(FinalState.IN_PROGRESS, warning=warning, delta=delta)


# =============================================================================
# ConsensusSession
# =============================================================================


class ConsensusSession:
    """Append-only round log and lifecycle state for one phase invocation."""

    def __init__(self, phase_id: str, config: SessionConfig) -> None:
        self._phase_id = phase_id
        self._config = config
        self._rounds: list[RoundResult] = []
        self._state = FinalState.IN_PROGRESS
        self._reason: ReviewReason | None = None
        self._annotation = ""

    @property
    def phase_id(self) -> str:
        return self._phase_id

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def final_state(self) -> FinalState:
        return self._state

    @property
    def rounds(self) -> tuple[RoundResult, ...]:
        """Copy of the round log."""
        return tuple(self._rounds)

    def append(self, result: RoundResult) -> None:
        """Append the next round result.

        Raises:
            SessionClosedError: If the session is already terminal.
            ConsensusConfigError: If the round number is out of sequence.
        """
        self._ensure_open()
        expected = len(self._rounds) + 1
        if result.round != expected:
            raise ConsensusConfigError(
                f"Expected round {expected}, got {result.round}",
                errors=[{"field": "round", "value": result.round, "message": f"expected {expected}"}],
                phase_id=self._phase_id,
            )
        self._rounds.append(result)

    def finish(
        self,
        state: FinalState,
        reason: ReviewReason | None = None,
        annotation: str = "",
    ) -> None:
        """Move the session to a terminal state.

        Raises:
            SessionClosedError: If the session is already terminal.
            ValueError: If state is not terminal, or a HUMAN_REVIEW_REQUIRED
                transition lacks a reason code.
        """
        self._ensure_open()
        if not state.is_terminal:
            raise ValueError("finish() requires a terminal state")
        if state is FinalState.HUMAN_REVIEW_REQUIRED and reason is None:
            raise ValueError("HUMAN_REVIEW_REQUIRED requires a reason code")
        self._state = state
        self._reason = reason
        self._annotation = annotation

    def snapshot(self) -> SessionSnapshot:
        """Immutable view of the session."""
        return SessionSnapshot(
            phase_id=self._phase_id,
            config=self._config,
            rounds=tuple(self._rounds),
            final_state=self._state,
            reason=self._reason,
            annotation=self._annotation,
        )

    def _ensure_open(self) -> None:
        if self._state.is_terminal:
            raise SessionClosedError(
                f"Session {self._phase_id!r} is closed ({self._state.value})",
                phase_id=self._phase_id,
            )


# =============================================================================
# RoundController
# =============================================================================


class RoundController:
    """Drives a ConsensusSession through the transition rules.

    Example:
        >>> controller = RoundController("analyze", SessionConfig())
        >>> decision = controller.record_round(result)
        >>> if decision.should_continue:
        ...     ...  # run the next round
    """

    def __init__(self, phase_id: str, config: SessionConfig) -> None:
        self._session = ConsensusSession(phase_id, config)
        self._log = logger.bind(phase_id=phase_id)

    @property
    def session(self) -> ConsensusSession:
        return self._session

    @property
    def next_round(self) -> int:
        return len(self._session.rounds) + 1

    @property
    def is_finished(self) -> bool:
        return self._session.final_state.is_terminal

    def record_round(self, result: RoundResult) -> Decision:
        """Append a round result and apply the transition rules.

        Args:
            result: Evaluation of the next round.

        Returns:
            The Decision; terminal decisions are applied to the session.
        """
        self._session.append(result)
        decision = decide(self._session.config, self._session.rounds)

        if decision.warning:
            self._log.warning(
                "consensus_below_warning_threshold",
                round=result.round,
                consensus_score=result.consensus_score,
                warning_threshold=self._session.config.warning_threshold,
            )

        if not decision.should_continue:
            annotation = ""
            if decision.reason is ReviewReason.STAGNATION:
                annotation = (
                    f"score changed by {decision.delta:+.4f} in round {result.round}, "
                    f"below stagnation threshold {self._session.config.stagnation_threshold}"
                )
            self._session.finish(decision.state, decision.reason, annotation)
            self._log.info(
                "session_finished",
                final_state=decision.state.value,
                reason=decision.reason.value if decision.reason else None,
                total_rounds=result.round,
            )
        else:
            self._log.debug("round_continues", round=result.round, delta=decision.delta)

        return decision

    def fail(self, reason: ReviewReason, annotation: str) -> None:
        """Escalate to HUMAN_REVIEW_REQUIRED outside the score rules.

        Used for insufficient agents and cancellation.
        """
        self._session.finish(FinalState.HUMAN_REVIEW_REQUIRED, reason, annotation)
        self._log.warning("session_escalated", reason=reason.value, annotation=annotation)

    def snapshot(self) -> SessionSnapshot:
        return self._session.snapshot()
