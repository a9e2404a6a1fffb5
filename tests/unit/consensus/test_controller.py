"""Unit tests for the Round Controller state machine.

Exit Criteria:
- min_rounds floor beats early success
- Stagnation after min_rounds → HUMAN_REVIEW_REQUIRED(stagnation)
- Round cap → MAX_ROUNDS_EXHAUSTED
- Score >= threshold after min_rounds → CONSENSUS_REACHED
- Warning flagged whenever score < warning_threshold
- Terminal sessions reject further changes
"""

from __future__ import annotations

import pytest

from src.consensus.config import SessionConfig
from src.consensus.controller import ConsensusSession, RoundController, decide
from src.consensus.models import FinalState, ReviewReason, RoundResult
from src.core.constants import CATEGORIES
from src.core.exceptions import ConsensusConfigError, SessionClosedError


def _result(round_no: int, score: float) -> RoundResult:
    return RoundResult(
        round=round_no,
        per_category_score={c: score for c in CATEGORIES},
        consensus_score=score,
        agent_documents=(),
    )


def _rounds(*scores: float) -> list[RoundResult]:
    return [_result(i, s) for i, s in enumerate(scores, start=1)]


def _run(controller: RoundController, *scores: float):
    decisions = []
    for i, score in enumerate(scores, start=1):
        decisions.append(controller.record_round(_result(i, score)))
        if controller.is_finished:
            break
    return decisions


# =============================================================================
# decide()
# =============================================================================


class TestDecide:
    """Pure transition rules."""

    def test_min_rounds_floor_beats_early_success(self) -> None:
        config = SessionConfig(threshold=0.5, min_rounds=2)

        decision = decide(config, _rounds(0.95))

        assert decision.should_continue
        assert decision.state is FinalState.IN_PROGRESS

    def test_consensus_reached_once_floor_met(self) -> None:
        config = SessionConfig(threshold=0.5, min_rounds=2)

        decision = decide(config, _rounds(0.95, 0.95))

        assert decision.state is FinalState.CONSENSUS_REACHED

    def test_threshold_is_inclusive(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=1)

        assert decide(config, _rounds(0.9)).state is FinalState.CONSENSUS_REACHED

    def test_stagnation_triggers_human_review(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=2, stagnation_threshold=0.02)

        decision = decide(config, _rounds(0.40, 0.60, 0.605))

        assert decision.state is FinalState.HUMAN_REVIEW_REQUIRED
        assert decision.reason is ReviewReason.STAGNATION
        assert decision.delta == pytest.approx(0.005)

    def test_stagnation_not_checked_at_min_rounds(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=2, stagnation_threshold=0.02)

        # delta 0.0 at round 2 == min_rounds: not yet eligible
        assert decide(config, _rounds(0.5, 0.5)).should_continue

    def test_regression_counts_as_stagnation_when_small(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=1, stagnation_threshold=0.02)

        decision = decide(config, _rounds(0.60, 0.59))

        assert decision.reason is ReviewReason.STAGNATION

    def test_large_regression_continues(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=1, stagnation_threshold=0.02)

        assert decide(config, _rounds(0.60, 0.40)).should_continue

    def test_first_round_skips_stagnation(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=1, max_rounds=3)

        decision = decide(config, _rounds(0.5))

        assert decision.should_continue
        assert decision.delta is None

    def test_max_rounds_exhausted(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=2, max_rounds=3)

        decision = decide(config, _rounds(0.5, 0.6, 0.65))

        assert decision.state is FinalState.MAX_ROUNDS_EXHAUSTED

    def test_max_rounds_checked_before_stagnation(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=2, max_rounds=3)

        decision = decide(config, _rounds(0.5, 0.6, 0.6))

        assert decision.state is FinalState.MAX_ROUNDS_EXHAUSTED

    def test_warning_below_threshold(self) -> None:
        config = SessionConfig(warning_threshold=0.30)

        assert decide(config, _rounds(0.25)).warning is True
        assert decide(config, _rounds(0.30)).warning is False

    def test_warning_does_not_stop_session(self) -> None:
        config = SessionConfig(warning_threshold=0.30, min_rounds=1)

        decision = decide(config, _rounds(0.10))

        assert decision.warning
        assert decision.should_continue

    def test_warning_flagged_on_terminal_round(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=1, max_rounds=1, warning_threshold=0.3)

        decision = decide(config, _rounds(0.25))

        assert decision.state is FinalState.MAX_ROUNDS_EXHAUSTED
        assert decision.warning

    def test_empty_rounds_rejected(self) -> None:
        with pytest.raises(ValueError):
            decide(SessionConfig(), [])


# =============================================================================
# RoundController
# =============================================================================


class TestRoundController:
    """Controller applying decisions to its session."""

    def test_min_rounds_floor_runs_second_round(self) -> None:
        controller = RoundController("analyze", SessionConfig(threshold=0.5, min_rounds=2))

        first = controller.record_round(_result(1, 0.95))

        assert first.should_continue
        assert not controller.is_finished
        assert controller.next_round == 2

    def test_stagnation_session(self) -> None:
        config = SessionConfig(threshold=0.9, min_rounds=2, stagnation_threshold=0.02)
        controller = RoundController("analyze", config)

        _run(controller, 0.40, 0.60, 0.605)
        snapshot = controller.snapshot()

        assert snapshot.final_state is FinalState.HUMAN_REVIEW_REQUIRED
        assert snapshot.reason is ReviewReason.STAGNATION
        assert snapshot.total_rounds == 3
        assert "stagnation" in snapshot.annotation

    def test_max_rounds_session(self) -> None:
        controller = RoundController("plan", SessionConfig(threshold=0.9, max_rounds=3))

        _run(controller, 0.5, 0.6, 0.65)

        assert controller.snapshot().final_state is FinalState.MAX_ROUNDS_EXHAUSTED
        assert controller.snapshot().scores == (0.5, 0.6, 0.65)

    def test_consensus_session(self) -> None:
        controller = RoundController("analyze", SessionConfig())

        _run(controller, 1.0, 1.0)

        snapshot = controller.snapshot()
        assert snapshot.final_state is FinalState.CONSENSUS_REACHED
        assert snapshot.reason is None

    def test_fail_records_reason(self) -> None:
        controller = RoundController("analyze", SessionConfig())

        controller.fail(ReviewReason.INSUFFICIENT_AGENTS, "1 document, 2 required")

        snapshot = controller.snapshot()
        assert snapshot.final_state is FinalState.HUMAN_REVIEW_REQUIRED
        assert snapshot.reason is ReviewReason.INSUFFICIENT_AGENTS
        assert snapshot.annotation == "1 document, 2 required"

    def test_no_transition_leaves_terminal_state(self) -> None:
        controller = RoundController("analyze", SessionConfig(min_rounds=1, threshold=0.5))
        controller.record_round(_result(1, 0.9))

        with pytest.raises(SessionClosedError):
            controller.record_round(_result(2, 0.9))
        with pytest.raises(SessionClosedError):
            controller.fail(ReviewReason.CANCELLED, "late cancel")

        assert controller.snapshot().final_state is FinalState.CONSENSUS_REACHED


# =============================================================================
# ConsensusSession
# =============================================================================


class TestConsensusSession:
    """Append-only log with snapshot reads."""

    def test_append_grows_by_one(self) -> None:
        session = ConsensusSession("analyze", SessionConfig())

        session.append(_result(1, 0.5))
        session.append(_result(2, 0.6))

        assert [r.round for r in session.rounds] == [1, 2]

    def test_out_of_sequence_round_rejected(self) -> None:
        session = ConsensusSession("analyze", SessionConfig())

        with pytest.raises(ConsensusConfigError):
            session.append(_result(2, 0.5))

    def test_snapshot_is_isolated_from_later_appends(self) -> None:
        session = ConsensusSession("analyze", SessionConfig())
        session.append(_result(1, 0.5))

        snapshot = session.snapshot()
        session.append(_result(2, 0.6))

        assert snapshot.total_rounds == 1
        assert isinstance(snapshot.rounds, tuple)

    def test_finish_requires_terminal_state(self) -> None:
        session = ConsensusSession("analyze", SessionConfig())

        with pytest.raises(ValueError):
            session.finish(FinalState.IN_PROGRESS)

    def test_human_review_requires_reason(self) -> None:
        session = ConsensusSession("analyze", SessionConfig())

        with pytest.raises(ValueError):
            session.finish(FinalState.HUMAN_REVIEW_REQUIRED)
