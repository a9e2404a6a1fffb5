"""ConsensusEngine orchestrator.

Runs consensus sessions: each round invokes every agent adapter
concurrently, joins on all outcomes, scores the round and lets the
RoundController decide whether to run another one.

Behaviour:
- Adapter calls of one round run as parallel asyncio tasks
- Each call is bounded by call_timeout and retried up to max_retries
- The round join is bounded by round_timeout; late calls are dropped
- Rounds are strictly sequential; round r+1 sees round r's disagreements
- Cancellation is cooperative, checked before a round and before a retry

Pattern: asyncio.wait fan-out per round, filtered to successful results
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from src.consensus.config import SessionConfig
from src.consensus.controller import Decision, RoundController
from src.consensus.evaluator import evaluate_round, validate_weights
from src.consensus.events import (
    ConsensusEvent,
    ConsensusWarning,
    RoundEvaluated,
    RoundStarted,
    SessionFinished,
)
from src.consensus.extractor import ExtractorProtocol, HeadingExtractor
from src.consensus.models import (
    AnalysisDocument,
    ReviewReason,
    RoundContext,
    RoundResult,
    SessionSnapshot,
)
from src.core.constants import CATEGORY_WEIGHTS, Category
from src.core.exceptions import (
    AdapterError,
    ConsensusConfigError,
    ConsensusError,
    InsufficientAgentsError,
    SessionCancelledError,
)
from src.core.logging import bind_session_context, clear_session_context, get_logger

if TYPE_CHECKING:
    from src.consensus.protocols import (
        AgentAdapterProtocol,
        EventSinkProtocol,
        RoundStoreProtocol,
    )


logger = get_logger(__name__)


# =============================================================================
# SessionHandle
# =============================================================================


class SessionHandle:
    """Handle returned by ConsensusEngine.start_session().

    Example:
        >>> handle = engine.start_session("analyze", prompt, config, adapters)
        >>> snapshot = await handle.wait()
        >>> snapshot.final_state
        <FinalState.CONSENSUS_REACHED: 'consensus_reached'>
    """

    def __init__(self, phase_id: str, controller: RoundController) -> None:
        self._phase_id = phase_id
        self._controller = controller
        self._cancel_event = asyncio.Event()
        self._task: asyncio.Task[SessionSnapshot] | None = None
        self._error: ConsensusError | None = None

    @property
    def phase_id(self) -> str:
        return self._phase_id

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def error(self) -> ConsensusError | None:
        """Error that ended the session early (e.g. InsufficientAgentsError)."""
        return self._error

    def cancel(self) -> None:
        """Request cooperative cancellation.

        In-flight adapter calls are never interrupted; the session stops at
        the next checkpoint (before a round or before a retry).
        """
        self._cancel_event.set()

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def snapshot(self) -> SessionSnapshot:
        """Immutable view of the session as of now."""
        return self._controller.snapshot()

    async def wait(self) -> SessionSnapshot:
        """Wait for the session to finish.

        Returns:
            Final SessionSnapshot.

        Raises:
            Exception: Any unexpected error raised inside the session task.
        """
        if self._task is None:
            raise RuntimeError(f"Session {self._phase_id!r} was never started")
        return await self._task


# =============================================================================
# ConsensusEngine
# =============================================================================


class ConsensusEngine:
    """Runs multi-agent consensus sessions.

    Example:
        >>> engine = ConsensusEngine(event_sink=InMemoryEventBus())
        >>> handle = engine.start_session("analyze", "Review X", SessionConfig(), adapters)
        >>> snapshot = await handle.wait()
    """

    def __init__(
        self,
        *,
        extractor: ExtractorProtocol | None = None,
        event_sink: EventSinkProtocol | None = None,
        round_store: RoundStoreProtocol | None = None,
        weights: Mapping[Category, float] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            extractor: Strategy turning raw adapter text into statements.
            event_sink: Optional consumer of session events.
            round_store: Optional append-only persistence for round results.
            weights: Category weights; defaults to CATEGORY_WEIGHTS.

        Raises:
            ConsensusConfigError: If the weights are invalid.
        """
        self._weights = dict(CATEGORY_WEIGHTS if weights is None else weights)
        validate_weights(self._weights)
        self._extractor = extractor or HeadingExtractor()
        self._event_sink = event_sink
        self._round_store = round_store

    @property
    def extractor(self) -> ExtractorProtocol:
        return self._extractor

    def start_session(
        self,
        phase_id: str,
        prompt: str,
        config: SessionConfig | None,
        adapters: Sequence[AgentAdapterProtocol],
    ) -> SessionHandle:
        """Start a consensus session in the running event loop.

        Args:
            phase_id: Opaque phase identifier (e.g. "analyze").
            prompt: Prompt sent to every adapter.
            config: Session config; defaults to SessionConfig.from_settings().
            adapters: Agent adapters taking part.

        Returns:
            SessionHandle for waiting, snapshots and cancellation.

        Raises:
            ConsensusConfigError: If adapters do not fit the config.
        """
        config = config or SessionConfig.from_settings()
        self._validate_adapters(phase_id, config, adapters)

        controller = RoundController(phase_id, config)
        handle = SessionHandle(phase_id, controller)
        run = _SessionRun(handle, controller, prompt, list(adapters))
        handle._task = asyncio.create_task(self._run(run), name=f"consensus-{phase_id}")
        return handle

    def cancel(self, handle: SessionHandle) -> None:
        """Request cancellation of a running session."""
        handle.cancel()

    async def run_session(
        self,
        phase_id: str,
        prompt: str,
        config: SessionConfig | None,
        adapters: Sequence[AgentAdapterProtocol],
    ) -> SessionSnapshot:
        """Start a session and wait for its final snapshot."""
        return await self.start_session(phase_id, prompt, config, adapters).wait()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate_adapters(
        self,
        phase_id: str,
        config: SessionConfig,
        adapters: Sequence[AgentAdapterProtocol],
    ) -> None:
        errors = []
        agent_ids = [a.agent_id for a in adapters]

        if len(set(agent_ids)) != len(agent_ids):
            errors.append({"field": "adapters", "value": agent_ids, "message": "agent_id values must be unique"})

        if config.single_agent:
            if len(adapters) != 1:
                errors.append(
                    {"field": "adapters", "value": len(adapters), "message": "single-agent mode needs exactly 1 adapter"}
                )
        elif len(adapters) < config.required_documents:
            errors.append({
                "field": "adapters",
                "value": len(adapters),
                "message": f"multi-agent consensus needs at least {config.required_documents} adapters",
            })

        if errors:
            raise ConsensusConfigError(
                f"Invalid adapters for phase {phase_id!r}: "
                + "; ".join(e["message"] for e in errors),
                errors=errors,
                phase_id=phase_id,
            )

    # -------------------------------------------------------------------------
    # Session loop
    # -------------------------------------------------------------------------

    async def _run(self, run: _SessionRun) -> SessionSnapshot:
        bind_session_context(run.phase_id)
        try:
            return await self._run_session(run)
        finally:
            clear_session_context()

    async def _run_session(self, run: _SessionRun) -> SessionSnapshot:
        controller = run.controller
        config = controller.session.config

        run.log.info(
            "session_started",
            agents=[a.agent_id for a in run.adapters],
            threshold=config.threshold,
            min_rounds=config.min_rounds,
            max_rounds=config.max_rounds,
        )

        while not controller.is_finished:
            round_no = controller.next_round
            bind_session_context(run.phase_id, round=round_no)
            if run.handle.cancel_requested:
                controller.fail(ReviewReason.CANCELLED, f"cancelled before round {round_no}")
                break

            context = RoundContext.after(run.phase_id, controller.session.rounds)
            await self._emit(run, RoundStarted, round=round_no, agents=[a.agent_id for a in run.adapters])

            try:
                documents, dropped = await self._collect_round(run, context)
            except SessionCancelledError as e:
                controller.fail(ReviewReason.CANCELLED, str(e))
                break

            if len(documents) < config.required_documents:
                error = InsufficientAgentsError(
                    f"Round {round_no} produced {len(documents)} document(s), "
                    f"{config.required_documents} required",
                    available=len(documents),
                    required=config.required_documents,
                    phase_id=run.phase_id,
                )
                run.handle._error = error
                controller.fail(ReviewReason.INSUFFICIENT_AGENTS, str(error))
                break

            result = evaluate_round(documents, self._weights).with_dropped_agents(dropped)
            decision = controller.record_round(result)
            if self._round_store is not None:
                await self._round_store.persist_round(run.phase_id, result)
            await self._emit_round_events(run, result, decision)

        snapshot = controller.snapshot()
        await self._emit(
            run,
            SessionFinished,
            final_state=snapshot.final_state.value,
            total_rounds=snapshot.total_rounds,
            reason=snapshot.reason.value if snapshot.reason else None,
            annotation=snapshot.annotation,
        )
        return snapshot

    async def _collect_round(
        self,
        run: _SessionRun,
        context: RoundContext,
    ) -> tuple[list[AnalysisDocument], list[str]]:
        """Invoke every adapter concurrently and join on the outcomes.

        Returns:
            (documents from successful agents, agent_ids that were dropped)

        Raises:
            SessionCancelledError: If cancellation was observed before a retry.
        """
        config = run.controller.session.config
        tasks = {
            asyncio.create_task(self._call_with_retry(run, adapter, context)): adapter.agent_id
            for adapter in run.adapters
        }

        done, pending = await asyncio.wait(tasks, timeout=config.round_timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            run.log.warning(
                "round_timeout",
                round=context.round,
                timed_out=sorted(tasks[t] for t in pending),
                round_timeout=config.round_timeout,
            )

        documents: list[AnalysisDocument] = []
        dropped: list[str] = [tasks[t] for t in pending]
        cancelled: SessionCancelledError | None = None

        for task in done:
            error = task.exception()
            if error is None:
                documents.append(task.result())
            elif isinstance(error, SessionCancelledError):
                cancelled = error
            elif isinstance(error, AdapterError):
                dropped.append(tasks[task])
            else:
                raise error

        if cancelled is not None:
            raise cancelled

        return documents, sorted(dropped)

    async def _call_with_retry(
        self,
        run: _SessionRun,
        adapter: AgentAdapterProtocol,
        context: RoundContext,
    ) -> AnalysisDocument:
        """Call one adapter, retrying failures within the retry budget.

        Raises:
            AdapterError: When every attempt failed.
            SessionCancelledError: When cancellation is seen before a retry.
        """
        config = run.controller.session.config
        attempts = config.max_retries + 1
        last_error = AdapterError(
            f"{adapter.agent_id} was not called",
            agent_id=adapter.agent_id,
            attempt=0,
            phase_id=run.phase_id,
        )

        for attempt in range(1, attempts + 1):
            if attempt > 1 and run.handle.cancel_requested:
                raise SessionCancelledError(
                    f"cancelled before retrying {adapter.agent_id} in round {context.round}",
                    phase_id=run.phase_id,
                )
            try:
                raw_text = await asyncio.wait_for(
                    adapter.analyze(run.prompt, context),
                    timeout=config.call_timeout,
                )
                if not isinstance(raw_text, str):
                    raise TypeError(f"adapter returned {type(raw_text).__name__}, expected str")
                return self._build_document(adapter.agent_id, context.round, raw_text)
            except asyncio.TimeoutError as e:
                last_error = AdapterError(
                    f"{adapter.agent_id} timed out after {config.call_timeout}s",
                    agent_id=adapter.agent_id,
                    attempt=attempt,
                    cause=e,
                    phase_id=run.phase_id,
                )
            except Exception as e:
                last_error = AdapterError(
                    f"{adapter.agent_id} failed: {e}",
                    agent_id=adapter.agent_id,
                    attempt=attempt,
                    cause=e,
                    phase_id=run.phase_id,
                )

            run.log.warning(
                "adapter_attempt_failed",
                agent_id=adapter.agent_id,
                round=context.round,
                attempt=attempt,
                attempts=attempts,
                error=str(last_error),
            )

        raise last_error

    def _build_document(self, agent_id: str, round_no: int, raw_text: str) -> AnalysisDocument:
        extracted = self._extractor.extract(raw_text)
        return AnalysisDocument(
            agent_id=agent_id,
            round=round_no,
            raw_text=raw_text,
            claims=extracted.claims,
            risks=extracted.risks,
            recommendations=extracted.recommendations,
            has_markers=extracted.has_markers,
        )

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def _emit_round_events(
        self,
        run: _SessionRun,
        result: RoundResult,
        decision: Decision,
    ) -> None:
        await self._emit(
            run,
            RoundEvaluated,
            round=result.round,
            consensus_score=result.consensus_score,
            per_category_score={c.value: s for c, s in result.per_category_score.items()},
            dropped_agents=list(result.dropped_agents),
        )
        if decision.warning:
            await self._emit(
                run,
                ConsensusWarning,
                round=result.round,
                consensus_score=result.consensus_score,
                warning_threshold=run.controller.session.config.warning_threshold,
            )

    async def _emit(self, run: _SessionRun, event_cls: type[ConsensusEvent], **fields: object) -> None:
        if self._event_sink is None:
            return
        event = event_cls(phase_id=run.phase_id, sequence=run.next_sequence(), **fields)
        await self._event_sink.publish(event)


# =============================================================================
# _SessionRun
# =============================================================================


class _SessionRun:
    """Per-session state owned by the session task."""

    def __init__(
        self,
        handle: SessionHandle,
        controller: RoundController,
        prompt: str,
        adapters: list[AgentAdapterProtocol],
    ) -> None:
        self.handle = handle
        self.controller = controller
        self.prompt = prompt
        self.adapters = adapters
        self.phase_id = handle.phase_id
        # phase_id and round come from the bound session context
        self.log = logger
        self._sequence = 0

    def next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence
