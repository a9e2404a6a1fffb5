"""Custom exceptions for the consensus engine.

All exceptions are namespaced to avoid shadowing Python builtins
(no bare ``TimeoutError`` / ``ValueError`` subclasses leaking out).

Taxonomy:
- ConsensusConfigError: malformed configuration, never retried
- AdapterError: one agent call failed or timed out, recovered locally
- InsufficientAgentsError: too few documents to score a round
- SessionCancelledError: cancellation observed at a checkpoint
- SessionClosedError: mutation attempted on a terminal session
"""

from typing import Any


class ConsensusError(Exception):
    """Base exception for all consensus engine errors.

    All engine exceptions inherit from this class to enable
    catching any engine error with a single except clause.
    """

    def __init__(self, message: str, phase_id: str | None = None) -> None:
        """Initialize consensus error.

        Args:
            message: Error description
            phase_id: Phase of the session that raised the error
        """
        self.phase_id = phase_id
        super().__init__(message)


class ConsensusConfigError(ConsensusError):
    """Raised when session configuration or evaluator input is malformed.

    Always surfaced immediately and never retried.
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        phase_id: str | None = None,
    ) -> None:
        """Initialize configuration error.

        Args:
            message: Error description
            errors: One entry per invalid field ({"field", "value", "message"})
            phase_id: Phase of the session if applicable
        """
        self.errors = errors or []
        super().__init__(message, phase_id)

    @property
    def fields(self) -> list[str]:
        """Names of all fields that failed validation."""
        return [e["field"] for e in self.errors]


class AdapterError(ConsensusError):
    """Raised when a single agent adapter call fails or times out."""

    def __init__(
        self,
        message: str,
        agent_id: str,
        attempt: int = 1,
        cause: BaseException | None = None,
        phase_id: str | None = None,
    ) -> None:
        """Initialize adapter error.

        Args:
            message: Error description
            agent_id: Agent whose call failed
            attempt: 1-based attempt number that failed
            cause: Original exception raised by the adapter
            phase_id: Phase of the session
        """
        self.agent_id = agent_id
        self.attempt = attempt
        self.cause = cause
        if cause:
            self.__cause__ = cause
        super().__init__(message, phase_id)


class InsufficientAgentsError(ConsensusError):
    """Raised when fewer documents remain than a round requires."""

    def __init__(
        self,
        message: str,
        available: int,
        required: int,
        phase_id: str | None = None,
    ) -> None:
        """Initialize insufficient agents error.

        Args:
            message: Error description
            available: Documents produced for the round
            required: Documents needed to score the round
            phase_id: Phase of the session
        """
        self.available = available
        self.required = required
        super().__init__(message, phase_id)


class SessionCancelledError(ConsensusError):
    """Raised when cancellation is observed at a session checkpoint.

    Not a failure: the session ends in HumanReviewRequired(cancelled).
    """


class SessionClosedError(ConsensusError):
    """Raised when a terminal session is asked to change."""
