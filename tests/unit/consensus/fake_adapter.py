"""Fake agent adapter for testing.

Purpose: Test double that satisfies AgentAdapterProtocol for unit testing

This fake allows:
- Scripted responses per round (last response repeats)
- Tracking calls, prompts and round contexts
- Configurable delays for concurrency and timeout tests
- Configurable failures (first N calls, or every call)
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.consensus.models import RoundContext


# =============================================================================
# Test Constants
# =============================================================================

_DEFAULT_RESPONSE = """## Claims
- The service is stateless
## Risks
- Cache invalidation is untested
## Recommendations
- Add integration tests
"""


def analysis_text(
    claims: Sequence[str] = (),
    risks: Sequence[str] = (),
    recommendations: Sequence[str] = (),
) -> str:
    """Build a markdown analysis the HeadingExtractor understands."""
    sections = []
    for title, items in (
        ("Claims", claims),
        ("Risks", risks),
        ("Recommendations", recommendations),
    ):
        sections.append(f"## {title}")
        sections.extend(f"- {item}" for item in items)
    return "\n".join(sections) + "\n"


class FakeAgentAdapter:
    """Test double for an agent adapter.

    Satisfies AgentAdapterProtocol via duck typing.
    """

    def __init__(
        self,
        agent_id: str,
        responses: Sequence[str] | str = _DEFAULT_RESPONSE,
        *,
        delay: float = 0.0,
        fail_times: int = 0,
        always_fail: bool = False,
    ) -> None:
        """Initialize fake adapter.

        Args:
            agent_id: Unique identifier for this adapter.
            responses: Response per round (or one response for every round).
            delay: Simulated delay in seconds per call.
            fail_times: Number of initial calls that raise.
            always_fail: If True, every call raises.
        """
        self._agent_id = agent_id
        self._responses = [responses] if isinstance(responses, str) else list(responses)
        self._delay = delay
        self._fail_times = fail_times
        self._always_fail = always_fail

        # Tracking for test assertions
        self.call_count = 0
        self.prompts: list[str] = []
        self.contexts: list[RoundContext] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def agent_id(self) -> str:
        """Unique identifier for this adapter."""
        return self._agent_id

    async def analyze(self, prompt: str, context: RoundContext) -> str:
        """Return the scripted response for the context's round.

        Raises:
            RuntimeError: If configured to fail for this call.
        """
        self.call_count += 1
        self.prompts.append(prompt)
        self.contexts.append(context)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            if self._delay > 0:
                await asyncio.sleep(self._delay)

            if self._always_fail or self.call_count <= self._fail_times:
                raise RuntimeError(f"Fake failure for {self._agent_id}")

            index = min(context.round, len(self._responses)) - 1
            return self._responses[index]
        finally:
            self.in_flight -= 1

    @property
    def rounds_seen(self) -> list[int]:
        return [c.round for c in self.contexts]
