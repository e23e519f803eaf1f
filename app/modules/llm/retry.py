"""Rate-limit retries and the pause/continue conversation protocol."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from app.core.logging import get_logger
from app.modules.llm.client import GeneratorReply, GeneratorRequest, TextGenerator
from app.modules.llm.errors import (
    ExceededContinuationBudget,
    RateLimited,
    RetryExhausted,
)


logger = get_logger(__name__)

T = TypeVar("T")

CONTINUE_INSTRUCTION = "Continue."
MAX_CONTINUATION_ROUNDS = 10


@dataclass
class RetryPolicy:
    """Retries a call on ``RateLimited`` only; everything else propagates."""

    max_attempts: int = 3
    floor_seconds: float = 30.0
    default_seconds: float = 60.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, repr=False)

    def wait_for(self, error: RateLimited) -> float:
        if error.retry_after is None:
            return self.default_seconds
        return max(error.retry_after, self.floor_seconds)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.wait_for(retry_state.outcome.exception())

    def _announce(self, label: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            logger.warning(
                f"{label} rate limited; waiting {retry_state.next_action.sleep:.0f}s before retry "
                f"(attempt {retry_state.attempt_number}/{self.max_attempts})"
            )

        return before_sleep

    async def call(self, fn: Callable[[], Awaitable[T]], *, label: str = "generator") -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(RateLimited),
            sleep=self.sleep,
            before_sleep=self._announce(label),
        )
        try:
            return await retrying(fn)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise RetryExhausted(self.max_attempts, last_error) from last_error


class ContinuationState(str, Enum):
    AWAITING = "awaiting"
    CONTINUING = "continuing"
    DONE = "done"
    ABORTED = "aborted"


class ContinuationSession:
    """One generator conversation that may pause and need continuing.

    Each round is a single rate-limit-protected generator call. A paused reply
    is echoed back with a continuation instruction; text from every round is
    kept, and the joined text is returned once the generator finishes.
    """

    def __init__(
        self,
        generator: TextGenerator,
        request: GeneratorRequest,
        *,
        policy: Optional[RetryPolicy] = None,
        max_rounds: int = MAX_CONTINUATION_ROUNDS,
        label: str = "generator",
    ):
        self.generator = generator
        self.request = request
        self.policy = policy or RetryPolicy()
        self.max_rounds = max_rounds
        self.label = label
        self.state = ContinuationState.AWAITING
        self.rounds = 0
        self.messages: list[dict[str, Any]] = [{"role": "user", "content": request.user}]
        self.transcript: list[str] = []

    async def _round(self) -> GeneratorReply:
        return await self.policy.call(
            lambda: self.generator.complete(self.request, self.messages),
            label=self.label,
        )

    async def run(self) -> str:
        while self.rounds < self.max_rounds:
            self.rounds += 1
            reply = await self._round()
            if reply.text:
                self.transcript.append(reply.text)
            if not reply.paused:
                self.state = ContinuationState.DONE
                return "\n".join(self.transcript)

            self.state = ContinuationState.CONTINUING
            logger.info(f"{self.label} paused; continuing (round {self.rounds}/{self.max_rounds})")
            self.messages.append({"role": "assistant", "content": reply.content})
            self.messages.append({"role": "user", "content": CONTINUE_INSTRUCTION})

        self.state = ContinuationState.ABORTED
        raise ExceededContinuationBudget(self.rounds)
