"""Failures raised while talking to the text generator."""

from __future__ import annotations

from typing import Optional


class GenerationError(Exception):
    """Base class for generator-side failures."""


class RateLimited(GenerationError):
    """Transient: the provider asked us to slow down."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class MalformedOutput(GenerationError):
    """No structured payload could be recovered from the generator's text."""

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt


class EmptyGeneration(GenerationError):
    """The payload parsed but carried nothing usable."""


class NoFindings(EmptyGeneration):
    """Source discovery returned zero findings."""


class ExceededContinuationBudget(GenerationError):
    def __init__(self, rounds: int):
        super().__init__(f"generator still paused after {rounds} rounds")
        self.rounds = rounds


class RetryExhausted(GenerationError):
    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        super().__init__(f"gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
