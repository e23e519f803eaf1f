from __future__ import annotations

from enum import Enum


class RunStage(str, Enum):
    SELECTING_TOPIC = "selecting_topic"
    DRAFTING = "drafting"
    QUIZ_GENERATING = "quiz_generating"
    PERSISTENCE_STARTING = "persistence_starting"
    MERGING = "merging"
    PERSISTED = "persisted"


class PersistenceConflict(Exception):
    """A concurrent write touched the same rows; the run is not retried."""


class PipelineFailed(Exception):
    """A run aborted; ``stage`` is where it stopped and ``cause`` is why."""

    def __init__(self, stage: RunStage, cause: BaseException):
        super().__init__(f"{stage.value}: {type(cause).__name__}: {cause}")
        self.stage = stage
        self.cause = cause

    @property
    def timed_out(self) -> bool:
        return isinstance(self.cause, TimeoutError)
