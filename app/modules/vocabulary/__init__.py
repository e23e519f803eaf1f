"""Vocabulary module exports."""

from .lifecycle import (
    REVIEW_INTERVALS_DAYS,
    ReviewOutcome,
    VocabularyProgress,
    VocabularyStatus,
    first_sighting,
    override_status,
    record_sighting,
    record_test,
    utcnow,
)
from .normalize import normalize_key

__all__ = [
    "REVIEW_INTERVALS_DAYS",
    "ReviewOutcome",
    "VocabularyProgress",
    "VocabularyStatus",
    "first_sighting",
    "override_status",
    "record_sighting",
    "record_test",
    "utcnow",
    "normalize_key",
]
