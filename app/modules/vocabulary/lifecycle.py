"""Mastery lifecycle and spaced-repetition schedule for tracked words.

A word enters ``learning`` the first time it shows up in a passage. Tests
(quiz answers or direct vocabulary tests) move it forward:

- ``learning -> known`` once it has been seen 5 times, answered correctly 3
  times and used correctly in context twice; the first review is due a day
  later.
- ``known -> mastered`` after passing reviews spaced 1, 3, 7, 14 and 30 days
  apart; mastered words are no longer scheduled.
- ``known -> learning`` after two failed reviews in a row.
- ``mastered -> known`` after a single failed review.

All functions are pure: they take a ``VocabularyProgress`` and return a new
one, leaving persistence to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class VocabularyStatus(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    KNOWN = "known"
    MASTERED = "mastered"


REVIEW_INTERVALS_DAYS: tuple[int, ...] = (1, 3, 7, 14, 30)

PROMOTE_MIN_SEEN = 5
PROMOTE_MIN_TESTED_CORRECT = 3
PROMOTE_MIN_USED_CORRECTLY = 2
DEMOTE_AFTER_FAILURES = 2

# Words offered back to the generator for reuse in new passages
REUSABLE_STATUSES = (
    VocabularyStatus.LEARNING,
    VocabularyStatus.KNOWN,
    VocabularyStatus.MASTERED,
)
# Words that can come due for review
REVIEWABLE_STATUSES = (VocabularyStatus.LEARNING, VocabularyStatus.KNOWN)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every stored datetime uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def review_interval(streak: int) -> timedelta:
    """Delay before the next review for a given consecutive-correct streak."""
    idx = min(max(streak, 0), len(REVIEW_INTERVALS_DAYS) - 1)
    return timedelta(days=REVIEW_INTERVALS_DAYS[idx])


@dataclass
class VocabularyProgress:
    status: VocabularyStatus = VocabularyStatus.LEARNING
    times_seen: int = 0
    times_tested: int = 0
    times_tested_correct: int = 0
    times_used_correctly: int = 0
    streak_correct: int = 0
    consecutive_failures: int = 0
    last_seen_at: Optional[datetime] = None
    last_tested_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReviewOutcome:
    progress: VocabularyProgress
    previous_status: VocabularyStatus

    @property
    def status_changed(self) -> bool:
        return self.progress.status != self.previous_status


def first_sighting(now: datetime) -> VocabularyProgress:
    """Progress of a word that has just appeared for the first time."""
    return VocabularyProgress(
        status=VocabularyStatus.LEARNING, times_seen=1, last_seen_at=now
    )


def record_sighting(progress: VocabularyProgress, now: datetime) -> VocabularyProgress:
    """Another appearance of a tracked word. Never changes status by itself."""
    return replace(progress, times_seen=progress.times_seen + 1, last_seen_at=now)


def _ready_for_known(p: VocabularyProgress) -> bool:
    return (
        p.times_seen >= PROMOTE_MIN_SEEN
        and p.times_tested_correct >= PROMOTE_MIN_TESTED_CORRECT
        and p.times_used_correctly >= PROMOTE_MIN_USED_CORRECTLY
    )


def record_test(
    progress: VocabularyProgress,
    correct: bool,
    now: datetime,
    *,
    in_context: bool = True,
) -> ReviewOutcome:
    """Apply one test result and any status transition it triggers."""
    previous = progress.status
    p = replace(progress, times_tested=progress.times_tested + 1, last_tested_at=now)

    if correct:
        p.times_tested_correct += 1
        if in_context:
            p.times_used_correctly += 1
        p.streak_correct += 1
        p.consecutive_failures = 0

        if p.status in (VocabularyStatus.NEW, VocabularyStatus.LEARNING):
            if _ready_for_known(p):
                # Reviews walk the interval table from the start
                p.status = VocabularyStatus.KNOWN
                p.streak_correct = 0
                p.next_review_at = now + review_interval(0)
        elif p.status == VocabularyStatus.KNOWN:
            if p.streak_correct >= len(REVIEW_INTERVALS_DAYS):
                p.status = VocabularyStatus.MASTERED
                p.next_review_at = None
            else:
                p.next_review_at = now + review_interval(p.streak_correct)
        return ReviewOutcome(progress=p, previous_status=previous)

    p.streak_correct = 0
    p.consecutive_failures += 1

    if p.status == VocabularyStatus.MASTERED:
        p.status = VocabularyStatus.KNOWN
        p.next_review_at = now + review_interval(0)
    elif p.status == VocabularyStatus.KNOWN:
        if p.consecutive_failures >= DEMOTE_AFTER_FAILURES:
            p.status = VocabularyStatus.LEARNING
            p.consecutive_failures = 0
            p.next_review_at = None
        else:
            p.next_review_at = now + review_interval(0)
    return ReviewOutcome(progress=p, previous_status=previous)


def override_status(
    progress: VocabularyProgress, status: VocabularyStatus, now: datetime
) -> VocabularyProgress:
    """Manual status change requested by the learner."""
    p = replace(progress, status=status)
    if status == VocabularyStatus.KNOWN:
        p.streak_correct = 0
        p.consecutive_failures = 0
        p.next_review_at = now + review_interval(0)
    else:
        p.next_review_at = None
    return p
