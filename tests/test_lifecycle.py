from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from app.modules.vocabulary.lifecycle import (
    REVIEW_INTERVALS_DAYS,
    VocabularyProgress,
    VocabularyStatus,
    first_sighting,
    override_status,
    record_sighting,
    record_test,
    review_interval,
)

NOW = datetime(2026, 10, 19, 9, 0, 0)


def _ready_learning(**changes) -> VocabularyProgress:
    """A learning word one correct answer away from promotion."""
    base = VocabularyProgress(
        status=VocabularyStatus.LEARNING,
        times_seen=5,
        times_tested=2,
        times_tested_correct=2,
        times_used_correctly=2,
    )
    return replace(base, **changes)


def _known(**changes) -> VocabularyProgress:
    base = VocabularyProgress(
        status=VocabularyStatus.KNOWN,
        times_seen=5,
        times_tested=3,
        times_tested_correct=3,
        times_used_correctly=3,
        next_review_at=NOW,
    )
    return replace(base, **changes)


@pytest.mark.unit
class TestSightings:
    def test_first_sighting(self):
        p = first_sighting(NOW)
        assert p.status == VocabularyStatus.LEARNING
        assert p.times_seen == 1
        assert p.last_seen_at == NOW
        assert p.next_review_at is None

    def test_record_sighting_never_changes_status(self):
        p = record_sighting(_ready_learning(), NOW)
        assert p.times_seen == 6
        assert p.status == VocabularyStatus.LEARNING


@pytest.mark.unit
class TestPromotion:
    def test_third_correct_answer_promotes_to_known(self):
        outcome = record_test(_ready_learning(), True, NOW)
        p = outcome.progress
        assert outcome.status_changed
        assert outcome.previous_status == VocabularyStatus.LEARNING
        assert p.status == VocabularyStatus.KNOWN
        assert p.times_tested_correct == 3
        assert p.next_review_at == NOW + timedelta(days=1)
        assert p.streak_correct == 0

    @pytest.mark.parametrize(
        "changes",
        [
            {"times_seen": 4},
            {"times_tested_correct": 1},
            {"times_used_correctly": 0},
        ],
    )
    def test_every_threshold_is_required(self, changes):
        outcome = record_test(_ready_learning(**changes), True, NOW)
        assert outcome.progress.status == VocabularyStatus.LEARNING
        assert not outcome.status_changed

    def test_out_of_context_answer_does_not_count_as_usage(self):
        outcome = record_test(
            _ready_learning(times_used_correctly=1), True, NOW, in_context=False
        )
        assert outcome.progress.times_used_correctly == 1
        assert outcome.progress.status == VocabularyStatus.LEARNING

    def test_new_words_promote_like_learning(self):
        outcome = record_test(_ready_learning(status=VocabularyStatus.NEW), True, NOW)
        assert outcome.progress.status == VocabularyStatus.KNOWN


@pytest.mark.unit
class TestReviews:
    def test_known_reviews_walk_the_interval_table_to_mastered(self):
        p = record_test(_ready_learning(), True, NOW).progress
        assert p.next_review_at - NOW == timedelta(days=REVIEW_INTERVALS_DAYS[0])

        seen_intervals = []
        for _ in range(len(REVIEW_INTERVALS_DAYS) - 1):
            p = record_test(p, True, NOW).progress
            assert p.status == VocabularyStatus.KNOWN
            seen_intervals.append((p.next_review_at - NOW).days)
        assert seen_intervals == list(REVIEW_INTERVALS_DAYS[1:])

        outcome = record_test(p, True, NOW)
        assert outcome.progress.status == VocabularyStatus.MASTERED
        assert outcome.progress.next_review_at is None

    def test_single_failure_keeps_known_and_reschedules(self):
        outcome = record_test(_known(streak_correct=3), False, NOW)
        p = outcome.progress
        assert p.status == VocabularyStatus.KNOWN
        assert p.streak_correct == 0
        assert p.consecutive_failures == 1
        assert p.next_review_at == NOW + timedelta(days=1)

    def test_two_failures_in_a_row_demote_to_learning(self):
        p = record_test(_known(), False, NOW).progress
        outcome = record_test(p, False, NOW)
        assert outcome.progress.status == VocabularyStatus.LEARNING
        assert outcome.status_changed
        assert outcome.progress.next_review_at is None

    def test_correct_answer_resets_failure_run(self):
        p = record_test(_known(), False, NOW).progress
        p = record_test(p, True, NOW).progress
        p = record_test(p, False, NOW).progress
        assert p.status == VocabularyStatus.KNOWN

    def test_mastered_failure_drops_to_known(self):
        mastered = _known(status=VocabularyStatus.MASTERED, next_review_at=None)
        outcome = record_test(mastered, False, NOW)
        assert outcome.progress.status == VocabularyStatus.KNOWN
        assert outcome.progress.next_review_at == NOW + timedelta(days=1)

    def test_learning_failure_only_counts(self):
        outcome = record_test(_ready_learning(), False, NOW)
        assert outcome.progress.status == VocabularyStatus.LEARNING
        assert outcome.progress.times_tested == 3
        assert outcome.progress.times_tested_correct == 2
        assert outcome.progress.last_tested_at == NOW

    def test_review_interval_clamps(self):
        assert review_interval(-1) == timedelta(days=1)
        assert review_interval(99) == timedelta(days=30)


@pytest.mark.unit
class TestOverride:
    def test_marking_known_schedules_first_review(self):
        p = override_status(_ready_learning(streak_correct=2), VocabularyStatus.KNOWN, NOW)
        assert p.status == VocabularyStatus.KNOWN
        assert p.streak_correct == 0
        assert p.next_review_at == NOW + timedelta(days=1)

    def test_other_statuses_clear_schedule(self):
        p = override_status(_known(), VocabularyStatus.MASTERED, NOW)
        assert p.status == VocabularyStatus.MASTERED
        assert p.next_review_at is None
