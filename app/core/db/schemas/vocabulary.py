from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.base import Base
from app.modules.vocabulary.lifecycle import VocabularyProgress, VocabularyStatus

if TYPE_CHECKING:
    from .articles import ArticleVocabulary


class VocabularyItem(Base):
    __tablename__ = "vocabulary"
    __table_args__ = (
        UniqueConstraint("learner_id", "normalized_key", name="uq_vocabulary_learner_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    learner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    normalized_key: Mapped[str] = mapped_column(String, nullable=False, index=True)

    word_romaji: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    word_romaji_macron: Mapped[str] = mapped_column(String, nullable=False)
    word_kanji: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    word_kana: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    meaning_en: Mapped[str] = mapped_column(Text, nullable=False)
    part_of_speech: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    jlpt_level: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    category: Mapped[str] = mapped_column(String, nullable=False, default="general")

    status: Mapped[VocabularyStatus] = mapped_column(
        Enum(
            VocabularyStatus,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=VocabularyStatus.LEARNING,
        index=True,
    )
    times_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_tested: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_tested_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_used_correctly: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    first_seen_article_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_tested_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_review_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, index=True
    )

    article_links: Mapped[list["ArticleVocabulary"]] = relationship(
        "ArticleVocabulary", back_populates="vocabulary", cascade="all"
    )

    def progress(self) -> VocabularyProgress:
        return VocabularyProgress(
            status=self.status,
            times_seen=self.times_seen,
            times_tested=self.times_tested,
            times_tested_correct=self.times_tested_correct,
            times_used_correctly=self.times_used_correctly,
            streak_correct=self.streak_correct,
            consecutive_failures=self.consecutive_failures,
            last_seen_at=self.last_seen_at,
            last_tested_at=self.last_tested_at,
            next_review_at=self.next_review_at,
        )

    def apply_progress(self, progress: VocabularyProgress) -> None:
        self.status = progress.status
        self.times_seen = progress.times_seen
        self.times_tested = progress.times_tested
        self.times_tested_correct = progress.times_tested_correct
        self.times_used_correctly = progress.times_used_correctly
        self.streak_correct = progress.streak_correct
        self.consecutive_failures = progress.consecutive_failures
        self.last_seen_at = progress.last_seen_at
        self.last_tested_at = progress.last_tested_at
        self.next_review_at = progress.next_review_at


__all__ = ["VocabularyItem"]
