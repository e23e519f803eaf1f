from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.base import Base

if TYPE_CHECKING:
    from .articles import Article
    from .vocabulary import VocabularyItem


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    learner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vocabulary_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("vocabulary.id", ondelete="SET NULL"), nullable=True, index=True
    )
    question_type: Mapped[str] = mapped_column(String, nullable=False, default="meaning")
    question: Mapped[str] = mapped_column(Text, nullable=False)
    question_en: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    distractors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    hint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_answer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    answered_correctly: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    article: Mapped["Article"] = relationship("Article", back_populates="questions")
    vocabulary: Mapped[Optional["VocabularyItem"]] = relationship("VocabularyItem")


__all__ = ["QuizQuestion"]
