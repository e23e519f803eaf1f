from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.base import Base

if TYPE_CHECKING:
    from .quiz import QuizQuestion
    from .vocabulary import VocabularyItem


class Article(Base):
    __tablename__ = "articles"

    # Ids come from the id_counters table, never from the database sequence
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    learner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)
    translation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    grammar_points: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    sources: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    topic: Mapped[str] = mapped_column(String, nullable=False)
    region: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    new_word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    writing_system: Mapped[str] = mapped_column(String, nullable=False, default="romaji")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    quiz_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    quiz_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    vocabulary_links: Mapped[list["ArticleVocabulary"]] = relationship(
        "ArticleVocabulary", back_populates="article", cascade="all, delete-orphan"
    )
    questions: Mapped[list["QuizQuestion"]] = relationship(
        "QuizQuestion",
        back_populates="article",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.id",
    )


class ArticleVocabulary(Base):
    __tablename__ = "article_vocabulary"
    __table_args__ = (
        UniqueConstraint("article_id", "vocabulary_id", name="uq_article_vocabulary"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    learner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    article_id: Mapped[int] = mapped_column(
        ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vocabulary_id: Mapped[int] = mapped_column(
        ForeignKey("vocabulary.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    context_sentence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    article: Mapped["Article"] = relationship("Article", back_populates="vocabulary_links")
    vocabulary: Mapped["VocabularyItem"] = relationship(
        "VocabularyItem", back_populates="article_links"
    )


class SourceCacheEntry(Base):
    __tablename__ = "source_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    learner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    article_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    key_facts: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    numbers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    quotes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    topic: Mapped[str] = mapped_column(String, nullable=False)
    region: Mapped[str] = mapped_column(String, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


__all__ = ["Article", "ArticleVocabulary", "SourceCacheEntry"]
