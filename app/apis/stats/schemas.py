from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class VocabularyStats(BaseModel):
    total: int
    by_status: dict[str, int] = Field(default_factory=dict)
    by_level: dict[str, int] = Field(default_factory=dict)
    due_for_review: int


class ArticleStats(BaseModel):
    total: int
    read: int
    quizzed: int
    average_quiz_score: Optional[float] = None


class StatsOverview(BaseModel):
    vocabulary: VocabularyStats
    articles: ArticleStats
    read_streak_days: int
