"""Learner configuration and the immutable request a pipeline run works from."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WritingSystem(str, Enum):
    ROMAJI = "romaji"
    KANA = "kana"
    KANJI = "kanji"


class LearnerConfig(BaseModel):
    proficiency_level: str = "N3"
    topics: list[str] = Field(
        default_factory=lambda: ["politics", "finance", "technology", "startups"]
    )
    regions: list[str] = Field(default_factory=lambda: ["germany", "japan", "us"])
    new_words_per_article: int = Field(default=12, ge=1, le=50)
    reuse_ratio: float = Field(default=0.65, ge=0.0, le=1.0)
    max_sentence_length: int = Field(default=15, ge=3)
    target_word_count: int = Field(default=200, ge=50, le=2000)
    quiz_questions_count: int = Field(default=7, ge=1, le=30)
    review_interval_hours: int = Field(default=24, ge=1)
    daily_article_goal: int = Field(default=1, ge=0)
    vocabulary_goal_weekly: int = Field(default=30, ge=0)
    writing_system: WritingSystem = WritingSystem.ROMAJI


class GenerationOverrides(BaseModel):
    """Per-request tweaks accepted by the generate endpoint."""

    model_config = ConfigDict(frozen=True)

    topic: Optional[str] = None
    region: Optional[str] = None
    proficiency_level: Optional[str] = None
    new_words_per_article: Optional[int] = Field(default=None, ge=1, le=50)
    target_word_count: Optional[int] = Field(default=None, ge=50, le=2000)
    writing_system: Optional[WritingSystem] = None


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    learner_id: str = Field(..., min_length=1)
    config: LearnerConfig = Field(default_factory=LearnerConfig)
    overrides: GenerationOverrides = Field(default_factory=GenerationOverrides)

    def effective_config(self) -> LearnerConfig:
        update = {
            k: v
            for k, v in self.overrides.model_dump(exclude={"topic", "region"}).items()
            if v is not None
        }
        return self.config.model_copy(update=update)
