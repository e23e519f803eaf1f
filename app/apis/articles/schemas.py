from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ArticleWordRead(BaseModel):
    id: int
    word_romaji: Optional[str] = None
    word_romaji_macron: str
    word_kanji: Optional[str] = None
    word_kana: Optional[str] = None
    meaning_en: str
    part_of_speech: Optional[str] = None
    jlpt_level: Optional[str] = None
    category: str
    status: str
    is_new: bool
    is_review: bool
    context_sentence: Optional[str] = None


class QuizQuestionRead(BaseModel):
    id: int
    type: str
    question: str
    question_en: Optional[str] = None
    correct_answer: str
    distractors: list[str] = Field(default_factory=list)
    hint: Optional[str] = None
    vocabulary_id: Optional[int] = None
    answered_correctly: Optional[bool] = None
    user_answer: Optional[str] = None
    answered_at: Optional[datetime] = None


class ArticleSummary(BaseModel):
    id: int
    title: str
    summary: str
    topic: str
    region: str
    category: Optional[str] = None
    writing_system: str
    new_word_count: int
    created_at: datetime
    read_at: Optional[datetime] = None
    quiz_score: Optional[float] = None

    model_config = {"from_attributes": True}


class ArticleRead(ArticleSummary):
    body: str
    translation: str
    grammar_points: list[dict] = Field(default_factory=list)
    sources: list[dict] = Field(default_factory=list)
    word_count: int
    review_word_count: int
    quiz_completed_at: Optional[datetime] = None
    vocabulary: list[ArticleWordRead] = Field(default_factory=list)
    quiz: list[QuizQuestionRead] = Field(default_factory=list)


class GeneratedArticle(ArticleRead):
    elapsed_seconds: float


class ArticleList(BaseModel):
    items: list[ArticleSummary] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class ArticleUpdate(BaseModel):
    read: bool = Field(..., description="Mark the article as read (true) or unread (false)")


class GenerationFailure(BaseModel):
    stage: str
    error: str
    message: str
