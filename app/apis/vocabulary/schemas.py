from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.modules.vocabulary.lifecycle import VocabularyStatus


class VocabularyRead(BaseModel):
    id: int
    word_romaji: Optional[str] = None
    word_romaji_macron: str
    word_kanji: Optional[str] = None
    word_kana: Optional[str] = None
    meaning_en: str
    part_of_speech: Optional[str] = None
    jlpt_level: Optional[str] = None
    category: str
    status: VocabularyStatus
    times_seen: int
    times_tested: int
    times_tested_correct: int
    times_used_correctly: int
    streak_correct: int
    first_seen_article_id: Optional[int] = None
    first_seen_at: datetime
    last_seen_at: Optional[datetime] = None
    last_tested_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VocabularyAppearance(BaseModel):
    article_id: int
    title: str
    created_at: datetime
    is_new: bool
    is_review: bool
    context_sentence: Optional[str] = None


class VocabularyDetail(VocabularyRead):
    appearances: list[VocabularyAppearance] = Field(default_factory=list)


class VocabularyList(BaseModel):
    items: list[VocabularyRead] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class StatusUpdate(BaseModel):
    status: str


class VocabularyTestIn(BaseModel):
    correct: bool
    in_context: bool = True


class VocabularyTestOut(BaseModel):
    word: VocabularyRead
    status_changed: bool
