"""Typed stage outputs for source discovery and passage drafting."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.modules.articles.models.config import WritingSystem


class SourceFinding(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    headline: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    url: Optional[str] = None
    date: Optional[str] = None
    key_facts: list[str] = Field(default_factory=list, alias="keyFacts")
    numbers: list[str] = Field(default_factory=list)
    quotes: list[str] = Field(default_factory=list)


class Discovery(BaseModel):
    topic: str
    region: str
    category: Optional[str] = None
    summary: str = ""
    findings: list[SourceFinding] = Field(default_factory=list)


class GrammarPoint(BaseModel):
    pattern: str
    level: Optional[str] = None
    explanation: str = ""
    examples: list[str] = Field(default_factory=list)


class VocabularyCandidate(BaseModel):
    word_romaji_macron: str = Field(..., min_length=1)
    meaning_en: str = Field(..., min_length=1)
    word_romaji: Optional[str] = None
    word_kanji: Optional[str] = None
    word_kana: Optional[str] = None
    part_of_speech: Optional[str] = None
    jlpt_level: Optional[str] = None
    category: str = "general"
    context_sentence: Optional[str] = None


class PassageDraft(BaseModel):
    title: str
    body: str
    summary: str = ""
    translation: str = ""
    grammar_points: list[GrammarPoint] = Field(default_factory=list)
    sources_cited: list[str] = Field(default_factory=list)
    word_count: int = 0
    new_word_count: int = 0
    new_words: list[VocabularyCandidate] = Field(default_factory=list)
    review_words: list[VocabularyCandidate] = Field(default_factory=list)
    writing_system: WritingSystem = WritingSystem.ROMAJI
