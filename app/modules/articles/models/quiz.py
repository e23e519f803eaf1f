from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

# Question types answered by typing rather than picking an option
FREE_RESPONSE_TYPES = frozenset({"translation", "construction"})


class QuizItemDraft(BaseModel):
    question: str = Field(..., min_length=1)
    correct_answer: str = Field(..., min_length=1)
    type: str = "meaning"
    question_en: Optional[str] = None
    distractors: list[str] = Field(default_factory=list)
    hint: Optional[str] = None
    vocabulary_word: Optional[str] = None

    @property
    def is_free_response(self) -> bool:
        return self.type in FREE_RESPONSE_TYPES


class QuizSet(BaseModel):
    questions: list[QuizItemDraft] = Field(default_factory=list)
