from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.apis.articles.schemas import QuizQuestionRead


class QuizRead(BaseModel):
    article_id: int
    questions: list[QuizQuestionRead] = Field(default_factory=list)
    total: int
    answered: int
    correct: int


class AnswerIn(BaseModel):
    question_id: int
    answer: str


class QuizSubmission(BaseModel):
    answers: list[AnswerIn] = Field(..., min_length=1)


class AnswerResult(BaseModel):
    question_id: int
    correct: bool
    user_answer: str
    correct_answer: str
    vocabulary_id: Optional[int] = None


class QuizScore(BaseModel):
    correct: int
    total: int
    percentage: int


class QuizResult(BaseModel):
    results: list[AnswerResult] = Field(default_factory=list)
    score: QuizScore
