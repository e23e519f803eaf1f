from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.apis.articles.main import question_read
from app.apis.deps import LearnerId
from app.apis.quiz.schemas import (
    AnswerResult,
    QuizRead,
    QuizResult,
    QuizScore,
    QuizSubmission,
)
from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import QuizService
from app.modules.vocabulary.lifecycle import utcnow


router = APIRouter()


@router.get(
    f"/{settings.app.version}/articles/{{article_id:int}}/quiz",
    response_model=QuizRead,
    tags=["quiz"],
)
async def get_quiz(
    article_id: int,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> QuizRead:
    questions = await QuizService(session).questions(learner_id, article_id)
    if questions is None:
        raise HTTPException(status_code=404, detail="Article not found")
    answered = [q for q in questions if q.answered_correctly is not None]
    return QuizRead(
        article_id=article_id,
        questions=[question_read(q) for q in questions],
        total=len(questions),
        answered=len(answered),
        correct=sum(1 for q in answered if q.answered_correctly),
    )


@router.post(
    f"/{settings.app.version}/articles/{{article_id:int}}/quiz",
    response_model=QuizResult,
    tags=["quiz"],
)
async def submit_quiz(
    article_id: int,
    submission: QuizSubmission,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> QuizResult:
    graded = await QuizService(session).submit(
        learner_id,
        article_id,
        [(a.question_id, a.answer) for a in submission.answers],
        utcnow(),
    )
    if graded is None:
        raise HTTPException(status_code=404, detail="Article not found")

    correct = sum(1 for _, ok in graded if ok)
    total = len(graded)
    return QuizResult(
        results=[
            AnswerResult(
                question_id=q.id,
                correct=ok,
                user_answer=q.user_answer or "",
                correct_answer=q.correct_answer,
                vocabulary_id=q.vocabulary_id,
            )
            for q, ok in graded
        ],
        score=QuizScore(
            correct=correct,
            total=total,
            percentage=round(correct / total * 100) if total else 0,
        ),
    )
