from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.apis.deps import LearnerId
from app.apis.vocabulary.schemas import (
    StatusUpdate,
    VocabularyTestIn,
    VocabularyTestOut,
    VocabularyAppearance,
    VocabularyDetail,
    VocabularyList,
    VocabularyRead,
)
from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import VocabularyService
from app.modules.vocabulary.lifecycle import VocabularyStatus, utcnow


router = APIRouter()

SortKey = Literal["recent", "oldest", "review_due", "least_tested", "alphabetical"]


@router.get(
    f"/{settings.app.version}/vocabulary",
    response_model=VocabularyList,
    tags=["vocabulary"],
)
async def list_vocabulary(
    learner_id: LearnerId,
    status: Optional[VocabularyStatus] = None,
    jlpt_level: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: SortKey = "recent",
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> VocabularyList:
    items, total = await VocabularyService(session).list_words(
        learner_id,
        status=status,
        jlpt_level=jlpt_level,
        category=category,
        search=search,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return VocabularyList(
        items=[VocabularyRead.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    f"/{settings.app.version}/vocabulary/due",
    response_model=list[VocabularyRead],
    tags=["vocabulary"],
)
async def due_vocabulary(
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> list[VocabularyRead]:
    items = await VocabularyService(session).due_words(learner_id, utcnow())
    return [VocabularyRead.model_validate(i) for i in items]


@router.get(
    f"/{settings.app.version}/vocabulary/{{vocabulary_id:int}}",
    response_model=VocabularyDetail,
    tags=["vocabulary"],
)
async def get_vocabulary(
    vocabulary_id: int,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> VocabularyDetail:
    service = VocabularyService(session)
    item = await service.get_word(learner_id, vocabulary_id)
    if not item:
        raise HTTPException(status_code=404, detail="Word not found")
    appearances = await service.appearances(learner_id, vocabulary_id)
    return VocabularyDetail(
        **VocabularyRead.model_validate(item).model_dump(),
        appearances=[
            VocabularyAppearance(
                article_id=a.id,
                title=a.title,
                created_at=a.created_at,
                is_new=link.is_new,
                is_review=link.is_review,
                context_sentence=link.context_sentence,
            )
            for a, link in appearances
        ],
    )


@router.patch(
    f"/{settings.app.version}/vocabulary/{{vocabulary_id:int}}",
    response_model=VocabularyRead,
    tags=["vocabulary"],
)
async def update_vocabulary_status(
    vocabulary_id: int,
    payload: StatusUpdate,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> VocabularyRead:
    try:
        status = VocabularyStatus(payload.status)
    except ValueError:
        allowed = ", ".join(s.value for s in VocabularyStatus)
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {allowed}")
    item = await VocabularyService(session).set_status(learner_id, vocabulary_id, status, utcnow())
    if not item:
        raise HTTPException(status_code=404, detail="Word not found")
    return VocabularyRead.model_validate(item)


@router.post(
    f"/{settings.app.version}/vocabulary/{{vocabulary_id:int}}/test",
    response_model=VocabularyTestOut,
    tags=["vocabulary"],
)
async def record_vocabulary_test(
    vocabulary_id: int,
    payload: VocabularyTestIn,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> VocabularyTestOut:
    recorded = await VocabularyService(session).record_test(
        learner_id, vocabulary_id, payload.correct, utcnow(), in_context=payload.in_context
    )
    if recorded is None:
        raise HTTPException(status_code=404, detail="Word not found")
    item, outcome = recorded
    return VocabularyTestOut(
        word=VocabularyRead.model_validate(item), status_changed=outcome.status_changed
    )
