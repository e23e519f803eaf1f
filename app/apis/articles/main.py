from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.apis.articles.schemas import (
    ArticleList,
    ArticleRead,
    ArticleSummary,
    ArticleUpdate,
    ArticleWordRead,
    GeneratedArticle,
    GenerationFailure,
    QuizQuestionRead,
)
from app.apis.deps import LearnerId, get_generator, get_templates
from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.articles import Article
from app.core.db.schemas.quiz import QuizQuestion
from app.core.db_services import ArticleStore, ConfigService
from app.modules.articles.errors import PersistenceConflict, PipelineFailed
from app.modules.articles.models import GenerationOverrides, GenerationRequest
from app.modules.articles.pipeline import ArticlePipeline
from app.modules.articles.templates import TemplateProvider
from app.modules.llm.client import TextGenerator
from app.modules.vocabulary.lifecycle import utcnow


router = APIRouter()


def question_read(q: QuizQuestion) -> QuizQuestionRead:
    return QuizQuestionRead(
        id=q.id,
        type=q.question_type,
        question=q.question,
        question_en=q.question_en,
        correct_answer=q.correct_answer,
        distractors=q.distractors or [],
        hint=q.hint,
        vocabulary_id=q.vocabulary_id,
        answered_correctly=q.answered_correctly,
        user_answer=q.user_answer,
        answered_at=q.answered_at,
    )


def article_read(article: Article, model: type[ArticleRead] = ArticleRead, **extra) -> ArticleRead:
    words = []
    for link in sorted(article.vocabulary_links, key=lambda link: link.id):
        v = link.vocabulary
        words.append(
            ArticleWordRead(
                id=v.id,
                word_romaji=v.word_romaji,
                word_romaji_macron=v.word_romaji_macron,
                word_kanji=v.word_kanji,
                word_kana=v.word_kana,
                meaning_en=v.meaning_en,
                part_of_speech=v.part_of_speech,
                jlpt_level=v.jlpt_level,
                category=v.category,
                status=v.status.value,
                is_new=link.is_new,
                is_review=link.is_review,
                context_sentence=link.context_sentence,
            )
        )
    summary = ArticleSummary.model_validate(article).model_dump()
    return model(
        **summary,
        body=article.body,
        translation=article.translation,
        grammar_points=article.grammar_points or [],
        sources=article.sources or [],
        word_count=article.word_count,
        review_word_count=article.review_word_count,
        quiz_completed_at=article.quiz_completed_at,
        vocabulary=words,
        quiz=[question_read(q) for q in article.questions],
        **extra,
    )


def _failure_status(failure: PipelineFailed) -> int:
    if failure.timed_out:
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(failure.cause, PersistenceConflict):
        return status.HTTP_409_CONFLICT
    return status.HTTP_502_BAD_GATEWAY


@router.post(
    f"/{settings.app.version}/articles/generate",
    response_model=GeneratedArticle,
    status_code=status.HTTP_201_CREATED,
    tags=["articles"],
)
async def generate_article(
    learner_id: LearnerId,
    overrides: Optional[GenerationOverrides] = None,
    session: AsyncSession = Depends(get_session),
    generator: TextGenerator = Depends(get_generator),
    templates: TemplateProvider = Depends(get_templates),
) -> GeneratedArticle:
    config = await ConfigService(session).load(learner_id)
    request = GenerationRequest(
        learner_id=learner_id,
        config=config,
        overrides=overrides or GenerationOverrides(),
    )
    store = ArticleStore(session)
    pipeline = ArticlePipeline(generator, store, templates=templates)
    try:
        result = await pipeline.run(request)
    except PipelineFailed as e:
        failure = GenerationFailure(
            stage=e.stage.value, error=type(e.cause).__name__, message=str(e.cause)
        )
        raise HTTPException(status_code=_failure_status(e), detail=failure.model_dump())

    article = await store.get_article(learner_id, result.article_id)
    return article_read(article, GeneratedArticle, elapsed_seconds=result.elapsed_seconds)


@router.get(
    f"/{settings.app.version}/articles",
    response_model=ArticleList,
    tags=["articles"],
)
async def list_articles(
    learner_id: LearnerId,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> ArticleList:
    articles, total = await ArticleStore(session).list_articles(
        learner_id, limit=limit, offset=offset
    )
    return ArticleList(
        items=[ArticleSummary.model_validate(a) for a in articles],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    f"/{settings.app.version}/articles/{{article_id:int}}",
    response_model=ArticleRead,
    tags=["articles"],
)
async def get_article(
    article_id: int,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> ArticleRead:
    article = await ArticleStore(session).get_article(learner_id, article_id)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return article_read(article)


@router.patch(
    f"/{settings.app.version}/articles/{{article_id:int}}",
    response_model=ArticleSummary,
    tags=["articles"],
)
async def update_article(
    article_id: int,
    payload: ArticleUpdate,
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> ArticleSummary:
    article = await ArticleStore(session).mark_read(learner_id, article_id, payload.read, utcnow())
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return ArticleSummary.model_validate(article)


@router.delete(
    f"/{settings.app.version}/articles/{{article_id:int}}",
    tags=["articles"],
)
async def delete_article(
    article_id: int,
    learner_id: LearnerId,
    delete_vocabulary: bool = Query(False),
    session: AsyncSession = Depends(get_session),
) -> dict:
    deleted = await ArticleStore(session).delete_article(
        learner_id, article_id, delete_vocabulary=delete_vocabulary
    )
    if not deleted:
        raise HTTPException(status_code=404, detail="Article not found")
    return {"status": "deleted", "id": article_id}
