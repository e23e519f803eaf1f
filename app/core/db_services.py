"""Database service classes for articles, vocabulary, quizzes, config and stats."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.db.schemas.articles import Article, ArticleVocabulary, SourceCacheEntry
from app.core.db.schemas.learner import IdCounter, LearnerConfigRecord
from app.core.db.schemas.quiz import QuizQuestion
from app.core.db.schemas.vocabulary import VocabularyItem
from app.core.logging import get_logger
from app.modules.articles.errors import PersistenceConflict
from app.modules.articles.gateway import (
    ArticleBundle,
    KnownWord,
    PersistenceGateway,
    RecentArticle,
)
from app.modules.articles.models import LearnerConfig, VocabularyCandidate
from app.modules.vocabulary.lifecycle import (
    REUSABLE_STATUSES,
    REVIEWABLE_STATUSES,
    ReviewOutcome,
    VocabularyStatus,
    first_sighting,
    override_status,
    record_sighting,
    record_test,
)
from app.modules.vocabulary.normalize import fold_diacritics, normalize_key


logger = get_logger(__name__)


# Deadlock and serialization failures (PostgreSQL SQLSTATEs)
CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})


def _is_conflict(error: DBAPIError) -> bool:
    """True for errors caused by a concurrent writer rather than by this run."""
    if isinstance(error, IntegrityError):
        return True
    code = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    return code in CONFLICT_SQLSTATES


def _plain_romaji(candidate: VocabularyCandidate) -> str:
    """Romaji without macrons, derived when the generator left it out."""
    return candidate.word_romaji or fold_diacritics(candidate.word_romaji_macron)


class ArticleStore(PersistenceGateway):
    """Articles and everything written alongside them.

    Locks are always taken in the same order: vocabulary rows by normalized
    key, then id counters. Two runs for one learner can therefore only
    collide on a unique key, never deadlock.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _reserve(self, collection: str, count: int) -> list[int]:
        """Bump a counter inside the current transaction."""
        if count <= 0:
            return []
        result = await self.session.execute(
            select(IdCounter).where(IdCounter.collection == collection).with_for_update()
        )
        counter = result.scalar_one_or_none()
        if counter is None:
            counter = IdCounter(collection=collection, next_value=1)
            self.session.add(counter)
        start = counter.next_value
        counter.next_value = start + count
        await self.session.flush()
        return list(range(start, start + count))

    async def allocate_ids(self, collection: str, count: int = 1) -> list[int]:
        try:
            ids = await self._reserve(collection, count)
            await self.session.commit()
        except DBAPIError as e:
            await self.session.rollback()
            if _is_conflict(e):
                raise PersistenceConflict(f"id counter '{collection}' contended") from e
            raise
        return ids

    async def recent_articles(self, learner_id: str, limit: int) -> list[RecentArticle]:
        rows = await self.session.execute(
            select(Article.topic, Article.region, Article.category, Article.created_at)
            .where(Article.learner_id == learner_id)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
        )
        return [
            RecentArticle(topic=t, region=r, category=c, created_at=at)
            for t, r, c, at in rows.all()
        ]

    async def frequent_words(self, learner_id: str, limit: int) -> list[KnownWord]:
        rows = await self.session.execute(
            select(
                VocabularyItem.word_romaji_macron,
                VocabularyItem.meaning_en,
                VocabularyItem.times_seen,
            )
            .where(
                VocabularyItem.learner_id == learner_id,
                VocabularyItem.status.in_(REUSABLE_STATUSES),
            )
            .order_by(VocabularyItem.times_seen.desc(), VocabularyItem.id)
            .limit(limit)
        )
        return [KnownWord(word=w, meaning=m, times_seen=n) for w, m, n in rows.all()]

    async def _words_for_update(
        self, learner_id: str, keys: list[str]
    ) -> dict[str, VocabularyItem]:
        if not keys:
            return {}
        result = await self.session.execute(
            select(VocabularyItem)
            .where(
                VocabularyItem.learner_id == learner_id,
                VocabularyItem.normalized_key.in_(keys),
            )
            .order_by(VocabularyItem.normalized_key)
            .execution_options(populate_existing=True)
            .with_for_update()
        )
        return {item.normalized_key: item for item in result.scalars().all()}

    async def _merge_words(
        self,
        bundle: ArticleBundle,
        sightings: dict[str, list[VocabularyCandidate]],
        extra_keys: Iterable[str] = (),
    ) -> dict[str, VocabularyItem]:
        """Create or update every sighted word; also lock ``extra_keys`` without sighting them."""
        now = bundle.created_at
        keys = sorted(set(sightings) | set(extra_keys))
        words = await self._words_for_update(bundle.learner_id, keys)
        missing = [key for key in sorted(sightings) if key not in words]
        new_ids = iter(await self._reserve("vocabulary", len(missing)))

        for key in sorted(sightings):
            candidates = sightings[key]
            item = words.get(key)
            if item is None:
                first = candidates[0]
                item = VocabularyItem(
                    id=next(new_ids),
                    learner_id=bundle.learner_id,
                    normalized_key=key,
                    word_romaji=_plain_romaji(first),
                    word_romaji_macron=first.word_romaji_macron,
                    word_kanji=first.word_kanji,
                    word_kana=first.word_kana,
                    meaning_en=first.meaning_en,
                    part_of_speech=first.part_of_speech,
                    jlpt_level=first.jlpt_level,
                    category=first.category,
                    first_seen_article_id=bundle.article_id,
                    first_seen_at=now,
                )
                progress = first_sighting(now)
                repeats = candidates[1:]
                self.session.add(item)
                words[key] = item
            else:
                progress = item.progress()
                repeats = candidates
            for candidate in repeats:
                progress = record_sighting(progress, now)
                # Earlier runs may have been rendered in another script
                if item.word_romaji is None:
                    item.word_romaji = _plain_romaji(candidate)
                for attr in ("word_kanji", "word_kana", "part_of_speech", "jlpt_level"):
                    if getattr(item, attr) is None and getattr(candidate, attr) is not None:
                        setattr(item, attr, getattr(candidate, attr))
            item.apply_progress(progress)
        return words

    async def save_article(self, bundle: ArticleBundle) -> int:
        passage = bundle.passage
        learner_id = bundle.learner_id
        questions = bundle.quiz.questions
        findings = bundle.discovery.findings
        try:
            sightings: dict[str, list[VocabularyCandidate]] = {}
            roles: dict[str, dict[str, Any]] = {}
            marked = [(c, True) for c in passage.new_words] + [
                (c, False) for c in passage.review_words
            ]
            for candidate, is_new in marked:
                key = normalize_key(candidate.word_romaji_macron)
                if not key:
                    continue
                sightings.setdefault(key, []).append(candidate)
                role = roles.setdefault(
                    key, {"is_new": False, "is_review": False, "context": candidate.context_sentence}
                )
                role["is_new" if is_new else "is_review"] = True

            question_keys = [
                normalize_key(q.vocabulary_word) if q.vocabulary_word else "" for q in questions
            ]
            words = await self._merge_words(
                bundle, sightings, extra_keys=[k for k in question_keys if k]
            )
            await self.session.flush()

            link_ids = await self._reserve("article_vocabulary", len(roles))
            question_ids = await self._reserve("quiz_questions", len(questions))
            source_ids = await self._reserve("source_cache", len(findings))

            links = [
                ArticleVocabulary(
                    id=link_id,
                    learner_id=learner_id,
                    vocabulary_id=words[key].id,
                    is_new=role["is_new"],
                    is_review=role["is_review"],
                    context_sentence=role["context"],
                )
                for link_id, (key, role) in zip(link_ids, roles.items())
            ]
            quiz_rows = []
            for question_id, q, key in zip(question_ids, questions, question_keys):
                linked = words.get(key) if key else None
                quiz_rows.append(
                    QuizQuestion(
                        id=question_id,
                        learner_id=learner_id,
                        vocabulary_id=linked.id if linked else None,
                        question_type=q.type,
                        question=q.question,
                        question_en=q.question_en,
                        correct_answer=q.correct_answer,
                        distractors=q.distractors,
                        hint=q.hint,
                    )
                )

            # Collections are handed over complete so nothing is lazily loaded
            article = Article(
                id=bundle.article_id,
                learner_id=learner_id,
                title=passage.title,
                summary=passage.summary,
                body=passage.body,
                translation=passage.translation,
                grammar_points=[g.model_dump() for g in passage.grammar_points],
                sources=bundle.sources,
                topic=bundle.discovery.topic,
                region=bundle.discovery.region,
                category=bundle.discovery.category,
                word_count=passage.word_count,
                new_word_count=len(passage.new_words),
                review_word_count=len(passage.review_words),
                writing_system=passage.writing_system.value,
                created_at=bundle.created_at,
                vocabulary_links=links,
                questions=quiz_rows,
            )
            self.session.add(article)

            for source_id, f in zip(source_ids, findings):
                self.session.add(
                    SourceCacheEntry(
                        id=source_id,
                        learner_id=learner_id,
                        article_id=bundle.article_id,
                        headline=f.headline,
                        source=f.source,
                        url=f.url,
                        published=f.date,
                        key_facts=f.key_facts,
                        numbers=f.numbers,
                        quotes=f.quotes,
                        topic=bundle.discovery.topic,
                        region=bundle.discovery.region,
                        fetched_at=bundle.created_at,
                    )
                )
            await self.session.commit()
        except DBAPIError as e:
            await self.session.rollback()
            if _is_conflict(e):
                raise PersistenceConflict(
                    f"article {bundle.article_id} conflicted: {e.orig}"
                ) from e
            raise
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            f"Saved article {bundle.article_id}: {len(links)} word(s), "
            f"{len(questions)} question(s), {len(findings)} source(s)"
        )
        return bundle.article_id

    async def get_article(self, learner_id: str, article_id: int) -> Optional[Article]:
        result = await self.session.execute(
            select(Article)
            .options(
                selectinload(Article.vocabulary_links).selectinload(ArticleVocabulary.vocabulary),
                selectinload(Article.questions),
            )
            .where(Article.id == article_id, Article.learner_id == learner_id)
            # Rows written earlier in this session lack their joined relationships
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_articles(
        self, learner_id: str, *, limit: int = 20, offset: int = 0
    ) -> tuple[list[Article], int]:
        total = await self.session.scalar(
            select(func.count(Article.id)).where(Article.learner_id == learner_id)
        )
        rows = await self.session.execute(
            select(Article)
            .where(Article.learner_id == learner_id)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(rows.scalars().all()), int(total or 0)

    async def mark_read(
        self, learner_id: str, article_id: int, read: bool, now: datetime
    ) -> Optional[Article]:
        article = await self.session.scalar(
            select(Article).where(Article.id == article_id, Article.learner_id == learner_id)
        )
        if article is None:
            return None
        article.read_at = now if read else None
        await self.session.commit()
        return article

    async def delete_article(
        self, learner_id: str, article_id: int, *, delete_vocabulary: bool = False
    ) -> bool:
        article = await self.get_article(learner_id, article_id)
        if article is None:
            return False

        orphans: list[VocabularyItem] = []
        if delete_vocabulary:
            for link in article.vocabulary_links:
                others = await self.session.scalar(
                    select(func.count(ArticleVocabulary.id)).where(
                        ArticleVocabulary.vocabulary_id == link.vocabulary_id,
                        ArticleVocabulary.article_id != article_id,
                    )
                )
                if not others:
                    orphans.append(link.vocabulary)

        source_rows = await self.session.execute(
            select(SourceCacheEntry).where(
                SourceCacheEntry.learner_id == learner_id,
                SourceCacheEntry.article_id == article_id,
            )
        )
        for entry in source_rows.scalars().all():
            await self.session.delete(entry)
        await self.session.delete(article)
        await self.session.flush()

        for item in orphans:
            await _unlink_questions(self.session, item.id)
            await self.session.delete(item)
        await self.session.commit()
        logger.info(f"Deleted article {article_id} and {len(orphans)} unused word(s)")
        return True


async def _unlink_questions(session: AsyncSession, vocabulary_id: int) -> None:
    rows = await session.execute(
        select(QuizQuestion).where(QuizQuestion.vocabulary_id == vocabulary_id)
    )
    for q in rows.scalars().all():
        q.vocabulary_id = None


def _answers_match(given: str, expected: str) -> bool:
    return (given or "").strip().casefold() == (expected or "").strip().casefold()


class VocabularyService:
    """Queries and lifecycle updates on a learner's tracked words."""

    SORTS = {
        "recent": lambda: (VocabularyItem.last_seen_at.desc(), VocabularyItem.id.desc()),
        "oldest": lambda: (VocabularyItem.first_seen_at.asc(), VocabularyItem.id.asc()),
        "review_due": lambda: (
            VocabularyItem.next_review_at.is_(None),
            VocabularyItem.next_review_at.asc(),
        ),
        "least_tested": lambda: (VocabularyItem.times_tested.asc(), VocabularyItem.id.asc()),
        "alphabetical": lambda: (VocabularyItem.word_romaji_macron.asc(),),
    }

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_words(
        self,
        learner_id: str,
        *,
        status: Optional[VocabularyStatus] = None,
        jlpt_level: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "recent",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[VocabularyItem], int]:
        conditions = [VocabularyItem.learner_id == learner_id]
        if status is not None:
            conditions.append(VocabularyItem.status == status)
        if jlpt_level:
            conditions.append(VocabularyItem.jlpt_level == jlpt_level)
        if category:
            conditions.append(VocabularyItem.category == category)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    VocabularyItem.word_romaji_macron.ilike(pattern),
                    VocabularyItem.word_romaji.ilike(pattern),
                    VocabularyItem.word_kana.ilike(pattern),
                    VocabularyItem.word_kanji.ilike(pattern),
                    VocabularyItem.meaning_en.ilike(pattern),
                )
            )
        order = self.SORTS.get(sort, self.SORTS["recent"])()
        total = await self.session.scalar(
            select(func.count(VocabularyItem.id)).where(*conditions)
        )
        rows = await self.session.execute(
            select(VocabularyItem).where(*conditions).order_by(*order).limit(limit).offset(offset)
        )
        return list(rows.scalars().all()), int(total or 0)

    async def due_words(self, learner_id: str, now: datetime) -> list[VocabularyItem]:
        rows = await self.session.execute(
            select(VocabularyItem)
            .where(
                VocabularyItem.learner_id == learner_id,
                VocabularyItem.status.in_(REVIEWABLE_STATUSES),
                VocabularyItem.next_review_at.is_not(None),
                VocabularyItem.next_review_at <= now,
            )
            .order_by(VocabularyItem.next_review_at.asc())
        )
        return list(rows.scalars().all())

    async def get_word(
        self, learner_id: str, vocabulary_id: int, *, for_update: bool = False
    ) -> Optional[VocabularyItem]:
        stmt = select(VocabularyItem).where(
            VocabularyItem.id == vocabulary_id, VocabularyItem.learner_id == learner_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def appearances(self, learner_id: str, vocabulary_id: int) -> list[tuple[Article, ArticleVocabulary]]:
        rows = await self.session.execute(
            select(Article, ArticleVocabulary)
            .join(ArticleVocabulary, ArticleVocabulary.article_id == Article.id)
            .where(
                ArticleVocabulary.vocabulary_id == vocabulary_id,
                Article.learner_id == learner_id,
            )
            .order_by(Article.created_at.desc())
        )
        return [(a, link) for a, link in rows.all()]

    async def set_status(
        self, learner_id: str, vocabulary_id: int, status: VocabularyStatus, now: datetime
    ) -> Optional[VocabularyItem]:
        item = await self.get_word(learner_id, vocabulary_id, for_update=True)
        if item is None:
            return None
        item.apply_progress(override_status(item.progress(), status, now))
        await self.session.commit()
        return item

    async def apply_test(
        self, item: VocabularyItem, correct: bool, now: datetime, *, in_context: bool = True
    ) -> ReviewOutcome:
        outcome = record_test(item.progress(), correct, now, in_context=in_context)
        item.apply_progress(outcome.progress)
        if outcome.status_changed:
            logger.info(
                f"Word {item.id} '{item.word_romaji_macron}': "
                f"{outcome.previous_status.value} -> {outcome.progress.status.value}"
            )
        return outcome

    async def record_test(
        self,
        learner_id: str,
        vocabulary_id: int,
        correct: bool,
        now: datetime,
        *,
        in_context: bool = True,
    ) -> Optional[tuple[VocabularyItem, ReviewOutcome]]:
        item = await self.get_word(learner_id, vocabulary_id, for_update=True)
        if item is None:
            return None
        outcome = await self.apply_test(item, correct, now, in_context=in_context)
        await self.session.commit()
        return item, outcome


class QuizService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.vocabulary = VocabularyService(session)

    async def questions(self, learner_id: str, article_id: int) -> Optional[list[QuizQuestion]]:
        exists = await self.session.scalar(
            select(Article.id).where(Article.id == article_id, Article.learner_id == learner_id)
        )
        if exists is None:
            return None
        rows = await self.session.execute(
            select(QuizQuestion)
            .where(QuizQuestion.article_id == article_id, QuizQuestion.learner_id == learner_id)
            .order_by(QuizQuestion.id)
        )
        return list(rows.scalars().all())

    async def submit(
        self,
        learner_id: str,
        article_id: int,
        answers: Iterable[tuple[int, str]],
        now: datetime,
    ) -> Optional[list[tuple[QuizQuestion, bool]]]:
        """Grade answers, update linked words and store the score on the article."""
        article = await self.session.scalar(
            select(Article).where(Article.id == article_id, Article.learner_id == learner_id)
        )
        if article is None:
            return None
        by_id = {q.id: q for q in (await self.questions(learner_id, article_id) or [])}

        graded: list[tuple[QuizQuestion, bool]] = []
        answered: set[int] = set()
        for question_id, answer in answers:
            q = by_id.get(question_id)
            if q is None:
                logger.warning(f"Ignoring answer for unknown question {question_id}")
                continue
            # First answer wins; a repeat must not test the word twice
            if question_id in answered:
                logger.warning(f"Ignoring repeated answer for question {question_id}")
                continue
            answered.add(question_id)
            correct = _answers_match(answer, q.correct_answer)
            q.user_answer = answer
            q.answered_correctly = correct
            q.answered_at = now
            if q.vocabulary_id is not None:
                item = await self.vocabulary.get_word(learner_id, q.vocabulary_id, for_update=True)
                if item is not None:
                    await self.vocabulary.apply_test(item, correct, now)
            graded.append((q, correct))

        if graded:
            article.quiz_score = sum(1 for _, ok in graded if ok) / len(graded)
            article.quiz_completed_at = now
        await self.session.commit()
        return graded


class ConfigService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(self, learner_id: str) -> LearnerConfig:
        record = await self.session.get(LearnerConfigRecord, learner_id)
        stored = record.overrides if record else {}
        return LearnerConfig.model_validate({**LearnerConfig().model_dump(), **stored})

    async def update(self, learner_id: str, changes: dict[str, Any], now: datetime) -> LearnerConfig:
        """Apply a partial update. Raises KeyError for unknown keys, ValidationError for bad values."""
        unknown = sorted(set(changes) - set(LearnerConfig.model_fields))
        if unknown:
            raise KeyError(", ".join(unknown))

        record = await self.session.get(LearnerConfigRecord, learner_id, with_for_update=True)
        stored = dict(record.overrides) if record else {}
        merged = LearnerConfig.model_validate(
            {**LearnerConfig().model_dump(), **stored, **changes}
        )
        stored.update(merged.model_dump(mode="json", include=set(changes)))
        if record is None:
            record = LearnerConfigRecord(learner_id=learner_id, overrides=stored, updated_at=now)
            self.session.add(record)
        else:
            record.overrides = stored
            record.updated_at = now
        await self.session.commit()
        return merged


def _read_streak(read_days: set, today) -> int:
    """Consecutive days with a read article, ending today or yesterday."""
    day = today if today in read_days else today - timedelta(days=1)
    streak = 0
    while day in read_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


class StatsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def overview(self, learner_id: str, now: datetime) -> dict[str, Any]:
        by_status_rows = await self.session.execute(
            select(VocabularyItem.status, func.count(VocabularyItem.id))
            .where(VocabularyItem.learner_id == learner_id)
            .group_by(VocabularyItem.status)
        )
        by_status = {s.value: 0 for s in VocabularyStatus}
        for status, count in by_status_rows.all():
            by_status[status.value] = count

        by_level_rows = await self.session.execute(
            select(VocabularyItem.jlpt_level, func.count(VocabularyItem.id))
            .where(VocabularyItem.learner_id == learner_id)
            .group_by(VocabularyItem.jlpt_level)
        )
        by_level = {(level or "unknown"): count for level, count in by_level_rows.all()}

        due = await self.session.scalar(
            select(func.count(VocabularyItem.id)).where(
                VocabularyItem.learner_id == learner_id,
                VocabularyItem.status.in_(REVIEWABLE_STATUSES),
                VocabularyItem.next_review_at.is_not(None),
                VocabularyItem.next_review_at <= now,
            )
        )

        article_rows = await self.session.execute(
            select(Article.read_at, Article.quiz_completed_at, Article.quiz_score).where(
                Article.learner_id == learner_id
            )
        )
        articles = article_rows.all()
        scores = [score for _, done, score in articles if done is not None and score is not None]
        read_days = {read.date() for read, _, _ in articles if read is not None}

        return {
            "vocabulary": {
                "total": sum(by_status.values()),
                "by_status": by_status,
                "by_level": by_level,
                "due_for_review": int(due or 0),
            },
            "articles": {
                "total": len(articles),
                "read": sum(1 for read, _, _ in articles if read is not None),
                "quizzed": sum(1 for _, done, _ in articles if done is not None),
                "average_quiz_score": (sum(scores) / len(scores)) if scores else None,
            },
            "read_streak_days": _read_streak(read_days, now.date()),
        }
