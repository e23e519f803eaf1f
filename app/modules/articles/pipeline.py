"""Article generation pipeline: discovery -> passage -> quiz -> one durable write.

Stage 3 (quiz) and the article id allocation run concurrently; nothing is
written until both have finished and the merge write succeeds. Any failure
or the run-level timeout aborts the run with ``PipelineFailed`` naming the
stage that was active.
"""

from __future__ import annotations

import asyncio
import random
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from app.core.config import settings
from app.core.logging import bind, get_logger
from app.modules.articles.errors import PipelineFailed, RunStage
from app.modules.articles.gateway import ArticleBundle, PersistenceGateway
from app.modules.articles.generator import (
    build_discovery_request,
    build_passage_request,
    build_quiz_request,
    discover_sources,
    draft_passage,
    generate_quiz,
)
from app.modules.articles.models import (
    Discovery,
    GenerationRequest,
    LearnerConfig,
    PassageDraft,
    QuizSet,
)
from app.modules.articles.templates import TemplateProvider
from app.modules.llm.client import TextGenerator
from app.modules.llm.retry import RetryPolicy
from app.modules.vocabulary.lifecycle import utcnow


logger = get_logger(__name__)

T = TypeVar("T")

RECENT_FOR_PROMPT = 10
RECENT_FOR_ROTATION = 3
KNOWN_WORDS_LIMIT = 100
DEFAULT_CATEGORIES = ("politics", "technology", "society")
DEFAULT_REGIONS = ("japan", "germany", "us")


@dataclass
class PipelineResult:
    article_id: int
    discovery: Discovery
    passage: PassageDraft
    quiz: QuizSet
    elapsed_seconds: float


@dataclass
class _RunProgress:
    stage: RunStage = RunStage.SELECTING_TOPIC


def pick_rotation(
    options: Sequence[str], recently_used: Sequence[Optional[str]], rng: random.Random
) -> str:
    """First option not used recently, else a random one."""
    used = {(u or "").lower() for u in recently_used}
    for option in options:
        if option.lower() not in used:
            return option
    return rng.choice(list(options))


class ArticlePipeline:
    def __init__(
        self,
        generator: TextGenerator,
        gateway: PersistenceGateway,
        *,
        templates: TemplateProvider,
        policy: Optional[RetryPolicy] = None,
        timeout_seconds: Optional[float] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.generator = generator
        self.gateway = gateway
        self.templates = templates
        self.policy = policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds or settings.generation.run_timeout_seconds
        self.rng = rng or random.Random()
        self.clock = clock

    async def run(self, request: GenerationRequest) -> PipelineResult:
        progress = _RunProgress()
        log = bind(logger, learner_id=request.learner_id, run_id=uuid.uuid4().hex[:8])
        try:
            return await asyncio.wait_for(
                self._run(request, progress, log), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            log.error(f"Run timed out during {progress.stage.value}")
            cause = TimeoutError(f"run exceeded {self.timeout_seconds:.0f}s")
            raise PipelineFailed(progress.stage, cause) from e
        except PipelineFailed as e:
            log.error(f"Run failed: {e}")
            raise

    async def _in_stage(
        self, progress: _RunProgress, stage: RunStage, call: Callable[[], Awaitable[T]]
    ) -> T:
        progress.stage = stage
        try:
            return await call()
        except PipelineFailed:
            raise
        except Exception as e:
            raise PipelineFailed(stage, e) from e

    async def _run(self, request: GenerationRequest, progress: _RunProgress, log) -> PipelineResult:
        started = time.monotonic()
        config = request.effective_config()
        log.info(
            f"Pipeline starting: level={config.proficiency_level}, "
            f"script={config.writing_system.value}"
        )

        discovery = await self._in_stage(
            progress,
            RunStage.SELECTING_TOPIC,
            lambda: self._discover(request, config),
        )
        passage = await self._in_stage(
            progress,
            RunStage.DRAFTING,
            lambda: self._draft(request.learner_id, discovery, config),
        )
        quiz, article_id = await self._quiz_and_article_id(progress, passage, config)

        bundle = ArticleBundle(
            article_id=article_id,
            learner_id=request.learner_id,
            discovery=discovery,
            passage=passage,
            quiz=quiz,
            created_at=self.clock(),
            sources=[
                {"name": f.source, "url": f.url, "headline": f.headline, "date": f.date}
                for f in discovery.findings
            ],
        )
        await self._in_stage(progress, RunStage.MERGING, lambda: self.gateway.save_article(bundle))
        progress.stage = RunStage.PERSISTED

        elapsed = time.monotonic() - started
        log.info(f"Pipeline complete: article {article_id} in {elapsed:.1f}s")
        return PipelineResult(
            article_id=article_id,
            discovery=discovery,
            passage=passage,
            quiz=quiz,
            elapsed_seconds=elapsed,
        )

    async def _discover(self, request: GenerationRequest, config: LearnerConfig) -> Discovery:
        recent = await self.gateway.recent_articles(request.learner_id, RECENT_FOR_PROMPT)
        rotation = recent[:RECENT_FOR_ROTATION]
        category = pick_rotation(
            config.topics or DEFAULT_CATEGORIES, [a.category for a in rotation], self.rng
        )
        region = request.overrides.region or pick_rotation(
            config.regions or DEFAULT_REGIONS, [a.region for a in rotation], self.rng
        )
        gen_request = build_discovery_request(
            config,
            category=category,
            region=region,
            recent=recent,
            templates=self.templates,
            topic_hint=request.overrides.topic,
            today=self.clock().date(),
        )
        discovery = await discover_sources(self.generator, gen_request, policy=self.policy)
        if not discovery.category:
            discovery = discovery.model_copy(update={"category": category})
        return discovery

    async def _draft(
        self, learner_id: str, discovery: Discovery, config: LearnerConfig
    ) -> PassageDraft:
        known = await self.gateway.frequent_words(learner_id, KNOWN_WORDS_LIMIT)
        gen_request = build_passage_request(
            discovery, config, known_words=known, templates=self.templates
        )
        return await draft_passage(
            self.generator,
            gen_request,
            writing_system=config.writing_system,
            expected_new_words=config.new_words_per_article,
            policy=self.policy,
        )

    async def _quiz_and_article_id(
        self, progress: _RunProgress, passage: PassageDraft, config: LearnerConfig
    ) -> tuple[QuizSet, int]:
        """Quiz generation and id allocation side by side; either failing cancels the other."""
        progress.stage = RunStage.QUIZ_GENERATING
        quiz_task = asyncio.create_task(
            generate_quiz(
                self.generator,
                build_quiz_request(passage, config),
                limit=config.quiz_questions_count,
                policy=self.policy,
            )
        )
        ids_task = asyncio.create_task(self.gateway.allocate_ids("articles", 1))
        branches = {
            quiz_task: RunStage.QUIZ_GENERATING,
            ids_task: RunStage.PERSISTENCE_STARTING,
        }

        try:
            _, pending = await asyncio.wait(branches, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in branches:
                task.cancel()
            await asyncio.gather(*branches, return_exceptions=True)
            raise

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        for task, stage in branches.items():
            if task.cancelled():
                continue
            error = task.exception()
            if error is not None:
                raise PipelineFailed(stage, error) from error

        return quiz_task.result(), ids_task.result()[0]
