"""What the article pipeline needs from storage."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from app.modules.articles.models import Discovery, PassageDraft, QuizSet


@dataclass(frozen=True)
class RecentArticle:
    topic: str
    region: str
    category: Optional[str]
    created_at: Optional[datetime]


@dataclass(frozen=True)
class KnownWord:
    word: str
    meaning: str
    times_seen: int


@dataclass
class ArticleBundle:
    """Everything one run writes, in one transaction."""

    article_id: int
    learner_id: str
    discovery: Discovery
    passage: PassageDraft
    quiz: QuizSet
    created_at: datetime
    sources: list[dict] = field(default_factory=list)


class PersistenceGateway(ABC):
    """Storage contract; every call is scoped to a single learner."""

    @abstractmethod
    async def allocate_ids(self, collection: str, count: int = 1) -> list[int]:
        """Reserve ``count`` consecutive ids for ``collection`` atomically."""

    @abstractmethod
    async def recent_articles(self, learner_id: str, limit: int) -> list[RecentArticle]:
        """Most recent articles first."""

    @abstractmethod
    async def frequent_words(self, learner_id: str, limit: int) -> list[KnownWord]:
        """Tracked words in reuse statuses, most seen first."""

    @abstractmethod
    async def save_article(self, bundle: ArticleBundle) -> int:
        """Write the article, vocabulary merges, quiz and source cache together.

        Nothing is visible to readers unless the whole write succeeds.
        Raises PersistenceConflict when a concurrent run won a race.
        """
