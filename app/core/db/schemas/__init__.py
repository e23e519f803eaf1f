# Import models so Base metadata is aware of them
from .articles import Article, ArticleVocabulary, SourceCacheEntry  # noqa: F401
from .vocabulary import VocabularyItem  # noqa: F401
from .quiz import QuizQuestion  # noqa: F401
from .learner import LearnerConfigRecord, IdCounter  # noqa: F401
