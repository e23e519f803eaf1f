from .config import (  # noqa: F401
    GenerationOverrides,
    GenerationRequest,
    LearnerConfig,
    WritingSystem,
)
from .article import (  # noqa: F401
    Discovery,
    GrammarPoint,
    PassageDraft,
    SourceFinding,
    VocabularyCandidate,
)
from .quiz import FREE_RESPONSE_TYPES, QuizItemDraft, QuizSet  # noqa: F401
