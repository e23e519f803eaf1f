"""Article generation module exports."""

from .errors import PersistenceConflict, PipelineFailed, RunStage
from .gateway import ArticleBundle, PersistenceGateway
from .pipeline import ArticlePipeline, PipelineResult
from .templates import TemplateProvider

__all__ = [
    "PersistenceConflict",
    "PipelineFailed",
    "RunStage",
    "ArticleBundle",
    "PersistenceGateway",
    "ArticlePipeline",
    "PipelineResult",
    "TemplateProvider",
]
