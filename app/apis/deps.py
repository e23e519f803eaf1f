from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from app.core.config import settings
from app.modules.articles.templates import TemplateProvider
from app.modules.llm.client import TextGenerator, build_generator_by_settings


async def learner_id_from_header(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
) -> str:
    """Resolve the opaque learner identity every request must carry."""
    learner_id = (x_user_id or "").strip()
    if not learner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-User-ID header",
        )
    return learner_id


LearnerId = Annotated[str, Depends(learner_id_from_header)]


def get_templates(request: Request) -> TemplateProvider:
    templates = getattr(request.app.state, "templates", None)
    if templates is None:
        templates = TemplateProvider(settings.generation.templates_dir)
        request.app.state.templates = templates
    return templates


def get_generator(request: Request) -> TextGenerator:
    """Generator shared by all requests; built on first use."""
    generator = getattr(request.app.state, "generator", None)
    if generator is None:
        generator = build_generator_by_settings()
        request.app.state.generator = generator
    return generator
