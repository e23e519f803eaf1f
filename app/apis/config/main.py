from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.apis.deps import LearnerId
from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import ConfigService
from app.modules.articles.models import LearnerConfig
from app.modules.vocabulary.lifecycle import utcnow


router = APIRouter()


@router.get(
    f"/{settings.app.version}/config",
    response_model=LearnerConfig,
    tags=["config"],
)
async def get_config(
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> LearnerConfig:
    return await ConfigService(session).load(learner_id)


@router.put(
    f"/{settings.app.version}/config",
    response_model=LearnerConfig,
    tags=["config"],
)
async def update_config(
    learner_id: LearnerId,
    changes: dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_session),
) -> LearnerConfig:
    try:
        return await ConfigService(session).update(learner_id, changes, utcnow())
    except KeyError as e:
        raise HTTPException(status_code=400, detail=f"Unknown config keys: {e.args[0]}")
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=[{"field": ".".join(map(str, err["loc"])), "message": err["msg"]} for err in e.errors()],
        )
