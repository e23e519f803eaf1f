from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.apis.deps import LearnerId
from app.apis.stats.schemas import StatsOverview
from app.core.config import settings
from app.core.db.base import get_session
from app.core.db_services import StatsService
from app.modules.vocabulary.lifecycle import utcnow


router = APIRouter()


@router.get(
    f"/{settings.app.version}/stats",
    response_model=StatsOverview,
    tags=["stats"],
)
async def get_stats(
    learner_id: LearnerId,
    session: AsyncSession = Depends(get_session),
) -> StatsOverview:
    overview = await StatsService(session).overview(learner_id, utcnow())
    return StatsOverview.model_validate(overview)
