from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.base import Base


class LearnerConfigRecord(Base):
    """Keys the learner changed; everything else falls back to the defaults."""

    __tablename__ = "learner_config"

    learner_id: Mapped[str] = mapped_column(String, primary_key=True)
    overrides: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class IdCounter(Base):
    __tablename__ = "id_counters"

    collection: Mapped[str] = mapped_column(String, primary_key=True)
    next_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


__all__ = ["LearnerConfigRecord", "IdCounter"]
