"""Scheduler checkpoint - timestamp of the last fully completed cycle."""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

CHECKPOINT_ROW_ID = 1


class SchedulerCheckpoint(Base):
    __tablename__ = "scheduler_checkpoint"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=CHECKPOINT_ROW_ID)
    last_cycle_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
