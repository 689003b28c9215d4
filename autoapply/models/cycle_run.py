"""Cycle history - one row per scheduled or manual discovery/digest cycle."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CycleRun(Base):
    __tablename__ = "cycle_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    trigger: Mapped[str] = mapped_column(String(20), default="scheduled")  # scheduled, manual
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    jobs_discovered: Mapped[int] = mapped_column(Integer, default=0)
    new_jobs_added: Mapped[int] = mapped_column(Integer, default=0)
    discovery_outcome: Mapped[str | None] = mapped_column(String(30), nullable=True)
    digest_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
