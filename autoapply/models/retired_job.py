"""Retired job ids - ids of rejected postings, never handed out again."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class RetiredJobId(Base):
    __tablename__ = "retired_job_ids"

    job_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    retired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
