"""ORM models for the orchestrator's persisted state."""

from .base import Base, create_session_factory, normalize_database_url
from .checkpoint import CHECKPOINT_ROW_ID, SchedulerCheckpoint
from .cycle_run import CycleRun
from .job_record import JobRecord
from .retired_job import RetiredJobId

__all__ = [
    "Base",
    "create_session_factory",
    "normalize_database_url",
    "SchedulerCheckpoint",
    "CHECKPOINT_ROW_ID",
    "JobRecord",
    "CycleRun",
    "RetiredJobId",
]
