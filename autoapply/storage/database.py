"""Persistence for the scheduler checkpoint, the job set and cycle history."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from autoapply.errors import PersistenceUnavailable
from autoapply.jobs.models import JobPosting, JobStatus
from autoapply.models import (
    CHECKPOINT_ROW_ID,
    CycleRun,
    JobRecord,
    RetiredJobId,
    SchedulerCheckpoint,
    create_session_factory,
)

logger = logging.getLogger("autoapply.storage")


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class StateStore:
    """Database-backed store for orchestrator state.

    The engine is created lazily, so an unreachable database at startup is
    retried on the next call instead of crashing the process. Every database
    error surfaces as PersistenceUnavailable.
    """

    def __init__(self, database_url: str = "sqlite:///data/autoapply.db", session_factory: Optional[sessionmaker] = None):
        self.database_url = database_url
        self._factory = session_factory
        self._factory_lock = threading.Lock()

    def _get_factory(self) -> sessionmaker:
        with self._factory_lock:
            if self._factory is None:
                try:
                    self._factory = create_session_factory(self.database_url)
                except (SQLAlchemyError, OSError) as e:
                    raise PersistenceUnavailable(f"Cannot open database: {e}") from e
            return self._factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        factory = self._get_factory()
        try:
            with factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e)
            raise PersistenceUnavailable(str(e)) from e

    # -- checkpoint -------------------------------------------------------------

    def load_checkpoint(self) -> Optional[datetime]:
        with self._session() as session:
            row = session.get(SchedulerCheckpoint, CHECKPOINT_ROW_ID)
            return _aware(row.last_cycle_at) if row else None

    def save_checkpoint(self, value: datetime) -> datetime:
        """Store ``value`` unless an equal or later checkpoint is already stored.

        Returns the checkpoint now on record.
        """
        value = _aware(value)
        with self._session() as session:
            row = session.get(SchedulerCheckpoint, CHECKPOINT_ROW_ID)
            if row is None:
                session.add(SchedulerCheckpoint(id=CHECKPOINT_ROW_ID, last_cycle_at=value))
                return value
            stored = _aware(row.last_cycle_at)
            if value > stored:
                row.last_cycle_at = value
                return value
            logger.debug("Ignoring checkpoint %s, stored %s is not older", value, stored)
            return stored

    # -- job set ----------------------------------------------------------------

    def load_jobs(self) -> list[JobPosting]:
        with self._session() as session:
            rows = session.scalars(select(JobRecord).order_by(JobRecord.position)).all()
            jobs = []
            for row in rows:
                try:
                    jobs.append(self._to_posting(row))
                except (ValueError, KeyError) as e:
                    logger.warning("Skipping unreadable job record %s: %s", row.id, e)
            return jobs

    def save_jobs(self, jobs: list[JobPosting]) -> None:
        """Replace the stored job set with ``jobs`` in one transaction."""
        with self._session() as session:
            session.execute(delete(JobRecord))
            for position, job in enumerate(jobs):
                session.add(self._to_record(job, position))

    def load_retired_ids(self) -> set[str]:
        with self._session() as session:
            return set(session.scalars(select(RetiredJobId.job_id)).all())

    def retire_job_id(self, job_id: str) -> None:
        with self._session() as session:
            if session.get(RetiredJobId, job_id) is None:
                session.add(RetiredJobId(job_id=job_id))

    @staticmethod
    def _to_record(job: JobPosting, position: int) -> JobRecord:
        data = job.to_dict()
        return JobRecord(
            id=job.id,
            position=position,
            title=job.title,
            company=job.company,
            location=job.location,
            description=job.description,
            source=job.source,
            posted_date=job.posted_date,
            url=job.url,
            contact_email=job.contact_email,
            status=job.status.value,
            match_score=job.match_score,
            match_reasoning=job.match_reasoning,
            missing_skills=data["missing_skills"],
            match_breakdown=data["match_breakdown"],
            extracted_requirements=data["extracted_requirements"],
            application_materials=data["application_materials"],
            discovered_at=job.discovered_at,
        )

    @staticmethod
    def _to_posting(row: JobRecord) -> JobPosting:
        return JobPosting.from_dict({
            "id": row.id,
            "title": row.title,
            "company": row.company,
            "location": row.location,
            "description": row.description,
            "source": row.source,
            "posted_date": row.posted_date,
            "url": row.url,
            "contact_email": row.contact_email,
            "status": JobStatus(row.status).value,
            "match_score": row.match_score,
            "match_reasoning": row.match_reasoning,
            "missing_skills": row.missing_skills or [],
            "match_breakdown": row.match_breakdown,
            "extracted_requirements": row.extracted_requirements,
            "application_materials": row.application_materials,
            "discovered_at": _aware(row.discovered_at),
        })

    # -- cycle history ----------------------------------------------------------

    def record_cycle(
        self,
        trigger: str,
        success: bool,
        run_at: Optional[datetime] = None,
        jobs_discovered: int = 0,
        new_jobs_added: int = 0,
        discovery_outcome: Optional[str] = None,
        digest_mode: Optional[str] = None,
        error_message: Optional[str] = None,
        duration_seconds: Optional[float] = None,
    ) -> None:
        with self._session() as session:
            session.add(CycleRun(
                run_at=run_at or datetime.now(timezone.utc),
                trigger=trigger,
                success=success,
                jobs_discovered=jobs_discovered,
                new_jobs_added=new_jobs_added,
                discovery_outcome=discovery_outcome,
                digest_mode=digest_mode,
                error_message=error_message,
                duration_seconds=duration_seconds,
            ))

    def recent_cycles(self, limit: int = 10) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(
                select(CycleRun).order_by(CycleRun.id.desc()).limit(limit)
            ).all()
            return [
                {
                    "run_at": _aware(row.run_at).isoformat(),
                    "trigger": row.trigger,
                    "success": row.success,
                    "jobs_discovered": row.jobs_discovered,
                    "new_jobs_added": row.new_jobs_added,
                    "discovery_outcome": row.discovery_outcome,
                    "digest_mode": row.digest_mode,
                    "error_message": row.error_message,
                    "duration_seconds": row.duration_seconds,
                }
                for row in rows
            ]

    def get_stats(self) -> dict:
        with self._session() as session:
            total_runs = session.scalar(select(func.count(CycleRun.id))) or 0
            failed_runs = session.scalar(
                select(func.count(CycleRun.id)).where(CycleRun.success.is_(False))
            ) or 0
            rows = session.execute(
                select(JobRecord.status, func.count(JobRecord.id)).group_by(JobRecord.status)
            ).all()
        return {
            "total_runs": total_runs,
            "failed_runs": failed_runs,
            "jobs_by_status": {status: count for status, count in rows},
        }
