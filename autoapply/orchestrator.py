"""Orchestrator - wires the components together and exposes the operator-facing surface."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from autoapply.config import AppConfig
from autoapply.coordination import CoordinationLock
from autoapply.errors import PersistenceUnavailable
from autoapply.events import EventLog, LogEvent, Subsystem
from autoapply.jobs.models import ApplicationDraft, JobPosting
from autoapply.lifecycle import CommitResult, JobLifecycle
from autoapply.notifications.dispatcher import DispatchGateway
from autoapply.profile.models import CandidateProfile, ProfileStore
from autoapply.providers.gateway import ProviderGateway
from autoapply.scheduler import CycleReport, CycleScheduler
from autoapply.storage.database import StateStore

logger = logging.getLogger("autoapply.orchestrator")


class Orchestrator:
    """Single owner of the job set and checkpoint.

    Every mutating action (cycles and operator actions alike) runs under one
    CoordinationLock; a second concurrent request fails fast with
    CycleInProgress. Reads never take that lock.
    """

    def __init__(
        self,
        config: AppConfig,
        gateway: Optional[ProviderGateway] = None,
        dispatcher: Optional[DispatchGateway] = None,
        store: Optional[StateStore] = None,
        profiles: Optional[ProfileStore] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.events = events or EventLog()
        self.profiles = profiles or ProfileStore(config.profile)
        self.gateway = gateway or ProviderGateway(config.providers)
        self.dispatcher = dispatcher or DispatchGateway(timeout=config.dispatch.relay_timeout)
        self.store = store or StateStore(config.database_url)
        self.gate = CoordinationLock()
        self._jobs_persisted = True

        self.lifecycle = JobLifecycle(
            gateway=self.gateway,
            dispatcher=self.dispatcher,
            events=self.events,
            profiles=self.profiles,
            jobs=self._load_jobs(),
            on_change=self._persist_jobs,
            retired_ids=self._load_retired_ids(),
            on_retire=self._persist_retired_id,
        )
        scheduler_kwargs = {"clock": clock} if clock else {}
        self.scheduler = CycleScheduler(
            config=config.scheduler,
            lifecycle=self.lifecycle,
            gateway=self.gateway,
            dispatcher=self.dispatcher,
            profiles=self.profiles,
            events=self.events,
            store=self.store,
            gate=self.gate,
            **scheduler_kwargs,
        )

        self._seed_jobs()
        self.events.info(Subsystem.ORCHESTRATOR, "System command center initialized.")

    # -- startup ----------------------------------------------------------------

    def _load_jobs(self) -> list[JobPosting]:
        try:
            jobs = self.store.load_jobs()
        except PersistenceUnavailable as e:
            self._jobs_persisted = False
            self.events.warning(
                Subsystem.ORCHESTRATOR,
                f"Stored job set could not be loaded ({e}); starting with an empty set",
            )
            return []
        logger.info("Loaded %d stored jobs", len(jobs))
        return jobs

    def _load_retired_ids(self) -> set[str]:
        try:
            return self.store.load_retired_ids()
        except PersistenceUnavailable as e:
            logger.warning("Retired job ids could not be loaded: %s", e)
            return set()

    def _seed_jobs(self) -> None:
        seeds = []
        for raw in self.config.seed_jobs:
            try:
                seeds.append(JobPosting.from_dict(raw))
            except (KeyError, ValueError) as e:
                self.events.warning(Subsystem.ORCHESTRATOR, f"Ignoring invalid seed job {raw!r:.80}: {e}")
        if seeds:
            added = self.lifecycle.ingest(seeds)
            logger.info("Seeded %d/%d jobs from config", len(added), len(seeds))

    def _persist_jobs(self, jobs: list[JobPosting]) -> None:
        try:
            self.store.save_jobs(jobs)
        except PersistenceUnavailable as e:
            if self._jobs_persisted:
                self.events.warning(
                    Subsystem.ORCHESTRATOR,
                    f"Job set not persisted ({e}); recent changes will be lost on restart",
                )
            self._jobs_persisted = False
            return
        if not self._jobs_persisted:
            self.events.info(Subsystem.ORCHESTRATOR, "Job set persistence recovered.")
        self._jobs_persisted = True

    def _persist_retired_id(self, job_id: str) -> None:
        try:
            self.store.retire_job_id(job_id)
        except PersistenceUnavailable as e:
            logger.warning("Retired id %s not persisted: %s", job_id, e)

    def start(self) -> None:
        if self.config.scheduler.enabled:
            self.scheduler.start()
        else:
            logger.info("Scheduler disabled in config")

    def stop(self) -> None:
        self.scheduler.stop()

    # -- reads ----------------------------------------------------------------

    def jobs(self) -> list[JobPosting]:
        return self.lifecycle.jobs()

    def get_job(self, job_id: str) -> JobPosting:
        return self.lifecycle.get(job_id)

    def get_draft(self, job_id: str) -> Optional[ApplicationDraft]:
        self.lifecycle.get(job_id)
        return self.lifecycle.get_draft(job_id)

    def applied_jobs(self) -> list[JobPosting]:
        return self.lifecycle.applied_jobs()

    def event_log(self, since: int = 0) -> list[LogEvent]:
        return self.events.since(since)

    def checkpoint(self) -> datetime:
        return self.scheduler.checkpoint

    def next_cycle_at(self) -> datetime:
        return self.scheduler.next_cycle_at()

    def time_until_next_cycle(self) -> timedelta:
        return self.scheduler.time_until_next_cycle()

    @property
    def busy(self) -> bool:
        return self.gate.busy

    def profile(self) -> CandidateProfile:
        return self.profiles.get()

    def update_profile(self, profile: CandidateProfile) -> None:
        self.profiles.update(profile)
        self.events.info(Subsystem.ORCHESTRATOR, "Candidate profile updated.")

    def schedule_status(self) -> dict:
        return {
            "checkpoint": self.checkpoint().isoformat(),
            "next_cycle_at": self.next_cycle_at().isoformat(),
            "seconds_until_next_cycle": int(self.time_until_next_cycle().total_seconds()),
            "checkpoint_persisted": self.scheduler.checkpoint_persisted,
            "scheduler_running": self.scheduler.running,
            "busy": self.gate.busy,
            "in_flight": self.gate.holder,
        }

    def stats(self) -> dict:
        jobs = self.jobs()
        scores = [job.match_score for job in jobs if job.match_score is not None]
        try:
            recent = self.store.recent_cycles(limit=1)
            history = self.store.get_stats()
        except PersistenceUnavailable:
            recent = []
            history = {"total_runs": None, "failed_runs": None}
        return {
            "total_jobs": len(jobs),
            "by_status": self.lifecycle.status_counts(),
            "average_match_score": round(sum(scores) / len(scores), 1) if scores else None,
            "last_cycle": recent[0] if recent else None,
            "total_runs": history["total_runs"],
            "failed_runs": history["failed_runs"],
            "next_cycle_at": self.next_cycle_at().isoformat(),
            "jobs_persisted": self._jobs_persisted,
        }

    # -- operator actions -------------------------------------------------------

    def trigger_manual_cycle(self) -> CycleReport:
        """Run a cycle now. Raises CycleInProgress if one is already running."""
        return self.scheduler.run_cycle("manual")

    def approve(self, job_id: str) -> JobPosting:
        with self.gate.hold(f"extraction of {job_id}"):
            return self.lifecycle.extract(job_id)

    def run_match(self, job_id: str) -> JobPosting:
        with self.gate.hold(f"matching of {job_id}"):
            return self.lifecycle.match(job_id)

    def request_draft(self, job_id: str) -> ApplicationDraft:
        with self.gate.hold(f"drafting for {job_id}"):
            return self.lifecycle.request_draft(job_id)

    def commit_draft(
        self,
        job_id: str,
        email_body: Optional[str] = None,
        cover_letter: Optional[str] = None,
    ) -> CommitResult:
        with self.gate.hold(f"submission of {job_id}"):
            return self.lifecycle.commit(job_id, email_body, cover_letter)

    def reject(self, job_id: str) -> None:
        with self.gate.hold(f"rejection of {job_id}"):
            self.lifecycle.reject(job_id)
