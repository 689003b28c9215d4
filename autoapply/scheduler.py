"""Background scheduler - polls on a fixed interval and runs a cycle once the checkpoint is due.

A cycle is discover -> dedup/merge -> summarize -> dispatch the digest to the
candidate's own address. The checkpoint only advances after the whole cycle
succeeds; a failed cycle is retried in full on the next poll.
"""

import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autoapply.config import SchedulerConfig
from autoapply.coordination import CoordinationLock
from autoapply.errors import CycleInProgress, PersistenceUnavailable
from autoapply.events import EventLog, Subsystem
from autoapply.lifecycle import JobLifecycle
from autoapply.notifications.dispatcher import DispatchGateway
from autoapply.notifications.templates import digest_subject
from autoapply.profile.models import ProfileStore
from autoapply.providers.gateway import Outcome, ProviderGateway
from autoapply.storage.database import StateStore

logger = logging.getLogger("autoapply.scheduler")

POLL_JOB_ID = "autoapply_poll"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleReport:
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    success: bool = False
    discovered: int = 0
    added: int = 0
    discovery_outcome: Optional[str] = None
    digest_mode: Optional[str] = None
    handoff_uri: Optional[str] = None
    error: Optional[str] = None
    new_job_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "success": self.success,
            "discovered": self.discovered,
            "added": self.added,
            "discovery_outcome": self.discovery_outcome,
            "digest_mode": self.digest_mode,
            "handoff_uri": self.handoff_uri,
            "error": self.error,
            "new_job_ids": list(self.new_job_ids),
        }


class CycleScheduler:
    """Owns the checkpoint and the polling timer."""

    def __init__(
        self,
        config: SchedulerConfig,
        lifecycle: JobLifecycle,
        gateway: ProviderGateway,
        dispatcher: DispatchGateway,
        profiles: ProfileStore,
        events: EventLog,
        store: StateStore,
        gate: CoordinationLock,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config
        self.lifecycle = lifecycle
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.profiles = profiles
        self.events = events
        self.store = store
        self.gate = gate
        self.clock = clock

        self._scheduler: Optional[BackgroundScheduler] = None
        self._checkpoint: Optional[datetime] = None
        self._checkpoint_loaded = False
        self._checkpoint_dirty = False
        self._seeded = False

    # -- checkpoint -------------------------------------------------------------

    @property
    def cycle_length(self) -> timedelta:
        return timedelta(hours=self.config.cycle_hours)

    @property
    def checkpoint(self) -> datetime:
        if self._checkpoint is None:
            self.sync_persistence()
        return self._checkpoint

    @property
    def checkpoint_persisted(self) -> bool:
        return self._checkpoint_loaded and not self._checkpoint_dirty

    def next_cycle_at(self) -> datetime:
        return self.checkpoint + self.cycle_length

    def time_until_next_cycle(self) -> timedelta:
        return max(self.next_cycle_at() - self.clock(), timedelta(0))

    def is_due(self) -> bool:
        return self.clock() - self.checkpoint >= self.cycle_length

    def sync_persistence(self) -> None:
        """Load the stored checkpoint if not yet loaded, and flush an unsaved one.

        Persistence failures are logged and retried on the next poll; they
        never stop cycles from running in memory.
        """
        if not self._checkpoint_loaded:
            try:
                stored = self.store.load_checkpoint()
            except PersistenceUnavailable as e:
                if self._checkpoint is None:
                    self._checkpoint = self._seed_checkpoint()
                    self.events.warning(
                        Subsystem.SCHEDULER,
                        f"Checkpoint unavailable ({e}); running from memory until storage recovers",
                    )
                return
            self._checkpoint_loaded = True
            if stored is None:
                if self._checkpoint is None:
                    self._checkpoint = self._seed_checkpoint()
            elif self._checkpoint is None or self._seeded or stored >= self._checkpoint:
                self._checkpoint = stored
                self._seeded = False
            else:
                # A cycle completed while storage was down
                self._checkpoint_dirty = True

        if self._checkpoint_dirty:
            self._persist_checkpoint()

    def _seed_checkpoint(self) -> datetime:
        seeded = self.clock() - timedelta(hours=self.config.initial_lag_hours)
        self._seeded = True
        logger.info("No stored checkpoint, seeding %s", seeded.isoformat())
        return seeded

    def _advance_checkpoint(self, completed_at: datetime) -> None:
        if self._checkpoint is None or completed_at > self._checkpoint:
            self._checkpoint = completed_at
            self._checkpoint_dirty = True
            self._seeded = False
        self._persist_checkpoint()

    def _persist_checkpoint(self) -> None:
        if not self._checkpoint_loaded:
            # Never overwrite a stored value we have not read yet
            return
        try:
            self._checkpoint = self.store.save_checkpoint(self._checkpoint)
        except PersistenceUnavailable as e:
            self.events.warning(Subsystem.SCHEDULER, f"Checkpoint not persisted ({e}); will retry on next poll")
            return
        self._checkpoint_dirty = False

    # -- timer ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self._scheduler is not None:
            return
        self._scheduler = BackgroundScheduler(timezone=timezone.utc)
        self._scheduler.add_listener(self._job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED)
        self._scheduler.add_job(
            self.poll,
            trigger=IntervalTrigger(seconds=self.config.poll_interval_seconds, timezone=timezone.utc),
            id=POLL_JOB_ID,
            name="Cycle poll",
            next_run_time=datetime.now(timezone.utc),
            coalesce=True,
            max_instances=1,
            misfire_grace_time=self.config.poll_interval_seconds,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started: poll every %ss, cycle every %sh",
                    self.config.poll_interval_seconds, self.config.cycle_hours)

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Scheduler stopped")

    def _job_listener(self, event) -> None:
        if event.exception:
            logger.error("Poll %s FAILED: %s\n%s", event.job_id, event.exception, event.traceback)
        elif event.code == EVENT_JOB_MISSED:
            logger.warning("Poll %s MISSED its fire time", event.job_id)
        else:
            logger.debug("Poll %s executed", event.job_id)

    def poll(self) -> Optional[CycleReport]:
        """Timer body: run a scheduled cycle when due. Returns the report, or None if nothing ran."""
        self.sync_persistence()
        if not self.is_due():
            logger.debug("Next cycle in %s", self.time_until_next_cycle())
            return None
        try:
            return self.run_cycle("scheduled")
        except CycleInProgress as e:
            logger.info("Skipping scheduled cycle: %s", e)
            return None

    # -- cycle ------------------------------------------------------------------

    def run_cycle(self, trigger: str = "manual") -> CycleReport:
        """Run one cycle under the coordination lock.

        Raises CycleInProgress if another cycle or operator action is running.
        Cycle failures are reported, not raised.
        """
        with self.gate.hold(f"{trigger} cycle"):
            self.sync_persistence()
            return self._run_cycle_body(trigger)

    def _run_cycle_body(self, trigger: str) -> CycleReport:
        started = time.monotonic()
        report = CycleReport(trigger=trigger, started_at=self.clock())
        profile = self.profiles.get()

        if trigger == "manual":
            self.events.info(Subsystem.ORCHESTRATOR, "Manual override: forcing discovery sync...")
        else:
            self.events.info(
                Subsystem.SCHEDULER,
                f"Scheduled trigger: initiating sync via {profile.preferences.ai_provider.value.upper()}...",
            )

        try:
            discovery = self.gateway.discover(profile)
            report.discovered = len(discovery.value)
            report.discovery_outcome = discovery.outcome.value
            self._log_discovery(discovery)

            added = self.lifecycle.ingest(discovery.value)
            report.added = len(added)
            report.new_job_ids = [job.id for job in added]
            if discovery.value:
                self.events.info(
                    Subsystem.DISCOVERY,
                    f"{len(added)} new roles merged ({report.discovered - len(added)} already known). "
                    "Awaiting approval in the command center.",
                )

            newest = added[: self.config.digest_size]
            summary = self.gateway.summarize(newest, profile.personal_info.name, profile)
            if summary.degraded:
                self.events.warning(Subsystem.SCHEDULER, f"Digest written from template ({summary.error})")

            dispatch = self.dispatcher.send(
                to=profile.personal_info.email,
                subject=digest_subject(trigger, self.clock()),
                body=summary.value,
                relay_endpoint=profile.preferences.relay_url or None,
            )
            report.digest_mode = dispatch.mode.value
            report.handoff_uri = dispatch.handoff_uri

            self._advance_checkpoint(self.clock())
            report.success = True
            subsystem = Subsystem.ORCHESTRATOR if trigger == "manual" else Subsystem.SCHEDULER
            self.events.success(
                subsystem,
                f"{'Manual' if trigger == 'manual' else 'Daily'} sync successful: "
                f"{report.added} new roles, digest via {dispatch.mode.value}.",
            )
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.error("%s cycle failed: %s\n%s", trigger, report.error, traceback.format_exc())
            subsystem = Subsystem.ORCHESTRATOR if trigger == "manual" else Subsystem.SCHEDULER
            self.events.error(subsystem, f"{trigger.capitalize()} cycle failed: {report.error}")
        finally:
            report.finished_at = self.clock()
            self._record(report, round(time.monotonic() - started, 2))

        return report

    def _log_discovery(self, discovery) -> None:
        count = len(discovery.value)
        if discovery.outcome == Outcome.OK:
            self.events.success(Subsystem.DISCOVERY, f"Found {count} roles via {discovery.provider}.")
        elif discovery.outcome == Outcome.FALLBACK:
            self.events.warning(
                Subsystem.DISCOVERY,
                f"Provider search unavailable; public board returned {count} matching roles.",
            )
        else:
            self.events.warning(Subsystem.DISCOVERY, f"No discovery source reachable ({discovery.error}).")

    def _record(self, report: CycleReport, duration: float) -> None:
        try:
            self.store.record_cycle(
                trigger=report.trigger,
                success=report.success,
                run_at=report.started_at,
                jobs_discovered=report.discovered,
                new_jobs_added=report.added,
                discovery_outcome=report.discovery_outcome,
                digest_mode=report.digest_mode,
                error_message=report.error,
                duration_seconds=duration,
            )
        except PersistenceUnavailable as e:
            self.events.warning(Subsystem.SCHEDULER, f"Cycle history not recorded: {e}")
