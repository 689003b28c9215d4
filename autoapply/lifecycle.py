"""JobLifecycle: per-job status transitions, their preconditions and side effects.

    discovered -> extracted -> matched -> applied
    any non-applied status -> rejected (the record is deleted)

Extraction and matching may be re-run in place without changing status.
Applying is two-phase: ``request_draft`` stages editable materials, and
``commit`` dispatches them and only then marks the job applied.
"""

import copy
import logging
import secrets
import string
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from autoapply.errors import DispatchFailure, JobNotFound, StateViolation, TransientProviderError
from autoapply.events import EventLog, Severity, Subsystem
from autoapply.jobs.dedup import merge_postings
from autoapply.jobs.models import (
    STAGE_ORDER,
    ApplicationDraft,
    ApplicationMaterials,
    JobPosting,
    JobStatus,
)
from autoapply.notifications.dispatcher import DispatchGateway, DispatchMode, DispatchResult
from autoapply.notifications.templates import application_subject, cover_letter_filename
from autoapply.profile.models import ProfileStore
from autoapply.providers.gateway import GatewayResult, ProviderGateway

logger = logging.getLogger("autoapply.lifecycle")

_TRACKING_ALPHABET = string.ascii_uppercase + string.digits


def new_tracking_id() -> str:
    return "TRK-" + "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(7))


@dataclass
class CommitResult:
    job: JobPosting
    dispatch: DispatchResult


def _severity_for(result: GatewayResult) -> Severity:
    return Severity.WARNING if result.degraded else Severity.SUCCESS


def _fallback_note(result: GatewayResult) -> str:
    return f" (heuristic default: {result.error})" if result.degraded else ""


class JobLifecycle:
    """Owns the ordered job set and the staged drafts.

    Callers serialize mutations through the orchestrator's coordination lock;
    the internal lock only keeps concurrent readers from seeing a half-updated
    list. Gateway calls happen outside that lock.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        dispatcher: DispatchGateway,
        events: EventLog,
        profiles: ProfileStore,
        jobs: Optional[Iterable[JobPosting]] = None,
        on_change: Optional[Callable[[list[JobPosting]], None]] = None,
        retired_ids: Optional[Iterable[str]] = None,
        on_retire: Optional[Callable[[str], None]] = None,
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.events = events
        self.profiles = profiles
        self._on_change = on_change
        self._lock = threading.RLock()
        self._jobs: list[JobPosting] = list(jobs or [])
        self._drafts: dict[str, ApplicationDraft] = {}
        # ids of rejected jobs; never reused for a later posting
        self._retired_ids: set[str] = set(retired_ids or ())
        self._on_retire = on_retire

    # -- reads ----------------------------------------------------------------

    def jobs(self) -> list[JobPosting]:
        with self._lock:
            return copy.deepcopy(self._jobs)

    def get(self, job_id: str) -> JobPosting:
        with self._lock:
            return copy.deepcopy(self._find(job_id))

    def get_draft(self, job_id: str) -> Optional[ApplicationDraft]:
        with self._lock:
            draft = self._drafts.get(job_id)
            return copy.deepcopy(draft) if draft else None

    def applied_jobs(self) -> list[JobPosting]:
        """Applied postings, most recently sent first."""
        applied = [job for job in self.jobs() if job.status == JobStatus.APPLIED]
        applied.sort(key=lambda job: job.application_materials.sent_at, reverse=True)
        return applied

    def status_counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in STAGE_ORDER}
        for job in self.jobs():
            counts[job.status.value] += 1
        return counts

    def _find(self, job_id: str) -> JobPosting:
        for job in self._jobs:
            if job.id == job_id:
                return job
        raise JobNotFound(job_id)

    # -- ingestion --------------------------------------------------------------

    def ingest(self, postings: Iterable[JobPosting]) -> list[JobPosting]:
        """Merge newly discovered postings; returns the ones actually added."""
        with self._lock:
            result = merge_postings(self._jobs, copy.deepcopy(list(postings)), self._retired_ids)
            for job in result.added:
                job.status = JobStatus.DISCOVERED
                job.application_materials = None
            self._jobs = result.jobs
        if result.added:
            self._changed()
        return copy.deepcopy(result.added)

    # -- transitions ------------------------------------------------------------

    def extract(self, job_id: str) -> JobPosting:
        """discovered -> extracted, or re-extract in place."""
        job = self.get(job_id)
        self._require(job, {JobStatus.DISCOVERED, JobStatus.EXTRACTED, JobStatus.MATCHED}, "extract requirements for")
        if not job.description.strip():
            self.events.error(Subsystem.EXTRACTION, f"Cannot extract {job.title}: posting has no description")
            raise StateViolation(f"Job {job_id} has no description to extract requirements from")

        result = self._call_gateway(
            Subsystem.EXTRACTION, f"Extraction error for {job.title}",
            lambda: self.gateway.extract(job.description, self.profiles.get()),
        )

        with self._lock:
            target = self._find(job_id)
            target.extracted_requirements = result.value
            self._advance(target, JobStatus.EXTRACTED)
        self._changed()

        req = result.value
        self.events.append(
            Subsystem.EXTRACTION,
            f"Extraction complete for {job.title}: {len(req.must_have)} must-have, "
            f"{len(req.nice_to_have)} nice-to-have{_fallback_note(result)}",
            _severity_for(result),
        )
        return self.get(job_id)

    def match(self, job_id: str) -> JobPosting:
        """discovered/extracted -> matched, or re-match in place. A low score still advances."""
        job = self.get(job_id)
        self._require(job, {JobStatus.DISCOVERED, JobStatus.EXTRACTED, JobStatus.MATCHED}, "match")

        result = self._call_gateway(
            Subsystem.MATCHING, f"Matching failed for {job.title}",
            lambda: self.gateway.match(job, self.profiles.get()),
        )

        match = result.value
        with self._lock:
            target = self._find(job_id)
            target.match_score = match.score
            target.match_reasoning = match.reasoning
            target.missing_skills = list(match.missing_skills)
            target.match_breakdown = match.breakdown
            self._advance(target, JobStatus.MATCHED)
        self._changed()

        self.events.append(
            Subsystem.MATCHING,
            f"Match analysis complete for {job.title} @ {job.company}: {match.score}% fit{_fallback_note(result)}",
            _severity_for(result),
        )
        return self.get(job_id)

    def request_draft(self, job_id: str) -> ApplicationDraft:
        """Stage (or regenerate) application materials. Never changes status."""
        job = self.get(job_id)
        self._require(job, {JobStatus.MATCHED}, "draft an application for")

        result = self._call_gateway(
            Subsystem.SUBMISSION, f"Drafting failed for {job.title}",
            lambda: self.gateway.draft(job, self.profiles.get()),
        )

        with self._lock:
            self._find(job_id)
            self._drafts[job_id] = result.value

        self.events.append(
            Subsystem.SUBMISSION,
            f"Draft ready for review: {job.title} @ {job.company}{_fallback_note(result)}",
            _severity_for(result),
        )
        return copy.deepcopy(result.value)

    def commit(
        self,
        job_id: str,
        email_body: Optional[str] = None,
        cover_letter: Optional[str] = None,
    ) -> CommitResult:
        """Dispatch the staged (optionally edited) draft and mark the job applied."""
        job = self.get(job_id)
        with self._lock:
            draft = self._drafts.get(job_id)
            if draft is None:
                raise StateViolation(f"Job {job_id} has no draft to commit; request a draft first")
            self._require(job, {JobStatus.MATCHED}, "commit an application for")
            # Keep the operator's edits staged so a failed dispatch can be retried
            if email_body is not None:
                draft.email_body = email_body
            if cover_letter is not None:
                draft.cover_letter = cover_letter
            draft = copy.deepcopy(draft)

        profile = self.profiles.get()
        attachments = [profile.cv_filename, cover_letter_filename(job.company)]
        recipient = job.contact_email or profile.personal_info.email

        try:
            dispatch = self.dispatcher.send(
                to=recipient,
                subject=application_subject(job, profile),
                body=draft.email_body,
                attachments=attachments,
                relay_endpoint=profile.preferences.relay_url or None,
                cover_letter=draft.cover_letter,
            )
        except DispatchFailure as e:
            self.events.error(Subsystem.SUBMISSION, f"Dispatch failed for {job.title}: {e}")
            raise
        except Exception as e:
            logger.exception("Unexpected dispatch error for %s", job_id)
            self.events.error(Subsystem.SUBMISSION, f"Dispatch failed for {job.title}: {e}")
            raise DispatchFailure(str(e)) from e

        materials = ApplicationMaterials(
            email_body=draft.email_body,
            cover_letter=draft.cover_letter,
            sent_at=datetime.now(timezone.utc),
            tracking_id=new_tracking_id(),
            attachments=attachments,
            dispatch_mode=dispatch.mode.value,
            delivery_status="submitted" if dispatch.mode == DispatchMode.RELAY else "pending",
            handoff_uri=dispatch.handoff_uri,
        )
        with self._lock:
            target = self._find(job_id)
            target.application_materials = materials
            self._advance(target, JobStatus.APPLIED)
            self._drafts.pop(job_id, None)
        self._changed()

        if dispatch.mode == DispatchMode.RELAY:
            message = f"Application for {job.title} submitted via relay ({materials.tracking_id})"
        else:
            message = (
                f"Application for {job.title} handed off to local mail client ({materials.tracking_id}); "
                f"attach manually: {', '.join(attachments)}"
            )
        self.events.success(Subsystem.SUBMISSION, message)
        return CommitResult(job=self.get(job_id), dispatch=dispatch)

    def reject(self, job_id: str) -> None:
        """Delete a non-applied job. Irreversible."""
        with self._lock:
            job = self._find(job_id)
            if job.status == JobStatus.APPLIED:
                raise StateViolation(f"Job {job_id} is already applied and cannot be rejected")
            self._jobs = [j for j in self._jobs if j.id != job_id]
            self._drafts.pop(job_id, None)
            self._retired_ids.add(job_id)
        if self._on_retire is not None:
            self._on_retire(job_id)
        self._changed()
        self.events.info(Subsystem.ORCHESTRATOR, f"Job {job.title} @ {job.company} rejected and removed from stream")

    # -- helpers --------------------------------------------------------------

    def _require(self, job: JobPosting, allowed: set[JobStatus], action: str) -> None:
        if job.status not in allowed:
            raise StateViolation(
                f"Cannot {action} job {job.id} in status '{job.status.value}' "
                f"(allowed: {', '.join(sorted(s.value for s in allowed))})"
            )

    def _advance(self, job: JobPosting, status: JobStatus) -> None:
        """Move forward only; re-running an earlier stage leaves status alone."""
        if STAGE_ORDER[status] > STAGE_ORDER[job.status]:
            job.status = status

    def _call_gateway(self, subsystem: Subsystem, failure: str, call: Callable[[], GatewayResult]) -> GatewayResult:
        try:
            return call()
        except Exception as e:
            logger.exception("%s", failure)
            self.events.error(subsystem, f"{failure}: {e}")
            raise TransientProviderError(f"{failure}: {e}") from e

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.jobs())
