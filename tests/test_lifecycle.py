"""Tests for the per-job state machine."""

import pytest

from autoapply.errors import DispatchFailure, JobNotFound, StateViolation, TransientProviderError
from autoapply.events import Severity, Subsystem
from autoapply.jobs.models import JobStatus
from autoapply.lifecycle import JobLifecycle
from autoapply.notifications.dispatcher import DispatchMode
from autoapply.profile.models import ProviderName
from fakes import (
    DRAFT_REPLY,
    EXTRACT_REPLY,
    MATCH_REPLY,
    ScriptedBackend,
    make_gateway,
    make_lifecycle,
    posting,
)

RELAY = "https://relay.example/exec"


@pytest.fixture
def backend():
    return ScriptedBackend(ProviderName.GEMINI)


@pytest.fixture
def lifecycle(backend, dispatcher, events, profiles):
    return make_lifecycle(make_gateway({ProviderName.GEMINI: backend}), dispatcher, events, profiles)


def _ingest(lifecycle, *jobs):
    return [job.id for job in lifecycle.ingest(list(jobs) or [posting()])]


def _matched(lifecycle, backend):
    [job_id] = _ingest(lifecycle)
    backend.replies = [MATCH_REPLY]
    lifecycle.match(job_id)
    return job_id


class _ExplodingGateway:
    """Gateway whose calls raise, as a broken integration would."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise RuntimeError(f"{name} exploded")
        return fail


class TestIngest:
    def test_ingest_sets_discovered_and_prepends(self, lifecycle):
        _ingest(lifecycle, posting("Old", "Acme"))
        added = lifecycle.ingest([posting("New", "Acme", status=JobStatus.MATCHED)])

        assert added[0].status == JobStatus.DISCOVERED
        assert [j.title for j in lifecycle.jobs()] == ["New", "Old"]

    def test_reads_are_copies(self, lifecycle):
        [job_id] = _ingest(lifecycle)
        lifecycle.get(job_id).status = JobStatus.APPLIED
        assert lifecycle.get(job_id).status == JobStatus.DISCOVERED

    def test_on_change_receives_job_set(self, backend, dispatcher, events, profiles):
        snapshots = []
        lifecycle = make_lifecycle(
            make_gateway({ProviderName.GEMINI: backend}), dispatcher, events, profiles, on_change=snapshots.append,
        )
        lifecycle.ingest([posting()])
        lifecycle.ingest([posting()])  # duplicate, no change
        assert len(snapshots) == 1
        assert snapshots[0][0].title == "Data Engineer"

    def test_unknown_job(self, lifecycle):
        with pytest.raises(JobNotFound):
            lifecycle.extract("job-missing")


class TestExtract:
    def test_advances_to_extracted(self, lifecycle, backend, events):
        [job_id] = _ingest(lifecycle)
        backend.replies = [EXTRACT_REPLY]

        job = lifecycle.extract(job_id)

        assert job.status == JobStatus.EXTRACTED
        assert job.extracted_requirements.must_have == ["Python", "SQL"]
        last = events.last()
        assert (last.subsystem, last.severity) == (Subsystem.EXTRACTION, Severity.SUCCESS)

    def test_heuristic_default_still_advances_with_warning(self, lifecycle, backend, events):
        [job_id] = _ingest(lifecycle)
        backend.replies = ["not json at all"]

        job = lifecycle.extract(job_id)

        assert job.status == JobStatus.EXTRACTED
        assert job.extracted_requirements.is_empty
        assert events.last().severity == Severity.WARNING

    def test_empty_description_is_rejected(self, lifecycle, events):
        [job_id] = _ingest(lifecycle, posting(description="   "))

        with pytest.raises(StateViolation):
            lifecycle.extract(job_id)

        assert lifecycle.get(job_id).status == JobStatus.DISCOVERED
        assert events.last().severity == Severity.ERROR

    def test_gateway_failure_does_not_advance(self, dispatcher, events, profiles):
        lifecycle = make_lifecycle(_ExplodingGateway(), dispatcher, events, profiles)
        [job_id] = _ingest(lifecycle)

        with pytest.raises(TransientProviderError):
            lifecycle.extract(job_id)

        assert lifecycle.get(job_id).status == JobStatus.DISCOVERED
        last = events.last()
        assert (last.subsystem, last.severity) == (Subsystem.EXTRACTION, Severity.ERROR)

    def test_reextract_in_place_keeps_status(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [{"must_have": ["Rust"]}]

        job = lifecycle.extract(job_id)

        assert job.status == JobStatus.MATCHED
        assert job.extracted_requirements.must_have == ["Rust"]

    def test_cannot_extract_applied(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY]
        lifecycle.request_draft(job_id)
        lifecycle.commit(job_id)

        with pytest.raises(StateViolation):
            lifecycle.extract(job_id)


class TestMatch:
    def test_directly_from_discovered(self, lifecycle, backend):
        [job_id] = _ingest(lifecycle)
        backend.replies = [MATCH_REPLY]

        job = lifecycle.match(job_id)

        assert job.status == JobStatus.MATCHED
        assert job.match_score == 78
        assert job.match_reasoning == "Strong SQL background."
        assert job.missing_skills == ["Spark"]

    def test_zero_score_still_advances(self, lifecycle, backend):
        [job_id] = _ingest(lifecycle)
        backend.replies = [{"score": 0, "reasoning": "No overlap"}]

        assert lifecycle.match(job_id).status == JobStatus.MATCHED

    def test_rematch_overwrites(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [{"score": 40, "reasoning": "Re-run"}]

        job = lifecycle.match(job_id)

        assert job.match_score == 40
        assert job.status == JobStatus.MATCHED


class TestDraftAndCommit:
    def test_draft_never_changes_status(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY, DRAFT_REPLY, {"emailBody": "v3", "coverLetter": "c3"}]

        for _ in range(3):
            lifecycle.request_draft(job_id)

        assert lifecycle.get(job_id).status == JobStatus.MATCHED
        assert lifecycle.get_draft(job_id).email_body == "v3"

    def test_draft_requires_matched(self, lifecycle):
        [job_id] = _ingest(lifecycle)
        with pytest.raises(StateViolation):
            lifecycle.request_draft(job_id)

    def test_commit_without_draft_is_rejected(self, lifecycle):
        [job_id] = _ingest(lifecycle)
        before = lifecycle.jobs()

        with pytest.raises(StateViolation):
            lifecycle.commit(job_id)

        assert lifecycle.jobs() == before

    def test_commit_via_local_handoff(self, lifecycle, backend, relay_session, events):
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY]
        lifecycle.request_draft(job_id)

        result = lifecycle.commit(job_id)

        assert result.dispatch.mode == DispatchMode.LOCAL_HANDOFF
        assert result.dispatch.handoff_uri.startswith("mailto:hr@acme.example?")
        job = result.job
        assert job.status == JobStatus.APPLIED
        materials = job.application_materials
        assert materials.tracking_id.startswith("TRK-")
        assert len(materials.tracking_id) == 11
        assert materials.attachments == ["Jane_Perera_CV.pdf", "Cover_Letter_Acme.pdf"]
        assert materials.delivery_status == "pending"
        assert lifecycle.get_draft(job_id) is None
        assert relay_session.posts == []
        assert events.last().subsystem == Subsystem.SUBMISSION

    def test_commit_via_relay_uses_edits(self, lifecycle, backend, profiles, relay_session):
        profile = profiles.get()
        profile.preferences.relay_url = RELAY
        profiles.update(profile)
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY]
        lifecycle.request_draft(job_id)

        result = lifecycle.commit(job_id, email_body="Edited body", cover_letter="Edited letter")

        assert result.dispatch.mode == DispatchMode.RELAY
        sent = relay_session.posts[0]["json"]
        assert sent["to"] == "hr@acme.example"
        assert sent["body"] == "Edited body"
        assert sent["coverLetter"] == "Edited letter"
        materials = result.job.application_materials
        assert materials.email_body == "Edited body"
        assert materials.delivery_status == "submitted"

    def test_recipient_falls_back_to_profile_email(self, lifecycle, backend):
        [job_id] = _ingest(lifecycle, posting(contact_email=""))
        backend.replies = [MATCH_REPLY, DRAFT_REPLY]
        lifecycle.match(job_id)
        lifecycle.request_draft(job_id)

        result = lifecycle.commit(job_id)

        assert result.dispatch.handoff_uri.startswith("mailto:jane@example.com?")

    def test_dispatch_failure_keeps_matched_and_draft(self, lifecycle, backend, events):
        [job_id] = _ingest(lifecycle, posting(contact_email="not-an-address"))
        backend.replies = [MATCH_REPLY, DRAFT_REPLY]
        lifecycle.match(job_id)
        lifecycle.request_draft(job_id)

        with pytest.raises(DispatchFailure):
            lifecycle.commit(job_id, email_body="keep me")

        assert lifecycle.get(job_id).status == JobStatus.MATCHED
        assert lifecycle.get(job_id).application_materials is None
        assert lifecycle.get_draft(job_id).email_body == "keep me"
        assert events.last().severity == Severity.ERROR

    def test_applied_jobs_newest_first(self, lifecycle, backend):
        ids = _ingest(lifecycle, posting("A", "Acme"), posting("B", "Acme"))
        for job_id in reversed(ids):
            backend.replies = [MATCH_REPLY, DRAFT_REPLY]
            lifecycle.match(job_id)
            lifecycle.request_draft(job_id)
            lifecycle.commit(job_id)

        assert [j.title for j in lifecycle.applied_jobs()] == ["A", "B"]


class TestReject:
    def test_reject_deletes_record(self, lifecycle, events):
        [job_id] = _ingest(lifecycle)

        lifecycle.reject(job_id)

        assert lifecycle.jobs() == []
        assert "rejected" in events.last().message

    def test_cannot_reject_applied(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY]
        lifecycle.request_draft(job_id)
        lifecycle.commit(job_id)

        with pytest.raises(StateViolation):
            lifecycle.reject(job_id)
        assert lifecycle.get(job_id).status == JobStatus.APPLIED

    def test_reject_clears_draft(self, lifecycle, backend):
        job_id = _matched(lifecycle, backend)
        backend.replies = [DRAFT_REPLY]
        lifecycle.request_draft(job_id)

        lifecycle.reject(job_id)

        assert lifecycle.get_draft(job_id) is None

    def test_rejected_id_is_never_reused(self, lifecycle):
        lifecycle.ingest([posting(id="board-slug")])
        lifecycle.reject("board-slug")

        [readded] = lifecycle.ingest([posting(id="board-slug")])

        assert readded.id != "board-slug"
        with pytest.raises(JobNotFound):
            lifecycle.get("board-slug")

    def test_retired_ids_are_reported_and_honoured(self, dispatcher, events, profiles):
        retired = []
        lifecycle = JobLifecycle(
            gateway=make_gateway({}),
            dispatcher=dispatcher,
            events=events,
            profiles=profiles,
            retired_ids={"old-id"},
            on_retire=retired.append,
        )

        [job] = lifecycle.ingest([posting(id="old-id")])
        assert job.id != "old-id"

        lifecycle.reject(job.id)
        assert retired == [job.id]


class TestStatusCounts:
    def test_counts(self, lifecycle, backend):
        _ingest(lifecycle, posting("A", "Acme"), posting("B", "Acme"))
        job_id = lifecycle.jobs()[0].id
        backend.replies = [MATCH_REPLY]
        lifecycle.match(job_id)

        assert lifecycle.status_counts() == {"discovered": 1, "extracted": 0, "matched": 1, "applied": 0}
