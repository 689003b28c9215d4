"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from autoapply.config import AppConfig, SchedulerConfig
from autoapply.orchestrator import Orchestrator
from autoapply.profile.models import ProviderName
from autoapply.web.app import create_app
from fakes import DRAFT_REPLY, MATCH_REPLY, ScriptedBackend, make_gateway, posting

SEEDS = [
    {"title": "Data Engineer", "company": "Acme", "description": "Python and SQL", "contact_email": "hr@acme.example"},
    {"title": "Backend Developer", "company": "Globex", "description": "", "contact_email": "jobs@globex.example"},
]


@pytest.fixture
def backend():
    return ScriptedBackend(ProviderName.GEMINI)


@pytest.fixture
def orchestrator(profile, dispatcher, store, clock, backend):
    config = AppConfig(profile=profile, scheduler=SchedulerConfig(enabled=False), seed_jobs=SEEDS)
    return Orchestrator(
        config,
        gateway=make_gateway({ProviderName.GEMINI: backend}, board=[]),
        dispatcher=dispatcher,
        store=store,
        clock=clock,
    )


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator)) as c:
        yield c


def _job_id(client, title):
    return next(j["id"] for j in client.get("/jobs").json()["jobs"] if j["title"] == title)


class TestReadRoutes:
    def test_index(self, client):
        data = client.get("/").json()
        assert data["jobs"] == 2
        assert data["busy"] is False

    def test_list_jobs(self, client):
        data = client.get("/jobs").json()
        assert data["total"] == 2
        assert [j["title"] for j in data["jobs"]] == ["Data Engineer", "Backend Developer"]

    def test_filter_by_status(self, client):
        assert client.get("/jobs", params={"status": "matched"}).json()["total"] == 0
        assert client.get("/jobs", params={"status": "bogus"}).status_code == 422

    def test_get_job(self, client):
        job_id = _job_id(client, "Data Engineer")
        assert client.get(f"/jobs/{job_id}").json()["company"] == "Acme"

    def test_unknown_job_is_404(self, client):
        response = client.get("/jobs/job-missing")
        assert response.status_code == 404
        assert response.json()["error"] == "JobNotFound"

    def test_events_since(self, client):
        events = client.get("/events").json()
        assert events["events"][-1]["message"] == "System command center initialized."
        last = events["last_seq"]
        assert client.get("/events", params={"since": last}).json()["events"] == []

    def test_schedule(self, client):
        data = client.get("/schedule").json()
        assert data["seconds_until_next_cycle"] == 3600
        assert data["in_flight"] is None

    def test_stats_and_outbox(self, client):
        assert client.get("/stats").json()["total_jobs"] == 2
        assert client.get("/outbox").json() == {"total": 0, "jobs": []}


class TestActionRoutes:
    def test_application_flow(self, client, backend):
        job_id = _job_id(client, "Data Engineer")

        backend.replies = [{"must_have": ["Python"]}]
        assert client.post(f"/jobs/{job_id}/approve").json()["status"] == "extracted"

        backend.replies = [MATCH_REPLY]
        assert client.post(f"/jobs/{job_id}/match").json()["match_score"] == 78

        assert client.get(f"/jobs/{job_id}/draft").json()["draft"] is None
        backend.replies = [DRAFT_REPLY]
        draft = client.post(f"/jobs/{job_id}/draft").json()
        assert draft["email_body"] == DRAFT_REPLY["emailBody"]
        assert client.get(f"/jobs/{job_id}").json()["status"] == "matched"

        response = client.post(f"/jobs/{job_id}/commit", json={"email_body": "Edited body"})
        assert response.status_code == 200
        data = response.json()
        assert data["job"]["status"] == "applied"
        assert data["job"]["application_materials"]["email_body"] == "Edited body"
        assert data["dispatch"]["mode"] == "local_handoff"
        assert data["dispatch"]["requires_operator_action"] is True

        assert client.get("/outbox").json()["total"] == 1

    def test_commit_without_draft_is_409(self, client):
        job_id = _job_id(client, "Data Engineer")
        response = client.post(f"/jobs/{job_id}/commit")
        assert response.status_code == 409
        assert response.json()["error"] == "StateViolation"
        assert client.get(f"/jobs/{job_id}").json()["status"] == "discovered"

    def test_approve_without_description_is_409(self, client):
        job_id = _job_id(client, "Backend Developer")
        assert client.post(f"/jobs/{job_id}/approve").status_code == 409

    def test_reject(self, client):
        job_id = _job_id(client, "Backend Developer")
        assert client.delete(f"/jobs/{job_id}").status_code == 204
        assert client.get(f"/jobs/{job_id}").status_code == 404

    def test_manual_cycle(self, client):
        data = client.post("/cycle").json()
        assert data["success"] is True
        assert data["trigger"] == "manual"

    def test_busy_is_409(self, client, orchestrator):
        job_id = _job_id(client, "Data Engineer")
        with orchestrator.gate.hold("scheduled cycle"):
            response = client.post(f"/jobs/{job_id}/match")
            assert response.status_code == 409
            assert response.json()["error"] == "CycleInProgress"
            assert client.post("/cycle").status_code == 409

    def test_dispatch_failure_is_502(self, client, backend, orchestrator):
        orchestrator.lifecycle.ingest([posting("Platform Engineer", "Initech", contact_email="not-an-address")])
        job_id = _job_id(client, "Platform Engineer")

        backend.replies = [MATCH_REPLY, DRAFT_REPLY]
        client.post(f"/jobs/{job_id}/match")
        client.post(f"/jobs/{job_id}/draft")

        response = client.post(f"/jobs/{job_id}/commit")
        assert response.status_code == 502
        assert response.json()["error"] == "DispatchFailure"
        assert client.get(f"/jobs/{job_id}").json()["status"] == "matched"
        assert client.get(f"/jobs/{job_id}/draft").json()["draft"] is not None
