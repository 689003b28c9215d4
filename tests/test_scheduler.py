"""Tests for the polling scheduler and its checkpoint rules."""

from datetime import timedelta

import pytest

from autoapply.config import SchedulerConfig
from autoapply.coordination import CoordinationLock
from autoapply.errors import CycleInProgress
from autoapply.events import Severity, Subsystem
from autoapply.profile.models import ProviderName
from autoapply.scheduler import CycleScheduler
from fakes import ScriptedBackend, make_gateway, make_lifecycle, posting

RELAY = "https://relay.example/exec"


class Harness:
    def __init__(self, profiles, events, dispatcher, store, clock, board=None, backends=None, **config):
        self.gateway = make_gateway(backends or {}, board=board if board is not None else [])
        self.lifecycle = make_lifecycle(self.gateway, dispatcher, events, profiles)
        self.gate = CoordinationLock()
        self.store = store
        self.clock = clock
        self.scheduler = CycleScheduler(
            config=SchedulerConfig(poll_interval_seconds=3600, **config),
            lifecycle=self.lifecycle,
            gateway=self.gateway,
            dispatcher=dispatcher,
            profiles=profiles,
            events=events,
            store=store,
            gate=self.gate,
            clock=clock,
        )


@pytest.fixture
def make_harness(profiles, events, dispatcher, store, clock):
    def build(**kwargs):
        return Harness(profiles, events, dispatcher, store, clock, **kwargs)
    return build


def _board_jobs(*titles):
    return [posting(title, "Acme") for title in titles]


class TestCheckpointSeeding:
    def test_first_run_fires_after_one_hour(self, make_harness, clock):
        h = make_harness()
        s = h.scheduler

        assert s.checkpoint == clock() - timedelta(hours=23)
        assert s.time_until_next_cycle() == timedelta(hours=1)
        assert not s.is_due()

    def test_seed_is_not_persisted(self, make_harness, store):
        h = make_harness()
        h.scheduler.poll()
        assert store.load_checkpoint() is None

    def test_stored_checkpoint_is_used(self, make_harness, store, clock):
        stored = clock() - timedelta(hours=5)
        store.save_checkpoint(stored)

        s = make_harness().scheduler

        assert s.checkpoint == stored
        assert s.checkpoint_persisted
        assert s.time_until_next_cycle() == timedelta(hours=19)


class TestPoll:
    def test_not_due_does_nothing(self, make_harness, relay_session):
        h = make_harness(board=_board_jobs("Data Engineer"))
        assert h.scheduler.poll() is None
        assert h.lifecycle.jobs() == []

    def test_due_cycle_discovers_digests_and_advances(self, make_harness, clock, store, events):
        h = make_harness(board=_board_jobs("Data Engineer", "Backend Developer"))
        clock.advance(hours=1)

        report = h.scheduler.poll()

        assert report.success
        assert report.trigger == "scheduled"
        assert report.added == 2
        assert [j.title for j in h.lifecycle.jobs()] == ["Data Engineer", "Backend Developer"]
        assert report.digest_mode == "local_handoff"
        assert report.handoff_uri.startswith("mailto:jane@example.com?subject=Daily%20Briefing")
        assert h.scheduler.checkpoint == clock()
        assert store.load_checkpoint() == clock()
        assert events.last().severity == Severity.SUCCESS

    def test_digest_goes_through_relay(self, make_harness, clock, profiles, relay_session):
        profile = profiles.get()
        profile.preferences.relay_url = RELAY
        profiles.update(profile)
        h = make_harness(board=_board_jobs("Data Engineer"))
        clock.advance(hours=1)

        report = h.scheduler.poll()

        assert report.digest_mode == "relay"
        sent = relay_session.posts[0]["json"]
        assert sent["to"] == "jane@example.com"
        assert "Data Engineer @ Acme" in sent["body"]

    def test_digest_limited_to_newest(self, make_harness, clock, relay_session, profiles):
        profile = profiles.get()
        profile.preferences.relay_url = RELAY
        profiles.update(profile)
        h = make_harness(board=_board_jobs("Role A", "Role B", "Role C"), digest_size=2)
        clock.advance(hours=1)

        h.scheduler.poll()

        body = relay_session.posts[0]["json"]["body"]
        assert "Role A" in body and "Role B" in body
        assert "Role C" not in body

    def test_zero_results_still_advances(self, make_harness, clock):
        h = make_harness(board=[])
        clock.advance(hours=1)

        report = h.scheduler.poll()

        assert report.success
        assert report.added == 0
        assert h.scheduler.checkpoint == clock()

    def test_failed_cycle_does_not_advance(self, make_harness, clock, profiles, store, events):
        profile = profiles.get()
        profile.personal_info.email = "not-an-address"
        profiles.update(profile)
        h = make_harness(board=_board_jobs("Data Engineer"))
        seeded = h.scheduler.checkpoint
        clock.advance(hours=1)

        report = h.scheduler.poll()

        assert not report.success
        assert "DispatchFailure" in report.error
        assert h.scheduler.checkpoint == seeded
        assert events.last().severity == Severity.ERROR
        assert store.recent_cycles()[0]["success"] is False
        # merged jobs stay; the retry re-merges them as a no-op
        assert len(h.lifecycle.jobs()) == 1
        retry = h.scheduler.poll()
        assert retry is not None and retry.added == 0

    def test_checkpoint_never_decreases(self, make_harness, clock):
        h = make_harness(board=[])
        seen = [h.scheduler.checkpoint]
        for _ in range(3):
            clock.advance(hours=25)
            h.scheduler.poll()
            seen.append(h.scheduler.checkpoint)
        assert seen == sorted(seen)
        assert len(set(seen)) == 4


class TestManualTrigger:
    def test_manual_cycle_uses_same_body(self, make_harness, clock, events):
        h = make_harness(board=_board_jobs("Data Engineer"))

        report = h.scheduler.run_cycle("manual")

        assert report.success
        assert report.added == 1
        assert h.scheduler.checkpoint == clock()
        assert any(e.subsystem == Subsystem.ORCHESTRATOR and "Manual" in e.message for e in events)

    def test_rejected_while_busy(self, make_harness):
        h = make_harness()
        with h.gate.hold("scheduled cycle"):
            with pytest.raises(CycleInProgress):
                h.scheduler.run_cycle("manual")

    def test_poll_skips_while_busy(self, make_harness, clock):
        h = make_harness()
        clock.advance(hours=2)
        with h.gate.hold("approval"):
            assert h.scheduler.poll() is None


class TestPersistenceOutage:
    def test_runs_in_memory_and_flushes_later(self, make_harness, clock, store, events):
        store.down = True
        h = make_harness(board=_board_jobs("Data Engineer"))
        assert h.scheduler.checkpoint == clock() - timedelta(hours=23)
        assert any(e.severity == Severity.WARNING and "Checkpoint unavailable" in e.message for e in events)

        clock.advance(hours=1)
        report = h.scheduler.poll()
        completed = clock()
        assert report.success
        assert h.scheduler.checkpoint == completed
        assert not h.scheduler.checkpoint_persisted

        store.down = False
        clock.advance(minutes=5)
        assert h.scheduler.poll() is None
        assert store.load_checkpoint() == completed
        assert h.scheduler.checkpoint_persisted

    def test_save_failure_retried_each_poll(self, make_harness, clock, store):
        h = make_harness(board=[])
        h.scheduler.checkpoint
        # Loading already happened; now saving fails after the cycle
        store.down = True
        clock.advance(hours=1)
        report = h.scheduler.poll()
        assert report.success
        assert not h.scheduler.checkpoint_persisted

        store.down = False
        h.scheduler.poll()
        assert store.load_checkpoint() == h.scheduler.checkpoint

    def test_newer_stored_value_wins_over_memory(self, make_harness, clock, store):
        store.down = True
        h = make_harness(board=[])
        h.scheduler.checkpoint
        store.down = False
        newer = clock() + timedelta(minutes=1)
        store.save_checkpoint(newer)

        h.scheduler.sync_persistence()

        assert h.scheduler.checkpoint == newer


class TestTimer:
    def test_start_and_stop(self, make_harness):
        s = make_harness().scheduler
        s.start()
        try:
            assert s.running
        finally:
            s.stop()
        assert not s.running
