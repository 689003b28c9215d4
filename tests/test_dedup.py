"""Tests for identity-based merging of discovered postings."""

from autoapply.jobs.dedup import identity_key, merge_postings
from autoapply.jobs.models import JobPosting, JobStatus


def _job(title, company, **kwargs):
    return JobPosting(title=title, company=company, **kwargs)


class TestIdentityKey:
    def test_case_and_whitespace_insensitive(self):
        a = _job("Data Engineer", "Acme")
        b = _job("  data   ENGINEER ", "ACME ")
        assert identity_key(a) == identity_key(b)

    def test_company_is_part_of_identity(self):
        assert identity_key(_job("Data Engineer", "Acme")) != identity_key(_job("Data Engineer", "Globex"))


class TestMergePostings:
    def test_new_postings_are_prepended_in_discovery_order(self):
        existing = [_job("Old Role", "Acme")]
        incoming = [_job("First", "Acme"), _job("Second", "Acme")]

        result = merge_postings(existing, incoming)

        assert [j.title for j in result.jobs] == ["First", "Second", "Old Role"]
        assert [j.title for j in result.added] == ["First", "Second"]

    def test_duplicate_within_batch_yields_one_record(self):
        batch = [_job("Data Engineer", "Acme"), _job("Data Engineer", "Acme")]

        result = merge_postings([], batch)

        assert len(result.jobs) == 1
        assert result.dropped == 1

    def test_known_posting_is_dropped_not_updated(self):
        existing = _job("Data Engineer", "Acme", description="original", status=JobStatus.MATCHED, match_score=88)
        repeat = _job("data engineer", "ACME", description="fresh text")

        result = merge_postings([existing], [repeat])

        assert result.added == []
        assert result.jobs == [existing]
        assert result.jobs[0].description == "original"
        assert result.jobs[0].status == JobStatus.MATCHED

    def test_merge_is_idempotent(self):
        existing = [_job("Old Role", "Acme")]
        batch = [_job("Data Engineer", "Acme"), _job("Backend Developer", "Globex")]

        once = merge_postings(existing, batch).jobs
        twice = merge_postings(once, batch)

        assert twice.jobs == once
        assert twice.added == []
        assert twice.dropped == 2

    def test_inputs_are_not_mutated(self):
        existing = [_job("Old Role", "Acme")]
        batch = [_job("New Role", "Acme")]

        merge_postings(existing, batch)

        assert len(existing) == 1
        assert len(batch) == 1

    def test_colliding_id_is_reassigned(self):
        existing = [_job("Old Role", "Acme", id="board-slug")]
        incoming = [_job("New Role", "Acme", id="board-slug")]

        result = merge_postings(existing, incoming)

        assert result.added[0].id != "board-slug"
        assert len({job.id for job in result.jobs}) == 2
        assert incoming[0].id == "board-slug"

    def test_retired_id_is_reassigned(self):
        result = merge_postings([], [_job("Data Engineer", "Acme", id="rejected-slug")], retired_ids={"rejected-slug"})

        assert result.added[0].id != "rejected-slug"
