"""Identity-based merging of newly discovered postings into the job set."""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Sequence

from autoapply.jobs.models import JobPosting, new_job_id

logger = logging.getLogger("autoapply.jobs.dedup")


@dataclass
class MergeResult:
    jobs: list[JobPosting]
    added: list[JobPosting] = field(default_factory=list)
    dropped: int = 0


def identity_key(posting: JobPosting) -> tuple[str, str]:
    """Normalized (title, company) pair; case and whitespace are ignored."""
    return posting.identity_key


def merge_postings(
    existing: Sequence[JobPosting],
    incoming: Iterable[JobPosting],
    retired_ids: Iterable[str] = (),
) -> MergeResult:
    """Prepend the unseen postings of ``incoming`` to ``existing``.

    A posting whose identity key is already present (in the existing set or
    earlier in the same batch) is dropped, never merged into the existing
    record. Surviving postings keep their discovery order. Neither input is
    mutated. Ids that collide with an existing id, or with a retired one in
    ``retired_ids``, are reassigned.
    """
    seen_keys = {identity_key(job) for job in existing}
    used_ids = {job.id for job in existing} | set(retired_ids)

    added: list[JobPosting] = []
    dropped = 0
    for posting in incoming:
        key = identity_key(posting)
        if key in seen_keys:
            dropped += 1
            continue
        seen_keys.add(key)

        if posting.id in used_ids:
            posting = _with_fresh_id(posting)
        used_ids.add(posting.id)
        added.append(posting)

    if dropped:
        logger.debug("Dropped %d already-known postings", dropped)

    return MergeResult(jobs=added + list(existing), added=added, dropped=dropped)


def _with_fresh_id(posting: JobPosting) -> JobPosting:
    fresh = replace(posting, id=new_job_id())
    logger.info("Posting id %s already in use, reassigned to %s", posting.id, fresh.id)
    return fresh
