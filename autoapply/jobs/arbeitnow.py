"""Arbeitnow public job board (free, no API key) - the discovery fallback."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

import requests

from autoapply.errors import TransientProviderError
from autoapply.jobs.models import JobPosting
from autoapply.utils.http_client import create_session
from autoapply.utils.text_processing import html_to_text, title_matches_roles

logger = logging.getLogger("autoapply.jobs.arbeitnow")

SOURCE_LABEL = "Arbeitnow API (Free)"


def fetch_board_jobs(
    roles: Iterable[str],
    url: str,
    max_results: int = 8,
    session: Optional[requests.Session] = None,
    timeout: float = 30,
) -> list[JobPosting]:
    """Fetch the board's listing and keep postings whose title contains a desired role.

    Raises TransientProviderError when the board is unreachable or the payload
    is not the expected shape; an empty list means the board answered but
    nothing matched.
    """
    roles = [role for role in roles if role and role.strip()]
    session = session or create_session()

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as e:
        raise TransientProviderError(f"Job board unavailable: {e}") from e

    items = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise TransientProviderError("Job board returned an unexpected payload")

    jobs = []
    for item in items:
        if not isinstance(item, dict) or not title_matches_roles(item.get("title", ""), roles):
            continue
        job = _parse_board_job(item)
        if job:
            jobs.append(job)
        if len(jobs) >= max_results:
            break

    logger.info("Job board: %d/%d postings matched desired roles", len(jobs), len(items))
    return jobs


def _parse_board_job(item: dict) -> Optional[JobPosting]:
    title = (item.get("title") or "").strip()
    company = (item.get("company_name") or "").strip()
    if not title or not company:
        return None

    location = item.get("location") or ""
    if item.get("remote") and "remote" not in location.lower():
        location = f"{location} (Remote)".strip() if location else "Remote"

    return JobPosting(
        title=title,
        company=company,
        location=location,
        description=html_to_text(item.get("description", "")),
        source=SOURCE_LABEL,
        posted_date=_posted_date(item.get("created_at")),
        url=item.get("url", ""),
    )


def _posted_date(created_at) -> str:
    if isinstance(created_at, (int, float)) and not isinstance(created_at, bool):
        return datetime.fromtimestamp(created_at, tz=timezone.utc).date().isoformat()
    return datetime.now(timezone.utc).date().isoformat()
