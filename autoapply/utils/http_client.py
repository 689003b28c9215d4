"""Shared requests session with retry logic for idempotent reads."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "autoapply/0.1 (+job lifecycle orchestrator)"


def create_session(max_retries: int = 2, backoff_factor: float = 1.0) -> requests.Session:
    """Create a requests session.

    Only GETs are retried; provider and relay POSTs are single attempts and
    either return or count as failed.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    })

    return session

