"""Capability interface implemented by every text/JSON generation backend."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

from autoapply.errors import TransientProviderError
from autoapply.jobs.models import JobPosting
from autoapply.profile.models import CandidateProfile, ProviderName
from autoapply.providers import prompts
from autoapply.utils.json_extract import parse_json_loose

logger = logging.getLogger("autoapply.providers")


class ProviderBackend(ABC):
    """One generation backend.

    Subclasses implement ``generate``; the capability methods build prompts
    and return raw decoded payloads. Every failure surfaces as
    TransientProviderError so the gateway can move on to the next backend
    or a heuristic default.
    """

    name: ProviderName
    supports_search: bool = False

    def __init__(
        self,
        credential: str,
        model: str,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.credential = credential
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def generate(self, prompt: str, *, json_output: bool = True, search: bool = False) -> str:
        """Return the backend's raw text completion for ``prompt``."""

    def generate_json(self, prompt: str, *, search: bool = False) -> Any:
        text = str(self.generate(prompt, json_output=True, search=search) or "")
        value = parse_json_loose(text)
        if value is None:
            raise TransientProviderError(f"{self.name.value} returned no parseable JSON")
        return value

    def discover(self, profile: CandidateProfile) -> list[dict]:
        if not self.supports_search:
            raise TransientProviderError(f"{self.name.value} has no web search capability")
        value = self.generate_json(prompts.discovery_prompt(profile), search=True)
        if isinstance(value, dict):
            value = value.get("jobs", value.get("results"))
        if not isinstance(value, list):
            raise TransientProviderError(f"{self.name.value} discovery did not return a list")
        return [item for item in value if isinstance(item, dict)]

    def extract(self, description: str) -> dict:
        return self._expect_object(self.generate_json(prompts.extraction_prompt(description)))

    def match(self, job: JobPosting, profile: CandidateProfile) -> dict:
        return self._expect_object(self.generate_json(prompts.match_prompt(job, profile)))

    def draft(self, job: JobPosting, profile: CandidateProfile) -> dict:
        return self._expect_object(self.generate_json(prompts.draft_prompt(job, profile)))

    def summarize(self, jobs: list[JobPosting], name: str) -> str:
        text = str(self.generate(prompts.digest_prompt(jobs, name), json_output=False) or "").strip()
        if not text:
            raise TransientProviderError(f"{self.name.value} returned an empty summary")
        return text

    def _expect_object(self, value: Any) -> dict:
        if isinstance(value, list) and len(value) == 1 and isinstance(value[0], dict):
            value = value[0]
        if not isinstance(value, dict):
            raise TransientProviderError(f"{self.name.value} returned {type(value).__name__}, expected an object")
        return value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} model={self.model!r}>"
