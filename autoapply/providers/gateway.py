"""ProviderGateway: uniform access to the generation backends with fallback and heuristic defaults.

Each operation resolves an ordered backend chain from the *current* profile:
the selected provider when it has a credential, then (if enabled) the other
credentialed providers. The first backend that returns usable output wins.
When none does, the operation returns a documented heuristic default instead
of raising, tagged ``Outcome.HEURISTIC_DEFAULT`` so callers can tell.

Heuristic defaults:
    discover   -> public job board, or an empty list if the board is down too
    extract    -> empty RequirementSet
    match      -> score 70, "Heuristic match.", missing ["Analysis Pending"], breakdown all 70
    draft      -> template email body and cover letter from the profile
    summarize  -> template digest listing the postings
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

import requests

from autoapply.config import ProviderConfig, provider_credential
from autoapply.errors import TransientProviderError
from autoapply.jobs.arbeitnow import fetch_board_jobs
from autoapply.jobs.models import (
    ApplicationDraft,
    JobPosting,
    MatchBreakdown,
    MatchResult,
    RequirementSet,
    Salary,
)
from autoapply.notifications.templates import render_digest_text, render_fallback_draft
from autoapply.profile.models import CandidateProfile, ProviderName
from autoapply.providers.base import ProviderBackend
from autoapply.providers.gemini import GeminiBackend
from autoapply.providers.huggingface import HuggingFaceBackend
from autoapply.providers.openrouter import OpenRouterBackend
from autoapply.utils.currency import convert_to_base, normalize_code
from autoapply.utils.http_client import create_session
from autoapply.utils.text_processing import as_string_list

logger = logging.getLogger("autoapply.providers.gateway")

T = TypeVar("T")

PROVIDER_ORDER = (ProviderName.GEMINI, ProviderName.OPENROUTER, ProviderName.HUGGINGFACE)

BACKEND_CLASSES: dict[ProviderName, type[ProviderBackend]] = {
    ProviderName.GEMINI: GeminiBackend,
    ProviderName.OPENROUTER: OpenRouterBackend,
    ProviderName.HUGGINGFACE: HuggingFaceBackend,
}

HEURISTIC_SCORE = 70
HEURISTIC_REASONING = "Heuristic match."
HEURISTIC_MISSING = ["Analysis Pending"]


class Outcome(str, Enum):
    OK = "ok"
    FALLBACK = "fallback"  # served by the public job board
    HEURISTIC_DEFAULT = "heuristic_default"


@dataclass
class GatewayResult(Generic[T]):
    value: T
    outcome: Outcome = Outcome.OK
    provider: Optional[str] = None
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.outcome != Outcome.OK


BackendFactory = Callable[[ProviderName, str], ProviderBackend]
BoardFetcher = Callable[[list[str]], list[JobPosting]]

# Raised by malformed payloads that slip past the backends' own checks
PAYLOAD_ERRORS = (TypeError, ValueError, ArithmeticError, AttributeError, KeyError, IndexError)


def heuristic_match() -> MatchResult:
    return MatchResult(
        score=HEURISTIC_SCORE,
        reasoning=HEURISTIC_REASONING,
        missing_skills=list(HEURISTIC_MISSING),
        breakdown=MatchBreakdown(HEURISTIC_SCORE, HEURISTIC_SCORE, HEURISTIC_SCORE, HEURISTIC_SCORE),
    )


class ProviderGateway:
    def __init__(
        self,
        config: ProviderConfig,
        backend_factory: Optional[BackendFactory] = None,
        board_fetcher: Optional[BoardFetcher] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self._session = session or create_session()
        self._backend_factory = backend_factory or self._build_backend
        self._board_fetcher = board_fetcher or self._fetch_board

    # -- backend resolution -------------------------------------------------

    def _build_backend(self, provider: ProviderName, credential: str) -> ProviderBackend:
        models = {
            ProviderName.GEMINI: self.config.gemini_model,
            ProviderName.OPENROUTER: self.config.openrouter_model,
            ProviderName.HUGGINGFACE: self.config.huggingface_model,
        }
        return BACKEND_CLASSES[provider](
            credential,
            models[provider],
            timeout=self.config.request_timeout,
            session=self._session,
        )

    def _fetch_board(self, roles: list[str]) -> list[JobPosting]:
        return fetch_board_jobs(
            roles,
            url=self.config.board_url,
            max_results=self.config.board_max_results,
            session=self._session,
            timeout=self.config.request_timeout,
        )

    def backends_for(self, profile: CandidateProfile) -> list[ProviderBackend]:
        """Ordered backends with a usable credential for this profile."""
        selected = profile.preferences.ai_provider
        order = [selected]
        if self.config.fallback_to_alternates:
            order += [p for p in PROVIDER_ORDER if p != selected]

        backends = []
        for provider in order:
            credential = provider_credential(self.config, provider, profile)
            if not credential:
                logger.debug("No credential for %s, skipping", provider.value)
                continue
            backends.append(self._backend_factory(provider, credential))
        return backends

    def _first_success(
        self,
        operation: str,
        profile: CandidateProfile,
        call: Callable[[ProviderBackend], object],
        convert: Callable[[object], T],
        default: Callable[[], T],
    ) -> GatewayResult[T]:
        errors = []
        for backend in self.backends_for(profile):
            try:
                value = convert(call(backend))
            except TransientProviderError as e:
                failure = str(e)
            except PAYLOAD_ERRORS as e:
                failure = f"unusable payload ({type(e).__name__}: {e})"
            else:
                return GatewayResult(value, Outcome.OK, provider=backend.name.value)
            logger.warning("%s via %s failed: %s", operation, backend.name.value, failure)
            errors.append(f"{backend.name.value}: {failure}")

        reason = "; ".join(errors) or "no provider credential configured"
        logger.warning("%s using heuristic default (%s)", operation, reason)
        return GatewayResult(default(), Outcome.HEURISTIC_DEFAULT, error=reason)

    # -- operations ---------------------------------------------------------

    def discover(self, profile: CandidateProfile) -> GatewayResult[list[JobPosting]]:
        """Search for postings; never raises, worst case is an empty list."""
        errors = []
        for backend in self.backends_for(profile):
            if not backend.supports_search:
                continue
            try:
                postings = [_posting_from_search(item) for item in backend.discover(profile)]
            except (TransientProviderError, *PAYLOAD_ERRORS) as e:
                logger.warning("Discovery via %s failed: %s", backend.name.value, e)
                errors.append(f"{backend.name.value}: {e}")
                continue
            logger.info("Discovery via %s returned %d postings", backend.name.value, len(postings))
            return GatewayResult(postings, Outcome.OK, provider=backend.name.value)

        try:
            postings = self._board_fetcher(list(profile.desired_roles))
        except TransientProviderError as e:
            errors.append(f"board: {e}")
            logger.warning("Discovery found no reachable source: %s", "; ".join(errors))
            return GatewayResult([], Outcome.HEURISTIC_DEFAULT, error="; ".join(errors))

        return GatewayResult(postings, Outcome.FALLBACK, provider="board", error="; ".join(errors) or None)

    def extract(self, description: str, profile: CandidateProfile) -> GatewayResult[RequirementSet]:
        return self._first_success(
            "Extraction",
            profile,
            lambda backend: backend.extract(description),
            requirements_from_payload,
            RequirementSet,
        )

    def match(self, job: JobPosting, profile: CandidateProfile) -> GatewayResult[MatchResult]:
        return self._first_success(
            "Matching",
            profile,
            lambda backend: backend.match(job, profile),
            match_from_payload,
            heuristic_match,
        )

    def draft(self, job: JobPosting, profile: CandidateProfile) -> GatewayResult[ApplicationDraft]:
        def default() -> ApplicationDraft:
            email_body, cover_letter = render_fallback_draft(job, profile)
            return ApplicationDraft(email_body=email_body, cover_letter=cover_letter)

        return self._first_success(
            "Drafting",
            profile,
            lambda backend: backend.draft(job, profile),
            draft_from_payload,
            default,
        )

    def summarize(self, jobs: list[JobPosting], name: str, profile: CandidateProfile) -> GatewayResult[str]:
        return self._first_success(
            "Summary",
            profile,
            lambda backend: backend.summarize(jobs, name),
            str,
            lambda: render_digest_text(jobs, name),
        )


# -- payload conversion ---------------------------------------------------------


def _number(value) -> float:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _clamp_score(value) -> int:
    return max(0, min(100, int(_number(value) + 0.5)))


def salary_from_payload(value) -> Optional[Salary]:
    """Salary with a locally recomputed base-currency value; backend arithmetic is ignored."""
    if not isinstance(value, dict):
        return None
    currency = value.get("currency")
    if not isinstance(currency, str) or not currency.strip():
        return None
    try:
        amount = _number(value.get("amount"))
    except (TypeError, ValueError):
        return None
    if amount <= 0:
        return None
    try:
        converted = convert_to_base(amount, currency)
    except ValueError:
        return None
    return Salary(amount=amount, currency=normalize_code(currency), converted=converted)


def requirements_from_payload(raw) -> RequirementSet:
    if not isinstance(raw, dict) or not any(k in raw for k in ("must_have", "nice_to_have", "salary")):
        raise TransientProviderError("Requirement payload has none of must_have, nice_to_have, salary")
    return RequirementSet(
        must_have=as_string_list(raw.get("must_have")),
        nice_to_have=as_string_list(raw.get("nice_to_have")),
        salary=salary_from_payload(raw.get("salary")),
    )


def match_from_payload(raw) -> MatchResult:
    """Score from the weighted breakdown when present, else the reported score."""
    if not isinstance(raw, dict):
        raise TransientProviderError("Match payload is not an object")

    breakdown = None
    raw_breakdown = raw.get("breakdown")
    if isinstance(raw_breakdown, dict):
        try:
            breakdown = MatchBreakdown(**{
                name: _clamp_score(raw_breakdown[name]) for name in MatchBreakdown.WEIGHTS
            })
        except (KeyError, TypeError, ValueError):
            breakdown = None

    if breakdown is not None:
        score = breakdown.weighted_score()
    else:
        try:
            score = _clamp_score(raw.get("score"))
        except (TypeError, ValueError) as e:
            raise TransientProviderError(f"Match payload has no usable score: {e}") from e

    reasoning = raw.get("reasoning")
    return MatchResult(
        score=score,
        reasoning=reasoning.strip() if isinstance(reasoning, str) and reasoning.strip() else "No reasoning provided.",
        missing_skills=as_string_list(raw.get("missing_skills")),
        breakdown=breakdown,
    )


def draft_from_payload(raw) -> ApplicationDraft:
    if not isinstance(raw, dict):
        raise TransientProviderError("Draft payload is not an object")
    email_body = raw.get("emailBody", raw.get("email_body"))
    cover_letter = raw.get("coverLetter", raw.get("cover_letter"))
    for label, value in (("emailBody", email_body), ("coverLetter", cover_letter)):
        if not isinstance(value, str) or not value.strip():
            raise TransientProviderError(f"Draft payload is missing {label}")
    return ApplicationDraft(email_body=email_body.strip(), cover_letter=cover_letter.strip())


def _posting_from_search(item: dict) -> JobPosting:
    url = str(item.get("url") or "").strip()
    return JobPosting(
        title=str(item.get("title") or "").strip() or "Designated Role (Extracted)",
        company=str(item.get("company") or "").strip() or "Unknown Enterprise",
        location=str(item.get("location") or "").strip() or "Remote",
        description=str(item.get("description") or "").strip()
        or "Deep analysis required to reveal full job description.",
        source=str(item.get("source") or "").strip() or "Web Search",
        posted_date=datetime.now(timezone.utc).date().isoformat(),
        url="" if url == "#" else url,
        contact_email=str(item.get("contact_email") or "").strip(),
    )
