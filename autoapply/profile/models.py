"""Candidate profile data model and the holder that always serves its current value."""

import copy
import threading
from dataclasses import dataclass, field
from enum import Enum

from autoapply.utils.currency import format_currency


class ProviderName(str, Enum):
    GEMINI = "gemini"
    OPENROUTER = "openrouter"
    HUGGINGFACE = "huggingface"


class WorkMode(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"
    ANY = "any"


@dataclass
class PersonalInfo:
    name: str = ""
    email: str = ""
    location: str = ""
    phone: str = ""
    portfolio: str = ""
    cv_name: str = ""


@dataclass
class SkillSet:
    must_have: list[str] = field(default_factory=list)
    nice_to_have: list[str] = field(default_factory=list)


@dataclass
class ApiTokens:
    hf_token: str = ""
    openrouter_token: str = ""


@dataclass
class Preferences:
    locations: list[str] = field(default_factory=list)
    salary_min: int = 0
    currency: str = "LKR"
    work_mode: WorkMode = WorkMode.ANY
    ai_provider: ProviderName = ProviderName.GEMINI
    api_tokens: ApiTokens = field(default_factory=ApiTokens)
    relay_url: str = ""  # autonomous relay endpoint; empty means local handoff only


@dataclass
class CandidateProfile:
    """Represents the operator's candidate profile."""

    personal_info: PersonalInfo = field(default_factory=PersonalInfo)
    desired_roles: list[str] = field(default_factory=list)
    skills: SkillSet = field(default_factory=SkillSet)
    preferences: Preferences = field(default_factory=Preferences)

    @property
    def cv_filename(self) -> str:
        if self.personal_info.cv_name:
            return self.personal_info.cv_name
        stem = "_".join(self.personal_info.name.split()) or "Candidate"
        return f"{stem}_CV.pdf"

    def to_summary_string(self) -> str:
        """Create a concise text summary for provider prompts."""
        parts = []
        if self.personal_info.name:
            parts.append(f"Name: {self.personal_info.name}")
        if self.desired_roles:
            parts.append(f"Desired roles: {', '.join(self.desired_roles)}")
        if self.skills.must_have:
            parts.append(f"Core skills: {', '.join(self.skills.must_have)}")
        if self.skills.nice_to_have:
            parts.append(f"Additional skills: {', '.join(self.skills.nice_to_have)}")
        if self.preferences.locations:
            parts.append(f"Locations: {', '.join(self.preferences.locations)}")
        if self.preferences.work_mode != WorkMode.ANY:
            parts.append(f"Work mode: {self.preferences.work_mode.value}")
        if self.preferences.salary_min:
            parts.append(f"Minimum salary: {format_currency(self.preferences.salary_min, self.preferences.currency)}")
        return "\n".join(parts)

    @classmethod
    def from_dict(cls, raw: dict) -> "CandidateProfile":
        raw = raw or {}
        personal = raw.get("personal_info", {}) or {}
        skills = raw.get("skills", {}) or {}
        prefs = raw.get("preferences", {}) or {}
        tokens = prefs.get("api_tokens", {}) or {}

        return cls(
            personal_info=PersonalInfo(
                name=personal.get("name", ""),
                email=personal.get("email", ""),
                location=personal.get("location", ""),
                phone=personal.get("phone", ""),
                portfolio=personal.get("portfolio", ""),
                cv_name=personal.get("cv_name", ""),
            ),
            desired_roles=list(raw.get("desired_roles", [])),
            skills=SkillSet(
                must_have=list(skills.get("must_have", [])),
                nice_to_have=list(skills.get("nice_to_have", [])),
            ),
            preferences=Preferences(
                locations=list(prefs.get("locations", [])),
                salary_min=int(prefs.get("salary_min", 0) or 0),
                currency=prefs.get("currency", "LKR"),
                work_mode=WorkMode(prefs.get("work_mode", WorkMode.ANY.value)),
                ai_provider=ProviderName(prefs.get("ai_provider", ProviderName.GEMINI.value)),
                api_tokens=ApiTokens(
                    hf_token=tokens.get("hf_token", ""),
                    openrouter_token=tokens.get("openrouter_token", ""),
                ),
                relay_url=prefs.get("relay_url", prefs.get("gas_url", "")) or "",
            ),
        )


class ProfileStore:
    """Thread-safe holder for the current profile.

    Core operations call ``get()`` each time so provider and relay selection
    changes are picked up on the next call. Callers receive a copy.
    """

    def __init__(self, profile: CandidateProfile | None = None):
        self._lock = threading.Lock()
        self._profile = profile or CandidateProfile()

    def get(self) -> CandidateProfile:
        with self._lock:
            return copy.deepcopy(self._profile)

    def update(self, profile: CandidateProfile) -> None:
        with self._lock:
            self._profile = copy.deepcopy(profile)
