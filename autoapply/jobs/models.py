"""Job posting data model and the records attached to it through the lifecycle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from autoapply.utils.text_processing import normalize_identity


class JobStatus(str, Enum):
    DISCOVERED = "discovered"
    EXTRACTED = "extracted"
    MATCHED = "matched"
    APPLIED = "applied"
    REJECTED = "rejected"


# Forward progression; REJECTED is terminal and removes the record instead
STAGE_ORDER = {
    JobStatus.DISCOVERED: 0,
    JobStatus.EXTRACTED: 1,
    JobStatus.MATCHED: 2,
    JobStatus.APPLIED: 3,
}


def new_job_id() -> str:
    return f"job-{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class Salary:
    amount: float
    currency: str
    converted: Optional[int] = None  # amount in the base currency, recomputed locally

    def to_dict(self) -> dict:
        return {"amount": self.amount, "currency": self.currency, "converted": self.converted}

    @classmethod
    def from_dict(cls, raw: dict) -> "Salary":
        return cls(
            amount=float(raw["amount"]),
            currency=raw.get("currency", ""),
            converted=raw.get("converted"),
        )


@dataclass
class RequirementSet:
    must_have: list[str] = field(default_factory=list)
    nice_to_have: list[str] = field(default_factory=list)
    salary: Optional[Salary] = None

    @property
    def is_empty(self) -> bool:
        return not self.must_have and not self.nice_to_have and self.salary is None

    def to_dict(self) -> dict:
        return {
            "must_have": list(self.must_have),
            "nice_to_have": list(self.nice_to_have),
            "salary": self.salary.to_dict() if self.salary else None,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "RequirementSet":
        salary = raw.get("salary")
        return cls(
            must_have=list(raw.get("must_have", [])),
            nice_to_have=list(raw.get("nice_to_have", [])),
            salary=Salary.from_dict(salary) if salary else None,
        )


@dataclass
class MatchBreakdown:
    """Four-pillar fit assessment, each 0-100."""

    technical: int
    culture: int
    growth: int
    logistics: int

    WEIGHTS = {"technical": 0.4, "culture": 0.2, "growth": 0.2, "logistics": 0.2}

    def weighted_score(self) -> int:
        total = sum(getattr(self, name) * weight for name, weight in self.WEIGHTS.items())
        return max(0, min(100, int(total + 0.5)))

    def to_dict(self) -> dict:
        return {name: getattr(self, name) for name in self.WEIGHTS}

    @classmethod
    def from_dict(cls, raw: dict) -> "MatchBreakdown":
        return cls(**{name: int(raw[name]) for name in cls.WEIGHTS})


@dataclass
class MatchResult:
    score: int
    reasoning: str
    missing_skills: list[str] = field(default_factory=list)
    breakdown: Optional[MatchBreakdown] = None


@dataclass
class ApplicationDraft:
    """Editable staging copy of the materials; never changes job status."""

    email_body: str
    cover_letter: str
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "email_body": self.email_body,
            "cover_letter": self.cover_letter,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ApplicationMaterials:
    """What was actually dispatched. Present exactly when the job is applied."""

    email_body: str
    cover_letter: str
    sent_at: datetime
    tracking_id: str
    attachments: list[str] = field(default_factory=list)
    dispatch_mode: str = ""
    delivery_status: str = "pending"  # "submitted" via relay, "pending" for local handoff
    handoff_uri: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "email_body": self.email_body,
            "cover_letter": self.cover_letter,
            "sent_at": self.sent_at.isoformat(),
            "tracking_id": self.tracking_id,
            "attachments": list(self.attachments),
            "dispatch_mode": self.dispatch_mode,
            "delivery_status": self.delivery_status,
            "handoff_uri": self.handoff_uri,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "ApplicationMaterials":
        return cls(
            email_body=raw.get("email_body", ""),
            cover_letter=raw.get("cover_letter", ""),
            sent_at=_parse_datetime(raw.get("sent_at")) or utcnow(),
            tracking_id=raw.get("tracking_id", ""),
            attachments=list(raw.get("attachments", [])),
            dispatch_mode=raw.get("dispatch_mode", ""),
            delivery_status=raw.get("delivery_status", "pending"),
            handoff_uri=raw.get("handoff_uri"),
        )


@dataclass
class JobPosting:
    """A discovered job opening tracked through the lifecycle.

    Identity for dedup is the normalized (title, company) pair; ``id`` is an
    opaque handle assigned at creation. Status and the fields derived from it
    are only written by JobLifecycle.
    """

    title: str
    company: str
    location: str = ""
    description: str = ""
    source: str = ""
    posted_date: str = ""
    url: str = ""
    contact_email: str = ""
    id: str = field(default_factory=new_job_id)
    status: JobStatus = JobStatus.DISCOVERED
    match_score: Optional[int] = None
    match_reasoning: Optional[str] = None
    missing_skills: list[str] = field(default_factory=list)
    match_breakdown: Optional[MatchBreakdown] = None
    extracted_requirements: Optional[RequirementSet] = None
    application_materials: Optional[ApplicationMaterials] = None
    discovered_at: datetime = field(default_factory=utcnow)

    @property
    def identity_key(self) -> tuple[str, str]:
        return normalize_identity(self.title), normalize_identity(self.company)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "source": self.source,
            "posted_date": self.posted_date,
            "url": self.url,
            "contact_email": self.contact_email,
            "status": self.status.value,
            "match_score": self.match_score,
            "match_reasoning": self.match_reasoning,
            "missing_skills": list(self.missing_skills),
            "match_breakdown": self.match_breakdown.to_dict() if self.match_breakdown else None,
            "extracted_requirements": (
                self.extracted_requirements.to_dict() if self.extracted_requirements else None
            ),
            "application_materials": (
                self.application_materials.to_dict() if self.application_materials else None
            ),
            "discovered_at": self.discovered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "JobPosting":
        """Rebuild a posting from ``to_dict`` output or a seed entry in the config."""
        status = JobStatus(raw.get("status", JobStatus.DISCOVERED.value))
        if status == JobStatus.REJECTED:
            raise ValueError("Rejected jobs are deleted, not stored")

        materials = raw.get("application_materials")
        if (status == JobStatus.APPLIED) != bool(materials):
            raise ValueError(
                f"Job {raw.get('title')!r}: application materials must be present exactly when status is applied"
            )

        requirements = raw.get("extracted_requirements")
        breakdown = raw.get("match_breakdown")
        kwargs = {}
        if raw.get("id"):
            kwargs["id"] = raw["id"]
        discovered_at = _parse_datetime(raw.get("discovered_at"))
        if discovered_at:
            kwargs["discovered_at"] = discovered_at

        return cls(
            title=raw["title"],
            company=raw["company"],
            location=raw.get("location", ""),
            description=raw.get("description", ""),
            source=raw.get("source", ""),
            posted_date=raw.get("posted_date", ""),
            url=raw.get("url", ""),
            contact_email=raw.get("contact_email", ""),
            status=status,
            match_score=raw.get("match_score"),
            match_reasoning=raw.get("match_reasoning"),
            missing_skills=list(raw.get("missing_skills") or []),
            match_breakdown=MatchBreakdown.from_dict(breakdown) if breakdown else None,
            extracted_requirements=RequirementSet.from_dict(requirements) if requirements else None,
            application_materials=ApplicationMaterials.from_dict(materials) if materials else None,
            **kwargs,
        )
