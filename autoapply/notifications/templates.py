"""Plain-text message templates: digests, application subjects and fallback drafts."""

from datetime import datetime, timezone
from typing import Optional

from autoapply.jobs.models import JobPosting
from autoapply.profile.models import CandidateProfile
from autoapply.utils.text_processing import slugify_filename


def digest_subject(trigger: str = "scheduled", now: Optional[datetime] = None) -> str:
    """Subject line for a cycle digest."""
    now = now or datetime.now(timezone.utc)
    if trigger == "manual":
        return f"Manual Sync Briefing - {now.strftime('%Y-%m-%d')}"
    return f"Daily Briefing - {now.strftime('%Y-%m-%d')}"


def render_digest_text(jobs: list[JobPosting], name: str = "") -> str:
    """Heuristic digest used when no provider can write the summary."""
    greeting = f"Hi {name.split()[0]},\n\n" if name.strip() else ""
    lines = [
        f"{greeting}Found {len(jobs)} new opportunities for you today. "
        "Log in to the AutoApply dashboard to review them."
    ]
    if jobs:
        lines.append("")
        for i, job in enumerate(jobs, 1):
            where = f" - {job.location}" if job.location else ""
            lines.append(f"{i}. {job.title} @ {job.company}{where}")
            if job.url:
                lines.append(f"   {job.url}")
    return "\n".join(lines)


def application_subject(job: JobPosting, profile: CandidateProfile) -> str:
    name = profile.personal_info.name
    suffix = f" - {name}" if name else ""
    return f"Application for {job.title}{suffix}"


def cover_letter_filename(company: str) -> str:
    return f"Cover_Letter_{slugify_filename(company) or 'Company'}.pdf"


def render_fallback_draft(job: JobPosting, profile: CandidateProfile) -> tuple[str, str]:
    """Template email body and cover letter used when no provider can draft.

    Returns (email_body, cover_letter).
    """
    info = profile.personal_info
    name = info.name or "the applicant"
    skills = ", ".join(profile.skills.must_have[:5])
    skills_line = f" My core skills include {skills}." if skills else ""

    contact = [line for line in (info.email, info.phone, info.portfolio) if line]
    signature = "\n".join([name, *contact])

    email_body = (
        "Dear Hiring Team,\n\n"
        f"I am writing to apply for the {job.title} position at {job.company}.{skills_line} "
        "Please find my CV and cover letter attached.\n\n"
        "I would welcome the opportunity to discuss how I can contribute to your team.\n\n"
        f"Sincerely,\n\n{signature}"
    )
    cover_letter = (
        f"To the Hiring Committee at {job.company},\n\n"
        f"I am pleased to submit my application for the {job.title} role.{skills_line}\n\n"
        f"I am confident that my experience aligns with the needs of {job.company}, and I would be "
        "glad to bring it to your team. Thank you for your time and consideration.\n\n"
        f"Sincerely,\n\n{name}"
    )
    return email_body, cover_letter
