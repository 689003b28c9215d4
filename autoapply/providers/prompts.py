"""Prompt builders shared by every provider backend."""

from autoapply.jobs.models import JobPosting
from autoapply.profile.models import CandidateProfile

DESCRIPTION_LIMIT = 1500


def discovery_prompt(profile: CandidateProfile) -> str:
    roles = ", ".join(profile.desired_roles) or "software roles"
    locations = ", ".join(profile.preferences.locations) or "Remote"
    return (
        f"Find real, current job openings for: {roles} in {locations}.\n"
        "Separate 'title' (the designated position, e.g. Senior Data Engineer) from "
        "'company' (the hiring organisation). Do NOT put the company name in the title.\n"
        "Return a JSON array of objects with fields: title, company, location, source, "
        "description, url, contact_email (empty string if unknown)."
    )


def extraction_prompt(description: str) -> str:
    return (
        "Task: Extract JSON requirements from the job description below.\n"
        "Fields: must_have (string[]), nice_to_have (string[]), "
        "salary (object with amount (number) and currency (ISO code), or null).\n"
        f'Text: "{description}"'
    )


def match_prompt(job: JobPosting, profile: CandidateProfile) -> str:
    requirements = ""
    if job.extracted_requirements and not job.extracted_requirements.is_empty:
        req = job.extracted_requirements
        requirements = (
            f"Extracted must-have: {', '.join(req.must_have)}\n"
            f"Extracted nice-to-have: {', '.join(req.nice_to_have)}\n"
        )
    return (
        "Perform a high-precision multi-dimensional weighted match.\n"
        f"Candidate CV Skills: {', '.join(profile.skills.must_have)}\n"
        f"Candidate Nice-to-Have: {', '.join(profile.skills.nice_to_have)}\n"
        f"Job Title: {job.title}\n"
        f"Job Description: {job.description[:DESCRIPTION_LIMIT]}\n"
        f"{requirements}\n"
        "Task:\n"
        "1. Identify EXACT missing skills (technologies in the job but NOT in the CV).\n"
        "2. Analyze across 4 pillars (0-100 each).\n"
        "3. Calculate final weighted score.\n\n"
        "Return JSON:\n"
        '{ "score": number, "reasoning": string, "missing_skills": string[], '
        '"breakdown": { "technical": number, "culture": number, "growth": number, "logistics": number } }'
    )


def draft_prompt(job: JobPosting, profile: CandidateProfile) -> str:
    info = profile.personal_info
    return (
        f"Write a professional email and cover letter for {job.title} at {job.company}.\n"
        f"Applicant Name: {info.name}\n"
        f"Applicant Email: {info.email}\n"
        f"Applicant Phone: {info.phone or 'N/A'}\n"
        f"Applicant Location: {info.location}\n"
        f"Applicant Portfolio: {info.portfolio or 'N/A'}\n\n"
        "CRITICAL INSTRUCTIONS:\n"
        '1. For the "emailBody", do NOT include a "Subject:" line. Start directly with the salutation.\n'
        "2. Fill in ALL placeholders using the provided contact info.\n"
        "3. Keep the tone professional but concise.\n\n"
        'Return JSON: { "emailBody": "...", "coverLetter": "..." }'
    )


def digest_prompt(jobs: list[JobPosting], name: str) -> str:
    listing = "\n".join(f"- {job.title} at {job.company} ({job.location or 'n/a'})" for job in jobs)
    return (
        f"Write a short, friendly daily job briefing for {name or 'the candidate'}.\n"
        f"There are {len(jobs)} new openings:\n{listing or '- none today'}\n"
        "Plain text only, at most 120 words, no subject line."
    )
