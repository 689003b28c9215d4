"""Job routes - the job stream and the per-job operator actions."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel

from autoapply.jobs.models import JobStatus
from autoapply.orchestrator import Orchestrator

from .dependencies import get_orchestrator

router = APIRouter(prefix="/jobs", tags=["jobs"])


class CommitRequest(BaseModel):
    email_body: Optional[str] = None
    cover_letter: Optional[str] = None


@router.get("")
def list_jobs(
    status: Optional[JobStatus] = Query(default=None),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    jobs = orchestrator.jobs()
    if status is not None:
        jobs = [job for job in jobs if job.status == status]
    return {"total": len(jobs), "jobs": [job.to_dict() for job in jobs]}


@router.get("/{job_id}")
def get_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.get_job(job_id).to_dict()


@router.post("/{job_id}/approve")
def approve_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Approve a discovered job: extract its requirements."""
    return orchestrator.approve(job_id).to_dict()


@router.post("/{job_id}/match")
def match_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.run_match(job_id).to_dict()


@router.post("/{job_id}/draft")
def request_draft(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.request_draft(job_id).to_dict()


@router.get("/{job_id}/draft")
def get_draft(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    draft = orchestrator.get_draft(job_id)
    return {"job_id": job_id, "draft": draft.to_dict() if draft else None}


@router.post("/{job_id}/commit")
def commit_draft(
    job_id: str,
    body: Optional[CommitRequest] = None,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    body = body or CommitRequest()
    result = orchestrator.commit_draft(job_id, email_body=body.email_body, cover_letter=body.cover_letter)
    return {"job": result.job.to_dict(), "dispatch": result.dispatch.to_dict()}


@router.delete("/{job_id}", status_code=204)
def reject_job(job_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    orchestrator.reject(job_id)
    return Response(status_code=204)
