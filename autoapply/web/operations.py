"""Operations routes - cycles, schedule countdown, activity log, outbox and stats."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from autoapply.events import Subsystem
from autoapply.orchestrator import Orchestrator

from .dependencies import get_orchestrator

router = APIRouter(tags=["operations"])


@router.post("/cycle")
def trigger_cycle(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Force a discovery cycle now. 409 if one is already running."""
    return orchestrator.trigger_manual_cycle().to_dict()


@router.get("/schedule")
def schedule_status(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.schedule_status()


@router.get("/events")
def list_events(
    since: int = Query(default=0, ge=0),
    subsystem: Optional[Subsystem] = Query(default=None),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    events = orchestrator.event_log(since)
    if subsystem is not None:
        events = [event for event in events if event.subsystem == subsystem]
    return {
        "last_seq": events[-1].seq if events else since,
        "events": [event.to_dict() for event in events],
    }


@router.get("/outbox")
def outbox(orchestrator: Orchestrator = Depends(get_orchestrator)):
    jobs = orchestrator.applied_jobs()
    return {"total": len(jobs), "jobs": [job.to_dict() for job in jobs]}


@router.get("/stats")
def stats(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.stats()
