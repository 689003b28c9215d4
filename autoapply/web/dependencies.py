"""Shared FastAPI dependencies."""

from fastapi import Request

from autoapply.orchestrator import Orchestrator


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator
