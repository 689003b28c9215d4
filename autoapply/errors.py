"""Error taxonomy shared by the gateways, the lifecycle and the scheduler."""


class AutoApplyError(Exception):
    """Base class for every error raised by the orchestrator."""


class TransientProviderError(AutoApplyError):
    """A provider backend was unreachable or returned unusable output."""


class StateViolation(AutoApplyError):
    """An operator action does not fit the job's current status."""


class JobNotFound(StateViolation):
    def __init__(self, job_id: str):
        super().__init__(f"No job with id {job_id!r}")
        self.job_id = job_id


class CycleInProgress(AutoApplyError):
    """Another cycle or operator action already holds the coordination lock."""


class DispatchFailure(AutoApplyError):
    """Neither the relay nor the local handoff could be produced."""


class PersistenceUnavailable(AutoApplyError):
    """The checkpoint or job set could not be read or written."""
