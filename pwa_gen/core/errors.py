from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors surfaced by the store and the pipeline."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(PipelineError):
    status_code = 404


class PreconditionFailed(PipelineError):
    """Raised when a stage is invoked while the job is in the wrong state."""

    status_code = 409


class IllegalTransition(PreconditionFailed):
    """Raised when a status change is not a legal successor of the current status."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        super().__init__(f"Invalid transition {current} -> {target} for job {job_id}")
        self.job_id = job_id
        self.current = current
        self.target = target


class DuplicateId(PipelineError):
    status_code = 409


class ValidationFailure(PipelineError):
    """Raised when a stage handler or caller input reports a domain error."""

    status_code = 422


class TransientIOFailure(PipelineError):
    """Raised by a store that is temporarily unavailable."""

    status_code = 503
