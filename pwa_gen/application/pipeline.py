"""Pipeline controller driving jobs through analyze, generate, validate and export."""
from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import TypeVar

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from pwa_gen.core.errors import (
    IllegalTransition,
    NotFound,
    PreconditionFailed,
    TransientIOFailure,
    ValidationFailure,
)
from pwa_gen.core.schema import (
    PERFECT_SCORE,
    ArchiveBlob,
    ExportRequest,
    ExportResult,
    FileInput,
    GenerateOptions,
    InputType,
    JobState,
)
from pwa_gen.core.stages import StageHandlers
from pwa_gen.domain import (
    ARCHIVE,
    IN_PROGRESS_STATUSES,
    JOB,
    AnalysisCompleted,
    AnalysisStarted,
    ExportCompleted,
    FilesGenerated,
    StageFailed,
    StagePayload,
    ValidationCompleted,
    ValidationStarted,
    apply_transition,
)
from pwa_gen.infrastructure import EntityCollection, EntityStore
from pwa_gen.workers.background import BackgroundRunner

logger = logging.getLogger(__name__)

R = TypeVar("R")


def epoch_millis() -> int:
    return int(time.time() * 1000)


class PipelineController:
    """Coordinates stage transitions for job records.

    Every status change goes through :meth:`advance`, which applies the
    transition inside a single store ``mutate`` so that the legality check
    and the write see the same record.
    """

    def __init__(
        self,
        store: EntityStore,
        handlers: StageHandlers,
        runner: BackgroundRunner,
        *,
        detach_generate: bool = False,
        stale_after_seconds: float = 300.0,
        clock: Callable[[], int] = epoch_millis,
        retry_attempts: int = 3,
        retry_wait_base: float = 0.05,
        retry_wait_max: float = 0.5,
    ) -> None:
        self._jobs = EntityCollection(store, JOB)
        self._archives = EntityCollection(store, ARCHIVE)
        self._handlers = handlers
        self._runner = runner
        self.detach_generate = detach_generate
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._retrying = Retrying(
            stop=stop_after_attempt(max(1, retry_attempts)),
            wait=wait_exponential(multiplier=retry_wait_base, max=retry_wait_max),
            retry=retry_if_exception_type(TransientIOFailure),
            reraise=True,
        )

    # ------------------------------------------------------------------
    # store access
    # ------------------------------------------------------------------
    def _with_retry(self, operation: Callable[[], R]) -> R:
        return self._retrying.copy()(operation)

    def get_job(self, job_id: str) -> JobState:
        return self._with_retry(lambda: self._jobs.get(job_id))

    def advance(self, job_id: str, transition: StagePayload) -> JobState:
        """Apply ``transition`` to the job; raise :class:`IllegalTransition` if it is not allowed."""

        now = self._clock()
        updated = self._with_retry(
            lambda: self._jobs.mutate(job_id, lambda state: apply_transition(state, transition, now))
        )
        logger.info(f"Job {job_id} -> {updated.status}")
        return updated

    # ------------------------------------------------------------------
    # background units
    # ------------------------------------------------------------------
    def _spawn(self, job_id: str, stage: str, work: Callable[[], StagePayload]) -> None:
        def unit() -> None:
            try:
                outcome = work()
            except Exception as exc:
                logger.error(f"Job {job_id}: {stage} failed: {exc}", exc_info=True)
                outcome = StageFailed(message=str(exc) or type(exc).__name__)
            try:
                self.advance(job_id, outcome)
            except IllegalTransition as exc:
                logger.warning(f"Dropping stale {stage} completion: {exc.message}")
            except NotFound:
                logger.warning(f"Dropping {stage} completion for deleted job {job_id}")

        self._runner.submit(f"{stage}:{job_id}", unit)

    def _run_inline(self, job_id: str, stage: str, work: Callable[[], StagePayload]) -> JobState:
        try:
            outcome = work()
        except Exception as exc:
            logger.error(f"Job {job_id}: {stage} failed: {exc}", exc_info=True)
            message = str(exc) or type(exc).__name__
            self.advance(job_id, StageFailed(message=message))
            if isinstance(exc, ValidationFailure):
                raise
            raise ValidationFailure(message) from exc
        return self.advance(job_id, outcome)

    # ------------------------------------------------------------------
    # stage triggers
    # ------------------------------------------------------------------
    def start_analyze(
        self,
        input: str | FileInput,
        input_type: InputType,
        archive: bytes | None = None,
        *,
        archive_id: str | None = None,
    ) -> str:
        if archive is not None:
            name = input.name if isinstance(input, FileInput) else str(input)
            blob = ArchiveBlob(id=uuid.uuid4().hex, name=name, content=archive)
            archive_id = self._with_retry(lambda: self._archives.create(blob)).id

        now = self._clock()
        job = JobState(
            id=uuid.uuid4().hex,
            input=input,
            input_type=input_type,
            status="pending",
            created_at=now,
            updated_at=now,
            archive_id=archive_id,
        )
        self._with_retry(lambda: self._jobs.create(job))
        job = self.advance(job.id, AnalysisStarted())

        def work() -> StagePayload:
            payload = self._with_retry(lambda: self._archives.get(archive_id)).content if archive_id else None
            return AnalysisCompleted(analysis=self._handlers.analyze(job, payload))

        self._spawn(job.id, "analyze", work)
        return job.id

    def start_generate(self, job_id: str, options: GenerateOptions | None = None) -> JobState:
        options = options or GenerateOptions()
        job = self.get_job(job_id)
        if job.status != "complete" or job.analysis is None:
            raise PreconditionFailed(f"Job {job_id} must finish analysis before generation (status={job.status})")

        def work() -> StagePayload:
            return FilesGenerated(files=tuple(self._handlers.generate(job, options)))

        if self.detach_generate:
            self._spawn(job_id, "generate", work)
            return job
        return self._run_inline(job_id, "generate", work)

    def start_validate(self, job_id: str) -> JobState:
        job = self.get_job(job_id)
        if job.status != "generated":
            raise PreconditionFailed(f"Job {job_id} has no generated files to validate (status={job.status})")
        job = self.advance(job_id, ValidationStarted())

        def work() -> StagePayload:
            return ValidationCompleted(validation=self._handlers.validate(job))

        self._spawn(job_id, "validate", work)
        return job

    def start_export(self, job_id: str, request: ExportRequest | None = None) -> ExportResult:
        request = request or ExportRequest()
        job = self.get_job(job_id)
        if job.status != "validated" or job.validation is None:
            raise PreconditionFailed(f"Job {job_id} must be validated before export (status={job.status})")
        if job.validation.score != PERFECT_SCORE:
            raise PreconditionFailed(
                f"Job {job_id} scored {job.validation.score}; export requires {PERFECT_SCORE}"
            )

        def work() -> StagePayload:
            return ExportCompleted(export=self._handlers.export(job, request))

        exported = self._run_inline(job_id, "export", work)
        return exported.export  # type: ignore[return-value]

    def rerun(self, job_id: str) -> str:
        original = self.get_job(job_id)
        new_id = self.start_analyze(original.input, original.input_type, archive_id=original.archive_id)
        logger.info(f"Job {job_id} rerun as {new_id}")
        return new_id

    # ------------------------------------------------------------------
    # diagnostics
    # ------------------------------------------------------------------
    def diagnose(self, job_id: str) -> dict[str, object]:
        job = self.get_job(job_id)
        age_seconds = max(0.0, (self._clock() - job.updated_at) / 1000)
        stale = job.status in IN_PROGRESS_STATUSES and age_seconds > self.stale_after_seconds
        if stale:
            logger.warning(f"Job {job_id} has been {job.status} for {age_seconds:.0f}s")
        return {
            "job_id": job_id,
            "status": job.status,
            "age_seconds": round(age_seconds, 3),
            "stale": stale,
        }
