"""Job state machine and the stage payloads that drive it."""
from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from pwa_gen.core.errors import IllegalTransition
from pwa_gen.core.schema import (
    AnalysisResult,
    ExportResult,
    GeneratedFile,
    JobState,
    JobStatus,
    ValidationResult,
)

IN_PROGRESS_STATUSES: frozenset[str] = frozenset({"analyzing", "validating"})
TERMINAL_STATUSES: frozenset[str] = frozenset({"exported", "error"})
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"analyzing", "error"}),
    "analyzing": frozenset({"complete", "error"}),
    "complete": frozenset({"generated", "error"}),
    "generated": frozenset({"validating", "error"}),
    "validating": frozenset({"validated", "error"}),
    "validated": frozenset({"exported", "error"}),
    "exported": frozenset(),
    "error": frozenset(),
}


@dataclass(frozen=True, slots=True)
class AnalysisStarted:
    status: ClassVar[JobStatus] = "analyzing"


@dataclass(frozen=True, slots=True)
class AnalysisCompleted:
    analysis: AnalysisResult
    status: ClassVar[JobStatus] = "complete"


@dataclass(frozen=True, slots=True)
class FilesGenerated:
    files: tuple[GeneratedFile, ...]
    status: ClassVar[JobStatus] = "generated"


@dataclass(frozen=True, slots=True)
class ValidationStarted:
    status: ClassVar[JobStatus] = "validating"


@dataclass(frozen=True, slots=True)
class ValidationCompleted:
    validation: ValidationResult
    status: ClassVar[JobStatus] = "validated"


@dataclass(frozen=True, slots=True)
class ExportCompleted:
    export: ExportResult
    status: ClassVar[JobStatus] = "exported"


@dataclass(frozen=True, slots=True)
class StageFailed:
    message: str
    status: ClassVar[JobStatus] = "error"


StagePayload = Union[
    AnalysisStarted,
    AnalysisCompleted,
    FilesGenerated,
    ValidationStarted,
    ValidationCompleted,
    ExportCompleted,
    StageFailed,
]


def is_legal(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def apply_transition(state: JobState, transition: StagePayload, now_ms: int) -> JobState:
    """Return ``state`` advanced by ``transition``.

    Only the fields owned by the transition are replaced; payloads recorded
    by earlier stages are carried over untouched.
    """

    if not is_legal(state.status, transition.status):
        raise IllegalTransition(state.id, state.status, transition.status)

    updates: dict[str, object] = {"status": transition.status, "updated_at": now_ms}
    if isinstance(transition, (AnalysisStarted, ValidationStarted)):
        pass
    elif isinstance(transition, AnalysisCompleted):
        updates["analysis"] = transition.analysis.model_copy(deep=True)
    elif isinstance(transition, FilesGenerated):
        updates["generated"] = [item.model_copy(deep=True) for item in transition.files]
    elif isinstance(transition, ValidationCompleted):
        updates["validation"] = transition.validation.model_copy(deep=True)
    elif isinstance(transition, ExportCompleted):
        updates["export"] = transition.export.model_copy(deep=True)
    elif isinstance(transition, StageFailed):
        updates["error"] = transition.message
    else:  # pragma: no cover - exhaustive over StagePayload
        raise TypeError(f"unsupported stage payload {type(transition).__name__}")
    return state.model_copy(update=updates)
