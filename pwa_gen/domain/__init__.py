"""Domain layer definitions."""

from .entities import ARCHIVE, CHAT, JOB, USER, EntityConfig
from .jobs import (
    ALLOWED_TRANSITIONS,
    IN_PROGRESS_STATUSES,
    TERMINAL_STATUSES,
    AnalysisCompleted,
    AnalysisStarted,
    ExportCompleted,
    FilesGenerated,
    StageFailed,
    StagePayload,
    ValidationCompleted,
    ValidationStarted,
    apply_transition,
    is_legal,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ARCHIVE",
    "CHAT",
    "IN_PROGRESS_STATUSES",
    "JOB",
    "TERMINAL_STATUSES",
    "USER",
    "AnalysisCompleted",
    "AnalysisStarted",
    "EntityConfig",
    "ExportCompleted",
    "FilesGenerated",
    "StageFailed",
    "StagePayload",
    "ValidationCompleted",
    "ValidationStarted",
    "apply_transition",
    "is_legal",
]
