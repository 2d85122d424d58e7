"""Read path over job records for the history view."""
from __future__ import annotations

import logging

from pwa_gen.core.schema import JobState
from pwa_gen.domain import ARCHIVE, JOB
from pwa_gen.infrastructure import EntityCollection, EntityStore, Page

logger = logging.getLogger(__name__)


class HistoryService:
    def __init__(self, store: EntityStore, page_size: int = 10) -> None:
        self._jobs = EntityCollection(store, JOB)
        self._archives = EntityCollection(store, ARCHIVE)
        self.page_size = page_size

    def history(self, cursor: str | None = None, limit: int | None = None) -> Page[JobState]:
        return self._jobs.list(cursor, limit or self.page_size)

    def clear_history(self) -> int:
        cleared = self._jobs.clear_all()
        archives = self._archives.clear_all()
        logger.info(f"Cleared {cleared} job(s) and {archives} stored archive(s)")
        return cleared
