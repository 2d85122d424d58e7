"""Application services."""

from __future__ import annotations

from pwa_gen.core.settings import Settings
from pwa_gen.core.stages import DefaultStageHandlers
from pwa_gen.infrastructure import InMemoryEntityStore
from pwa_gen.workers.background import BackgroundRunner

from .collaborators import ChatService, UserService
from .history import HistoryService
from .pipeline import PipelineController

__all__ = [
    "ChatService",
    "HistoryService",
    "PipelineController",
    "UserService",
    "configure_services",
    "get_background_runner",
    "get_chat_service",
    "get_history_service",
    "get_pipeline_controller",
    "get_user_service",
    "reset_state",
]


_store = InMemoryEntityStore()
_runner: BackgroundRunner | None = None
_controller: PipelineController | None = None
_history: HistoryService | None = None
_users = UserService(_store)
_chats = ChatService(_store)


def configure_services(settings: Settings) -> None:
    """(Re)build the pipeline services from ``settings``."""

    global _runner, _controller, _history
    if _runner is not None:
        _runner.shutdown(wait_for_pending=True)
    _runner = BackgroundRunner(max_workers=settings.max_workers)
    handlers = DefaultStageHandlers(
        github_delay_seconds=settings.github_delay_seconds,
        validate_delay_seconds=settings.validate_delay_seconds,
    )
    _controller = PipelineController(
        _store,
        handlers,
        _runner,
        detach_generate=settings.detach_generate,
        stale_after_seconds=settings.stale_after_seconds,
    )
    _history = HistoryService(_store, page_size=settings.history_page_size)


def _ensure_configured() -> None:
    if _controller is None:
        configure_services(Settings.from_env())


def get_pipeline_controller() -> PipelineController:
    _ensure_configured()
    assert _controller is not None
    return _controller


def get_history_service() -> HistoryService:
    _ensure_configured()
    assert _history is not None
    return _history


def get_background_runner() -> BackgroundRunner:
    _ensure_configured()
    assert _runner is not None
    return _runner


def get_user_service() -> UserService:
    return _users


def get_chat_service() -> ChatService:
    return _chats


def reset_state() -> None:
    """Wait for in-flight stage units and empty the store (used in tests)."""

    if _runner is not None:
        _runner.wait(timeout=10)
    _store.reset()
