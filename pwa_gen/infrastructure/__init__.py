"""Infrastructure layer exports."""

from .store import Entity, EntityCollection, EntityStore, InMemoryEntityStore, Page

__all__ = [
    "Entity",
    "EntityCollection",
    "EntityStore",
    "InMemoryEntityStore",
    "Page",
]
