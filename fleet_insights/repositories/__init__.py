"""Ingestion and in-memory storage of tracker events."""

from .event_repository import EventRepository, LogNormalizer

__all__ = [
    "EventRepository",
    "LogNormalizer",
]
