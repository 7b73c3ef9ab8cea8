"""Test helpers for code that embeds memosync."""

from .fakes import InMemoryEntityStore, InMemoryHistoryStore, InMemorySyncState, ManualClock

__all__ = ["InMemoryEntityStore", "InMemoryHistoryStore", "InMemorySyncState", "ManualClock"]
