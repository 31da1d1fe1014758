"""Lumen Memory: time-tiered conversation summaries."""

from lumen.memory.manager import MemoryManager
from lumen.memory.models import MemoryOptions, MemoryRecord, MemoryType, Summarizer
from lumen.memory.store import (
    InMemoryStorage,
    JsonFileMemoryStorage,
    MemoryStorage,
    SQLiteMemoryStorage,
)

__all__ = [
    "InMemoryStorage",
    "JsonFileMemoryStorage",
    "MemoryManager",
    "MemoryOptions",
    "MemoryRecord",
    "MemoryStorage",
    "MemoryType",
    "SQLiteMemoryStorage",
    "Summarizer",
]
