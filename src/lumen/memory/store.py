"""
Memory storage: where tier records live between processes.

The MemoryManager talks to a MemoryStorage (load / save / clear). Shipped
adapters:
- InMemoryStorage: process-local, for tests and ephemeral sessions
- JsonFileMemoryStorage: one JSON file, written atomically
- SQLiteMemoryStorage: aiosqlite, one row per tier
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

import aiosqlite

from lumen.memory.models import MemoryRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class MemoryStorage(Protocol):
    async def load(self) -> list[MemoryRecord]: ...

    async def save(self, records: Sequence[MemoryRecord]) -> None: ...

    async def clear(self) -> None: ...


def _decode_records(raw: object, source: str) -> list[MemoryRecord]:
    """Keep every valid record, log and drop the rest."""
    if not isinstance(raw, list):
        logger.warning("Ignoring memory data in %s: expected a list", source)
        return []
    records = []
    for entry in raw:
        try:
            records.append(MemoryRecord.from_dict(entry))
        except ValueError as e:
            logger.warning("Dropping invalid memory record from %s: %s", source, e)
    return records


class InMemoryStorage:
    def __init__(self, records: Sequence[MemoryRecord] = ()):
        self._records: list[MemoryRecord] = list(records)

    async def load(self) -> list[MemoryRecord]:
        return list(self._records)

    async def save(self, records: Sequence[MemoryRecord]) -> None:
        self._records = list(records)

    async def clear(self) -> None:
        self._records = []


class JsonFileMemoryStorage:
    """Records as a JSON list in one file. Writes go to a temp file first."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def load(self) -> list[MemoryRecord]:
        return await asyncio.to_thread(self._load_sync)

    async def save(self, records: Sequence[MemoryRecord]) -> None:
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write_sync, payload)

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, True)

    def _load_sync(self) -> list[MemoryRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Memory file %s is not valid JSON: %s", self.path, e)
            return []
        return _decode_records(raw, str(self.path))

    def _write_sync(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SQLiteMemoryStorage:
    """One row per tier in a small SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def start(self) -> None:
        if self._db:
            return  # Already started
        self._db = await aiosqlite.connect(str(self.db_path))
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS memory_records (
                type TEXT PRIMARY KEY,
                summary TEXT NOT NULL,
                timestamp REAL NOT NULL
            )
        """)
        await self._db.commit()
        logger.info("Memory storage initialized at %s", self.db_path)

    async def stop(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.start()
        if self._db is None:
            raise RuntimeError(f"Memory storage at {self.db_path} is not connected")
        return self._db

    async def load(self) -> list[MemoryRecord]:
        db = await self._conn()
        async with db.execute("SELECT type, summary, timestamp FROM memory_records") as cursor:
            rows = await cursor.fetchall()
        return _decode_records(
            [{"type": t, "summary": s, "timestamp": ts} for t, s, ts in rows],
            str(self.db_path),
        )

    async def save(self, records: Sequence[MemoryRecord]) -> None:
        db = await self._conn()
        await db.execute("DELETE FROM memory_records")
        await db.executemany(
            "INSERT OR REPLACE INTO memory_records (type, summary, timestamp) VALUES (?, ?, ?)",
            [(r.type.value, r.summary, r.timestamp) for r in records],
        )
        await db.commit()

    async def clear(self) -> None:
        db = await self._conn()
        await db.execute("DELETE FROM memory_records")
        await db.commit()
