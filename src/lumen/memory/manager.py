"""
Memory Manager: time-tiered transcript summaries.

Three independent tiers (short / mid / long), each triggered once the
conversation has run longer than its threshold. A triggered tier
summarizes the whole current transcript and replaces its previous record.
Tiers are never consumed: every check re-evaluates all of them.

Creation is sequential, tier by tier, and every storage call is awaited
before the record set is touched again. Storage failures are logged and
reported through Signal.ERROR; they never abort a turn.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from lumen.core.metrics import metrics
from lumen.core.signals import Signal, SignalBus
from lumen.llm.contracts import Message
from lumen.memory.models import MemoryOptions, MemoryRecord, MemoryType, Summarizer
from lumen.memory.store import MemoryStorage

logger = logging.getLogger(__name__)

_TIER_TITLES = {
    MemoryType.SHORT: "Short-term memory",
    MemoryType.MID: "Mid-term memory",
    MemoryType.LONG: "Long-term memory",
}


def _duration_label(seconds: float) -> str:
    if seconds % 60 == 0:
        return f"{int(seconds // 60)}min"
    return f"{seconds:g}s"


class MemoryManager:
    def __init__(
        self,
        options: MemoryOptions | None = None,
        summarizer: Summarizer | None = None,
        storage: MemoryStorage | None = None,
        signals: SignalBus | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.options = options or MemoryOptions()
        self.summarizer = summarizer
        self.storage = storage
        self.signals = signals or SignalBus()
        self._clock = clock
        # One entry per tier; dict order is insertion order, not prompt order
        self._records: dict[MemoryType, MemoryRecord] = {}

    # --- Storage ---

    async def load(self) -> list[MemoryRecord]:
        """Replace the record set with whatever storage holds."""
        if self.storage is None:
            return []
        try:
            loaded = await self.storage.load()
        except Exception as e:
            logger.error("Error loading memories from storage: %s", e, exc_info=True)
            self.signals.emit(Signal.ERROR, e)
            return []

        if loaded:
            self._records = {}
            for record in loaded:
                self._records[record.type] = record
            logger.info("Loaded %d memory record(s)", len(self._records))
            self.signals.emit(Signal.MEMORY_LOADED, self.get_all_memories())
        return self.get_all_memories()

    async def _save(self) -> None:
        if self.storage is None:
            return
        records = self.get_all_memories()
        try:
            await self.storage.save(records)
        except Exception as e:
            logger.error("Error saving memories to storage: %s", e, exc_info=True)
            self.signals.emit(Signal.ERROR, e)
            return
        self.signals.emit(Signal.MEMORY_SAVED, records)

    # --- Tier creation ---

    async def create_memory_if_needed(
        self, transcript: Sequence[Message], start_time: float
    ) -> list[MemoryRecord]:
        """Create or refresh every tier whose threshold has elapsed.

        Returns the records created by this call, in tier order.
        """
        if not self.options.enable_summarization or self.summarizer is None:
            return []

        now = self._clock()
        elapsed = now - start_time
        created = []
        for memory_type in MemoryType:
            if elapsed < self.options.threshold(memory_type):
                continue
            try:
                created.append(
                    await self._create_memory(self.summarizer, memory_type, transcript, now)
                )
            except Exception as e:
                logger.error(
                    "Error creating %s-term memory: %s",
                    memory_type.value,
                    e,
                    exc_info=True,
                    extra={"tier": memory_type.value},
                )
                self.signals.emit(Signal.ERROR, e)
        return created

    async def _create_memory(
        self,
        summarizer: Summarizer,
        memory_type: MemoryType,
        transcript: Sequence[Message],
        timestamp: float,
    ) -> MemoryRecord:
        summary = await summarizer.summarize(
            list(transcript),
            self.options.max_summary_length,
            self.options.summary_prompt_template,
        )
        record = MemoryRecord(type=memory_type, summary=summary, timestamp=timestamp)
        # Replaces any previous record of this tier
        self._records[memory_type] = record

        metrics.inc("memory.created", labels={"tier": memory_type.value})
        logger.info(
            "Created %s-term memory (%d chars)",
            memory_type.value,
            len(summary),
            extra={"tier": memory_type.value},
        )
        self.signals.emit(Signal.MEMORY_CREATED, record)
        await self._save()
        return record

    # --- Queries ---

    def get_all_memories(self) -> list[MemoryRecord]:
        """All records, in short -> mid -> long order."""
        return [self._records[t] for t in MemoryType if t in self._records]

    def get_memory_by_type(self, memory_type: MemoryType) -> MemoryRecord | None:
        return self._records.get(memory_type)

    def get_memory_for_prompt(self) -> str:
        sections = []
        for memory_type in MemoryType:
            record = self._records.get(memory_type)
            if record is None:
                continue
            label = _duration_label(self.options.threshold(memory_type))
            sections.append(f"[{_TIER_TITLES[memory_type]}: {label}]\n{record.summary}")
        return "\n\n".join(sections)

    # --- Eviction ---

    async def cleanup_old_memories(self) -> list[MemoryRecord]:
        """Evict records older than the retention window. Returns the evicted ones."""
        now = self._clock()
        retention = self.options.retention_seconds
        evicted = [r for r in self.get_all_memories() if now - r.timestamp > retention]

        if evicted:
            for record in evicted:
                del self._records[record.type]
            logger.info("Evicted %d expired memory record(s)", len(evicted))
            self.signals.emit(Signal.MEMORY_REMOVED, evicted)

        await self._save()
        return evicted

    async def clear_all_memories(self) -> None:
        removed = self.get_all_memories()
        self._records = {}
        self.signals.emit(Signal.MEMORY_REMOVED, removed)

        if self.storage is None:
            return
        try:
            await self.storage.clear()
        except Exception as e:
            logger.error("Error clearing memory storage: %s", e, exc_info=True)
            self.signals.emit(Signal.ERROR, e)
            return
        self.signals.emit(Signal.STORAGE_CLEARED, None)

    async def import_memory_records(self, records: Sequence[MemoryRecord]) -> None:
        """Replace the imported tiers. Within the batch the last record per tier wins."""
        if not records:
            return
        imported: dict[MemoryType, MemoryRecord] = {}
        for record in records:
            imported[record.type] = record
        self._records.update(imported)

        self.signals.emit(Signal.MEMORY_IMPORTED, list(imported.values()))
        await self._save()
