"""
Signal Bus: typed pub/sub for turn, tool and memory events.

Two kinds of consumers:
- Listeners registered with on()/once() are called synchronously by emit(),
  in registration order. A listener that raises is logged and the rest of
  the listeners still run.
- Queue subscribers (subscribe()/listen()) receive the same payloads through
  their own asyncio.Queue, so a slow UI or voice layer never blocks a turn.

Usage:
    signals = SignalBus()
    signals.on(Signal.PARTIAL_TEXT, lambda text: print(text, end=""))

    queue = signals.subscribe(Signal.ASSISTANT_RESPONSE)
    async for result in signals.listen(queue):
        speak(result.screenplay)
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, AsyncGenerator, Callable

logger = logging.getLogger(__name__)

# Sentinel to signal end of stream
_STREAM_END = object()

Listener = Callable[[Any], Any]


class Signal(str, Enum):
    TURN_START = "turn_start"
    TURN_END = "turn_end"
    PARTIAL_TEXT = "partial_text"
    ASSISTANT_RESPONSE = "assistant_response"
    CHAT_LOG_UPDATED = "chat_log_updated"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    MEMORY_CREATED = "memory_created"
    MEMORY_REMOVED = "memory_removed"
    MEMORY_LOADED = "memory_loaded"
    MEMORY_SAVED = "memory_saved"
    MEMORY_IMPORTED = "memory_imported"
    STORAGE_CLEARED = "storage_cleared"
    ERROR = "error"


class SignalBus:
    """
    One listener list per Signal, plus per-subscriber queues.

    Single event loop only. emit() never awaits: queue delivery uses
    put_nowait and drops the payload when a subscriber's queue is full.
    """

    def __init__(self) -> None:
        self._listeners: dict[Signal, list[Listener]] = defaultdict(list)
        self._once: set[int] = set()
        # signal -> list of subscriber queues
        self._subscribers: dict[Signal, list[asyncio.Queue]] = defaultdict(list)

    # --- Listeners ---

    def on(self, signal: Signal, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that removes it again."""
        self._listeners[signal].append(listener)
        return lambda: self.off(signal, listener)

    def once(self, signal: Signal, listener: Listener) -> Callable[[], None]:
        """Register a listener that is removed after its first call."""
        self._once.add(id(listener))
        return self.on(signal, listener)

    def off(self, signal: Signal, listener: Listener) -> None:
        """Remove a listener. Safe to call if it was never registered."""
        listeners = self._listeners.get(signal, [])
        try:
            listeners.remove(listener)
        except ValueError:
            return
        self._once.discard(id(listener))
        if not listeners:
            del self._listeners[signal]

    def emit(self, signal: Signal, payload: Any = None) -> int:
        """
        Deliver ``payload`` to every listener and subscriber of ``signal``.

        Returns the number of listeners that completed without raising.
        """
        delivered = 0
        for listener in list(self._listeners.get(signal, [])):
            if id(listener) in self._once:
                self.off(signal, listener)
            try:
                listener(payload)
                delivered += 1
            except Exception:
                logger.exception("Listener for %s failed", signal.value)

        for queue in self._subscribers.get(signal, []):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull:
                logger.warning(
                    "Signal bus: subscriber queue full for %s, dropping event",
                    signal.value,
                )
        return delivered

    def listener_count(self, signal: Signal) -> int:
        return len(self._listeners.get(signal, []))

    def clear(self, signal: Signal | None = None) -> None:
        """Remove every listener for one signal, or for all signals."""
        if signal is None:
            self._listeners.clear()
            self._once.clear()
            return
        for listener in self._listeners.pop(signal, []):
            self._once.discard(id(listener))

    # --- Queue subscribers ---

    def subscribe(self, signal: Signal, maxsize: int = 1000) -> asyncio.Queue:
        """
        Subscribe to a signal. Returns a Queue that receives payloads.

        Iterate it with listen(); close(signal) ends every listen() loop.
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers[signal].append(queue)
        logger.debug(
            "Subscribed to %s (total: %d)",
            signal.value,
            len(self._subscribers[signal]),
        )
        return queue

    def unsubscribe(self, signal: Signal, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(signal, [])
        if queue in queues:
            queues.remove(queue)
            if not queues:
                del self._subscribers[signal]
            logger.debug("Unsubscribed from %s", signal.value)

    async def listen(self, queue: asyncio.Queue) -> AsyncGenerator[Any, None]:
        """Yield payloads from a subscriber queue until close() is called."""
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                break
            yield item

    def close(self, signal: Signal) -> None:
        """Signal end-of-stream to every subscriber of ``signal`` and drop them."""
        for queue in self._subscribers.pop(signal, []):
            try:
                queue.put_nowait(_STREAM_END)
            except asyncio.QueueFull:
                logger.warning(
                    "Signal bus: could not deliver end-of-stream for %s",
                    signal.value,
                )

    def subscriber_count(self, signal: Signal) -> int:
        return len(self._subscribers.get(signal, []))
