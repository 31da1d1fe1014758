"""
Shared fixtures for lumen tests.

Provides a controllable clock, a signal recorder, canned SSE bodies and
an httpx.MockTransport factory so no test ever reaches a real back end.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from lumen.core.metrics import metrics
from lumen.core.signals import Signal, SignalBus


# ── Clock ──────────────────────────────────────────────────


class FakeClock:
    """Callable clock returning Unix seconds under test control."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


# ── Signals ────────────────────────────────────────────────


class SignalRecorder:
    """Records every payload emitted for the watched signals, in order."""

    def __init__(self, bus: SignalBus, signals: list[Signal] | None = None):
        self.events: list[tuple[Signal, Any]] = []
        for signal in signals or list(Signal):
            bus.on(signal, self._recorder(signal))

    def _recorder(self, signal: Signal) -> Callable[[Any], None]:
        return lambda payload: self.events.append((signal, payload))

    def of(self, signal: Signal) -> list[Any]:
        return [payload for s, payload in self.events if s is signal]

    def names(self) -> list[Signal]:
        return [s for s, _ in self.events]


@pytest.fixture
def signals():
    return SignalBus()


@pytest.fixture
def recorder(signals):
    return SignalRecorder(signals)


# ── Metrics ────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


# ── HTTP ───────────────────────────────────────────────────


def sse_body(*payloads: Any, event_names: bool = False) -> bytes:
    """Build an SSE body: one ``data:`` line per payload, blank line between."""
    lines: list[str] = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        if event_names and isinstance(payload, dict) and "type" in payload:
            lines.append(f"event: {payload['type']}")
        lines.append(f"data: {data}")
        lines.append("")
    return ("\n".join(lines) + "\n").encode("utf-8")


class RecordingTransport:
    """Wraps a handler in httpx.MockTransport and keeps every request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        self.transport = httpx.MockTransport(record)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mock_http():
    """Factory: mock_http(handler) -> RecordingTransport."""
    return RecordingTransport
