"""Shared fixtures and fakes: manual clock, in-memory transport, fake model collaborators."""

from __future__ import annotations

import asyncio
import base64
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from livestylist.agents.preview import GenerationResult, PreviewError, PreviewGenerator
from livestylist.agents.vision import VisionError, VisionPipeline, VisionResults
from livestylist.core.config import (
    RateLimitConfig,
    RelayConfig,
    SessionConfig,
    StoreConfig,
    StylistConfig,
)
from livestylist.core.metrics import metrics
from livestylist.core.tasks import BackgroundTasks
from livestylist.core.timers import Timers
from livestylist.main import create_app
from livestylist.persistence.store import StylistStore
from livestylist.relay.upstream import UpstreamConnectError, UpstreamEvent, UpstreamSession
from livestylist.session.manager import SessionManager
from livestylist.session.models import SubscriptionTier
from livestylist.session.registry import SessionRegistry

START_TIME = 1_700_000_000.0


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ─── Manual clock ─────────────────────────────────────────────


class ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers(Timers):
    """Timers driven by advance() instead of the event loop."""

    def __init__(self, start: float = START_TIME) -> None:
        self._now = start
        self._handles: list[ManualHandle] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + delay, callback)
        self._handles.append(handle)
        return handle

    def pending(self) -> list[ManualHandle]:
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in order."""
        target = self._now + seconds
        while True:
            due = sorted(
                (h for h in self._handles if not h.cancelled and h.when <= target),
                key=lambda h: h.when,
            )
            if not due:
                break
            handle = due[0]
            self._handles.remove(handle)
            self._now = handle.when
            handle.callback()
        self._now = target


# ─── Transport ────────────────────────────────────────────────


class FakeTransport:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.closed = False
        self.close_code: int | None = None

    async def send(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    def types(self) -> list[str]:
        return [e["type"] for e in self.events]

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e["type"] == event_type]


# ─── Upstream ─────────────────────────────────────────────────


class FakeUpstream(UpstreamSession):
    def __init__(self, fail_connect: bool = False) -> None:
        self.fail_connect = fail_connect
        self.instruction: str | None = None
        self.audio: list[tuple[bytes, int]] = []
        self.texts: list[tuple[str, bool]] = []
        self.closed = False
        self._queue: asyncio.Queue[UpstreamEvent | None] = asyncio.Queue()

    async def connect(self, system_instruction: str) -> None:
        if self.fail_connect:
            raise UpstreamConnectError("connect refused")
        self.instruction = system_instruction

    async def send_audio(self, pcm: bytes, sample_rate: int = 16000) -> None:
        self.audio.append((pcm, sample_rate))

    async def send_text(self, text: str, turn_complete: bool) -> None:
        self.texts.append((text, turn_complete))

    def push(self, event: UpstreamEvent) -> None:
        self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[UpstreamEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(None)


# ─── Vision / preview ─────────────────────────────────────────


class FakeVision(VisionPipeline):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str, str]] = []
        self.gate: asyncio.Event | None = None

    async def analyze(self, eye_crop: str, mouth_crop: str, body_crop: str) -> VisionResults:
        self.calls.append((eye_crop, mouth_crop, body_crop))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise VisionError("analyst down")
        return VisionResults(
            eye_analysis={"eye_shape": "almond"},
            mouth_analysis={"lip_shape": "full"},
            body_analysis={"hair": "dark bob"},
        )


class FakePreview(PreviewGenerator):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, str]] = []
        self.gate: asyncio.Event | None = None

    async def generate(self, source_image: str, prompt: str) -> GenerationResult:
        self.calls.append((source_image, prompt))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise PreviewError("no image")
        return GenerationResult(image=b64(b"png-bytes"), mime_type="image/png", description="Looks great")


class RecordingRecords:
    """Stands in for the store's session-record writer."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.completed: list[tuple[str, int, str]] = []

    async def complete_session_record(
        self, session_id: str, duration_seconds: int, status: str
    ) -> None:
        if self.fail:
            raise RuntimeError("store unavailable")
        self.completed.append((session_id, duration_seconds, status))


# ─── Fixtures ─────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def tasks() -> BackgroundTasks:
    return BackgroundTasks()


@pytest.fixture
def records() -> RecordingRecords:
    return RecordingRecords()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(duration_seconds=300, warning_seconds=270)


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig()


@pytest.fixture
def manager(records, session_config, timers, tasks) -> SessionManager:
    return SessionManager(SessionRegistry(), records, session_config, timers=timers, tasks=tasks)


@pytest_asyncio.fixture
async def store():
    """A StylistStore on a temp DB for each test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        s = StylistStore(db_path=Path(tmpdir) / "test_livestylist.db")
        await s.start()
        yield s
        await s.stop()


# ─── App ──────────────────────────────────────────────────────


class FakeEntitlements:
    """Tier lookup without the network. Device ids in `premium` are premium."""

    def __init__(self) -> None:
        self.premium: set[str] = set()

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def check_tier(self, device_id: str) -> SubscriptionTier:
        if device_id in self.premium:
            return SubscriptionTier.PREMIUM
        return SubscriptionTier.FREE


class AppHarness:
    def __init__(self, tmpdir: str, rate_limit: RateLimitConfig | None = None) -> None:
        self.entitlements = FakeEntitlements()
        self.upstreams: list[FakeUpstream] = []
        self.fail_connect = False
        self.vision = FakeVision()
        self.preview = FakePreview()
        cfg = StylistConfig(
            store=StoreConfig(db_path=str(Path(tmpdir) / "app.db")),
            rate_limit=rate_limit or RateLimitConfig(),
        )
        self.app = create_app(
            cfg,
            entitlements=self.entitlements,
            upstream_factory=self._make_upstream,
            vision=self.vision,
            preview=self.preview,
        )

    def _make_upstream(self) -> FakeUpstream:
        upstream = FakeUpstream(fail_connect=self.fail_connect)
        self.upstreams.append(upstream)
        return upstream


@pytest.fixture
def app_harness():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield AppHarness(tmpdir)


@pytest.fixture
def client(app_harness):
    with TestClient(app_harness.app) as c:
        yield c
