"""Shared test fixtures for patchbay."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from patchbay._errors import TransportError, TransportUnavailableError
from patchbay.config import PatchbayConfig
from patchbay.model.store import ObjectStore
from patchbay.observability.collector import Collector
from patchbay.reactive.engine import PropagationEngine
from patchbay.reactive.scheduler import ManualScheduler


class FakeTransport:
    """In-memory transport.  Reads come from ``feed()``; writes are recorded.

    With a *gate*, ``open()`` waits until the event is set.
    """

    def __init__(
        self,
        *,
        fail_open: bool = False,
        fail_write: bool = False,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.fail_open = fail_open
        self.gate = gate
        self.fail_write = fail_write
        self.baud_rate: int | None = None
        self.writes: list[bytes] = []
        self.closed = False
        self._incoming: asyncio.Queue[bytes | Exception] = asyncio.Queue()

    async def open(self, baud_rate: int) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_open:
            msg = "could not open port"
            raise TransportError(msg)
        self.baud_rate = baud_rate

    async def close(self) -> None:
        self.closed = True

    async def read(self) -> bytes:
        item = await self._incoming.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def write(self, data: bytes) -> None:
        if self.fail_write:
            msg = "write failed"
            raise TransportError(msg)
        self.writes.append(bytes(data))

    def feed(self, data: bytes) -> None:
        self._incoming.put_nowait(data)

    def unplug(self) -> None:
        self._incoming.put_nowait(TransportError("device unplugged"))


class FakeTransportFactory:
    """Transport factory that hands out FakeTransports and remembers them."""

    def __init__(self, *, unavailable: bool = False, **transport_kwargs: Any) -> None:
        self.unavailable = unavailable
        self.transport_kwargs = transport_kwargs
        self.transports: list[FakeTransport] = []

    def __call__(self, bridge_id: str) -> FakeTransport:
        if self.unavailable:
            msg = "no serial port configured"
            raise TransportUnavailableError(msg)
        transport = FakeTransport(**self.transport_kwargs)
        self.transports.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]


async def settle(rounds: int = 10) -> None:
    """Let background tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def collector() -> Collector:
    return Collector()


@pytest.fixture
def store() -> ObjectStore:
    return ObjectStore()


@pytest.fixture
def engine(store: ObjectStore, collector: Collector) -> PropagationEngine:
    return PropagationEngine(store, collector=collector)


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def config(tmp_path: Path) -> PatchbayConfig:
    """A PatchbayConfig rooted at a temp directory, watcher off."""
    return PatchbayConfig(root=tmp_path, watch=False)
