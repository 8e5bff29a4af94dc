"""Shared pytest fixtures for discovery tests.

Provides:
- In-memory registry fixtures
- A scriptable fake probe with an optional gate for concurrency tests
- Identity factories
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from discovery.models import DeviceIdentity, ProbeResult
from discovery.registry import DiscoveryRegistry
from storage import MemoryStore


def make_identity(device_id: str, name: Optional[str] = None, category: str = "sp") -> DeviceIdentity:
    return DeviceIdentity(device_id=device_id, name=name or f"Camera {device_id}", category=category)


class FakeProbe:
    """Probe double returning scripted results.

    When ``gate`` is set, every validate() call blocks until the gate opens,
    which lets tests observe queue and in-flight state.
    """

    def __init__(self, default: Optional[ProbeResult] = None):
        self.default = default or ProbeResult(ok=True, status_code=401, status_line="RTSP/1.0 401 Unauthorized")
        self.results: Dict[str, ProbeResult] = {}
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.active = 0
        self.max_active = 0

    async def validate(self, endpoint: str, timeout: Optional[float] = None) -> ProbeResult:
        self.calls.append(endpoint)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            device_id = endpoint.rsplit('/', 1)[-1]
            return self.results.get(device_id, self.default)
        finally:
            self.active -= 1

    def probed_devices(self) -> List[str]:
        return [endpoint.rsplit('/', 1)[-1] for endpoint in self.calls]


async def fake_endpoint(device_id: str) -> str:
    return f"rtsp://127.0.0.1:8554/{device_id}"


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store):
    return DiscoveryRegistry(store)


@pytest.fixture
def fake_probe():
    return FakeProbe()
