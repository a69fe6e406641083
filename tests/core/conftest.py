"""
Core test fixtures: session store plus a fetch coroutine that counts calls.
"""

import asyncio

import pytest

from trackline.core.session_store import RegistrySessionStore


class CountingFetch:
    """
    Stands in for the backend. Yields to the event loop once per call so
    concurrent callers really do overlap.
    """

    def __init__(self, data: dict, error: Exception | None = None):
        self.data = data
        self.error = error
        self.calls = 0

    async def __call__(self) -> dict:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.data


@pytest.fixture
def store() -> RegistrySessionStore:
    return RegistrySessionStore(ttl_seconds=60)


@pytest.fixture
def fetch(workspace_data) -> CountingFetch:
    return CountingFetch(workspace_data)


@pytest.fixture
def failing_fetch() -> CountingFetch:
    return CountingFetch({}, error=ConnectionError("backend unreachable"))


class GatedFetch(CountingFetch):
    """Blocks inside the fetch until release() so a test can act mid-build."""

    def __init__(self, data: dict):
        super().__init__(data)
        self.started = asyncio.Event()
        self._gate = asyncio.Event()
        self.active = 0
        self.max_active = 0

    def release(self) -> None:
        self._gate.set()

    async def __call__(self) -> dict:
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            await self._gate.wait()
        finally:
            self.active -= 1
        return self.data


@pytest.fixture
def gated_fetch_factory(workspace_data):
    # asyncio.Event binds to the running loop, so build it inside asyncio.run
    return lambda: GatedFetch(workspace_data)
