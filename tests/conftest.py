from collections.abc import Callable

import httpx
import pytest

from genius.auth.services.credentials import CredentialStore, PKCEStore
from genius.storage import MemoryStorage


class FakeClock:
    """Controllable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def durable_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def credentials(durable_storage: MemoryStorage, clock: FakeClock) -> CredentialStore:
    return CredentialStore(durable_storage, clock=clock)


@pytest.fixture
def pkce_store() -> PKCEStore:
    return PKCEStore(MemoryStorage())


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by a handler."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
