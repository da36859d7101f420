import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Keep tests on the in-process store regardless of the developer's environment
os.environ["KG_STORE_BACKEND"] = "memory"

# Add src directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from knowledge_graph_service.config import DecaySettings, RateLimitSettings  # noqa: E402
from knowledge_graph_service.services.graph_service import GraphService  # noqa: E402
from knowledge_graph_service.services.rate_limiter import RateLimiter  # noqa: E402
from knowledge_graph_service.storage.document import GraphDocumentStore  # noqa: E402
from knowledge_graph_service.storage.memory_store import InMemoryKeyValueStore  # noqa: E402

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Shared fake time for the service (datetime) and the store (epoch seconds)."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def timestamp(self) -> float:
        return self.current.timestamp()

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def kv(clock):
    return InMemoryKeyValueStore(clock=clock.timestamp)


@pytest.fixture
def rate_settings():
    return RateLimitSettings(
        enabled=True,
        window_seconds=3600,
        entities=10,
        observations=50,
        relations=20,
        reads=1000,
        default_limit=100,
        exempt_identity="127.0.0.1",
    )


@pytest.fixture
def rate_limiter(kv, rate_settings):
    return RateLimiter(store=kv, settings=rate_settings)


@pytest.fixture
def documents(kv):
    return GraphDocumentStore(kv, key="test_graph")


@pytest.fixture
def graph_service(documents, rate_limiter, clock):
    return GraphService(documents, rate_limiter=rate_limiter, decay=DecaySettings(), clock=clock)
