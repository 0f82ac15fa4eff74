"""Test configuration and fixtures for the offline registration queue.

FakeClock: controllable wall clock
Fixtures: in-memory store, scriptable remote, manual network, queue factory
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path for runs without an installed package
SRC_ROOT = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

from pontoflex.config.sync import SyncConfig  # noqa: E402
from pontoflex.offline import (  # noqa: E402
    AuthMethod,
    ManualNetwork,
    MemoryRemoteStore,
    MemoryStore,
    OfflineQueue,
    RegistrationAttempt,
)


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def attempt(employee_id: str = "emp-1", company_id: str = "company-1", **kwargs) -> RegistrationAttempt:
    """Build a RegistrationAttempt with sensible defaults."""
    return RegistrationAttempt(
        employee_id=employee_id,
        company_id=company_id,
        auth_method=kwargs.pop("auth_method", AuthMethod.PASSWORD),
        **kwargs,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at 2026-03-02 14:32:07 local time."""
    return FakeClock(datetime(2026, 3, 2, 14, 32, 7))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def remote() -> MemoryRemoteStore:
    return MemoryRemoteStore()


@pytest.fixture
def network() -> ManualNetwork:
    """Starts offline."""
    return ManualNetwork(connected=False)


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig()


@pytest.fixture
def make_queue(store, remote, network, config, clock):
    """Factory so tests can rebuild a queue over the same store (restart)."""
    def _make(**overrides) -> OfflineQueue:
        return OfflineQueue(
            overrides.get("store", store),
            overrides.get("remote", remote),
            overrides.get("network", network),
            config=overrides.get("config", config),
            clock=overrides.get("clock", clock),
        )
    return _make


@pytest.fixture
def queue(make_queue) -> OfflineQueue:
    return make_queue()


@pytest.fixture(autouse=True)
def default_features(monkeypatch):
    """Pin feature flags to their shipped defaults for every test."""
    import pontoflex.config.features as features
    monkeypatch.setattr(features, "FEATURE_DRAIN_ON_ENQUEUE", True)
    monkeypatch.setattr(features, "FEATURE_DEAD_LETTER_ENABLED", True)
    monkeypatch.setattr(features, "FEATURE_OFFLINE_REJECT", False)
