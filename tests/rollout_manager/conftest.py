"""
Shared fixtures for rollout-manager tests.

FakeCluster keeps the version each service runs and serves, so the
orchestrator can be driven end to end against mocked collaborators.
"""

from typing import Dict, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from rollout_manager.backends.base import BackendAdapter, VersionProber
from rollout_manager.config.settings import TimingConfig
from rollout_manager.models import Unit, UnitKind, UnitStatus, UpdateResult

TARGET_VERSION = "abc123def4567890"
OLD_VERSION = "0ldc0ffee1234567"


def make_unit(
    name: str,
    version: str = TARGET_VERSION,
    check_url: Optional[str] = "default",
    **kwargs,
) -> Unit:
    """Build a unit; check_url defaults to a URL derived from the name."""
    if check_url == "default":
        check_url = f"http://{name}.internal/version"
    return Unit(name=name, version=version, check_url=check_url, **kwargs)


def make_job(name: str, version: str = TARGET_VERSION, **kwargs) -> Unit:
    return Unit(name=name, version=version, kind=UnitKind.JOB, **kwargs)


class FakeCluster:
    """In-memory stand-in for a scheduler and the services it runs."""

    def __init__(self) -> None:
        self.running: Dict[str, str] = {}
        self.served: Dict[str, str] = {}

        self.backend = Mock(spec=BackendAdapter)
        self.backend.update_unit = AsyncMock(side_effect=self._update_unit)
        self.backend.revert_unit = AsyncMock(side_effect=self._revert_unit)
        self.backend.describe_unit_status = AsyncMock(side_effect=self._describe_unit_status)

        self.prober = Mock(spec=VersionProber)
        self.prober.fetch_deployed_version = AsyncMock(side_effect=self._fetch_deployed_version)
        self.prober.run_smoke_test = AsyncMock(return_value=None)

    @staticmethod
    def image(name: str, version: str) -> str:
        return f"registry.example.com/{name}:{version}"

    async def _update_unit(self, unit: Unit) -> UpdateResult:
        previous = self.running.get(unit.name, OLD_VERSION)
        self.running[unit.name] = unit.version
        if unit.check_url:
            self.served[unit.check_url] = unit.version
        return UpdateResult(
            revision=self.image(unit.name, unit.version),
            previous_revision=self.image(unit.name, previous),
            previous_version=previous,
            tags=[f"service:{unit.name}"],
        )

    async def _revert_unit(self, unit: Unit) -> None:
        self.running[unit.name] = unit.version
        if unit.check_url:
            self.served[unit.check_url] = unit.version

    async def _describe_unit_status(self, unit: Unit) -> UnitStatus:
        version = self.running.get(unit.name, OLD_VERSION)
        return UnitStatus(
            active_revision=self.image(unit.name, version), running_count=2, desired_count=2
        )

    async def _fetch_deployed_version(self, url: str) -> str:
        return self.served.get(url, OLD_VERSION)


@pytest.fixture
def fast_timing():
    """Timing that keeps polling stages well under a second."""
    return TimingConfig(check_interval=0.01, timeout=0.5)


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def unit_factory():
    """Factory for service units pointing at the target version."""
    return make_unit


@pytest.fixture
def job_factory():
    """Factory for scheduled job units."""
    return make_job
