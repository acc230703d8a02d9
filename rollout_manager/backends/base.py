"""
Contracts between the orchestration core and its collaborators.

The core only talks to the cluster scheduler and to running services through
these two protocols.
"""

from typing import Protocol, runtime_checkable

from rollout_manager.models import Unit, UnitStatus, UpdateResult


@runtime_checkable
class BackendAdapter(Protocol):
    """Protocol for the cluster scheduler backend."""

    async def update_unit(self, unit: Unit) -> UpdateResult:
        """
        Register a revision of the unit running ``unit.version`` and roll it out.

        Promises:
        - Picks the base revision according to ``unit.update_strategy``
        - Returns the new revision, the revision it replaced and the version
          that revision was running
        - Does not mutate the unit
        - Raises on any backend failure
        """
        ...

    async def revert_unit(self, unit: Unit) -> None:
        """
        Make ``unit.revision`` the active revision again.

        Promises:
        - Never computes a new revision, only re-applies a known one
        - Raises on any backend failure
        """
        ...

    async def describe_unit_status(self, unit: Unit) -> UnitStatus:
        """
        Report the active revision and replica counts of the unit.

        Promises:
        - Counts only replicas that are actually running
        - Lists tasks of the active revision that failed their health checks
        - Raises on any backend failure
        """
        ...


@runtime_checkable
class VersionProber(Protocol):
    """Protocol for observing which version a unit is serving."""

    async def fetch_deployed_version(self, url: str) -> str:
        """
        Fetch the version token served at ``url``.

        Promises:
        - Raises ProbeError on transport failures and non-success responses
        - The token may be a short form of the full version
        """
        ...

    async def run_smoke_test(self, url: str) -> None:
        """
        Run the smoke test exposed at ``url``.

        Promises:
        - Raises SmokeTestError when the endpoint reports a failure
        """
        ...
