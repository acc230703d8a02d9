"""
Deployment stages.

Each stage takes the full unit set and returns a StageReport holding one
result per unit. Units that do not take part in a stage (skipped units,
units without a check endpoint) get an exempt outcome instead of being left
out, so every stage is a complete barrier over the unit set.
"""

import logging
from typing import List

from rollout_manager.backends.base import BackendAdapter, VersionProber
from rollout_manager.deployment.executor import StageExecutor
from rollout_manager.deployment.helpers import describe_version, version_matches
from rollout_manager.errors import (
    BackendOperationError,
    ConvergenceError,
    DeploymentError,
    ProbeError,
)
from rollout_manager.models import Stage, StageOutcome, StageReport, StageResult, Unit
from rollout_manager.utils.log_sanitizer import sanitize_for_log

logger = logging.getLogger(__name__)


class DeploymentStages:
    """The deploy, verify-deployed and verify-drained stages of a run."""

    def __init__(
        self, backend: BackendAdapter, prober: VersionProber, executor: StageExecutor
    ) -> None:
        self.backend = backend
        self.prober = prober
        self.executor = executor

    async def deploy(self, units: List[Unit]) -> StageReport:
        """Update every unit to its target version."""
        exempt = [StageResult(u, Stage.DEPLOY, StageOutcome.SKIPPED) for u in units if u.is_skipped]
        active = [u for u in units if not u.is_skipped]

        logger.info(f"Deploying {len(active)} units ({len(exempt)} skipped)")
        results = await self.executor.run_once(Stage.DEPLOY, active, self._update_unit)
        return StageReport(Stage.DEPLOY, exempt + results)

    async def revert(self, units: List[Unit]) -> StageReport:
        """
        Re-apply the revision each unit points at, without computing a new one.

        Used by rollback after the version pointers have been swapped.
        """
        exempt = [
            StageResult(u, Stage.DEPLOY, StageOutcome.SKIPPED)
            for u in units
            if u.is_skipped or not u.is_updated
        ]
        active = [u for u in units if not (u.is_skipped or not u.is_updated)]

        logger.info(f"Reverting {len(active)} units")
        results = await self.executor.run_once(Stage.DEPLOY, active, self._revert_unit)
        return StageReport(Stage.DEPLOY, exempt + results, rollback=True)

    async def verify_deployed(self, units: List[Unit], rollback: bool = False) -> StageReport:
        """Wait until every unit with a check endpoint serves its target version."""
        exempt: List[StageResult] = []
        active: List[Unit] = []
        for unit in units:
            if unit.is_skipped:
                exempt.append(StageResult(unit, Stage.VERIFY_DEPLOYED, StageOutcome.SKIPPED))
            elif not unit.check_url:
                logger.info(f"{unit.name} has no check URL, skipping deploy check")
                exempt.append(StageResult(unit, Stage.VERIFY_DEPLOYED, StageOutcome.NO_CHECK))
            else:
                active.append(unit)

        for unit in active:
            logger.info(
                f"Checking {unit.check_url} for version {describe_version(unit.version)} "
                f"of {unit.name}"
            )
        results = await self.executor.poll(
            Stage.VERIFY_DEPLOYED, active, self._check_deployed, recoverable=(ProbeError,)
        )
        return StageReport(Stage.VERIFY_DEPLOYED, exempt + results, rollback=rollback)

    async def verify_drained(self, units: List[Unit], rollback: bool = False) -> StageReport:
        """Wait until every unit runs only its new revision at full strength."""
        exempt = [
            StageResult(u, Stage.VERIFY_DRAINED, StageOutcome.SKIPPED)
            for u in units
            if u.is_skipped or u.revision is None
        ]
        active = [u for u in units if not (u.is_skipped or u.revision is None)]

        logger.info(f"Waiting for old versions of {len(active)} units to drain")
        results = await self.executor.poll(Stage.VERIFY_DRAINED, active, self._check_drained)
        for result in results:
            if result.outcome is StageOutcome.SUCCEEDED:
                logger.info(
                    f"Version {describe_version(result.unit.version)} "
                    f"successfully deployed to {result.unit.name}"
                )
        return StageReport(Stage.VERIFY_DRAINED, exempt + results, rollback=rollback)

    async def _update_unit(self, unit: Unit) -> None:
        try:
            result = await self.backend.update_unit(unit)
        except DeploymentError:
            raise
        except Exception as e:
            raise BackendOperationError(unit.name, "update", e) from e

        unit.apply_update(result)
        logger.info(
            f"Updated {unit.name} from {describe_version(unit.previous_version)} "
            f"to {describe_version(unit.version)} (revision {unit.revision})"
        )

    async def _revert_unit(self, unit: Unit) -> None:
        if unit.is_unchanged:
            logger.info(
                f"{unit.name} was already on {describe_version(unit.version)}, nothing to revert"
            )
            return

        try:
            await self.backend.revert_unit(unit)
        except DeploymentError:
            raise
        except Exception as e:
            raise BackendOperationError(unit.name, "revert", e) from e
        logger.info(f"Reverted {unit.name} to revision {unit.revision}")

    async def _check_deployed(self, unit: Unit) -> bool:
        assert unit.check_url is not None
        token = await self.prober.fetch_deployed_version(unit.check_url)
        logger.info(f"Got {sanitize_for_log(token)} from {unit.check_url}")
        if not version_matches(unit.version, token):
            return False

        logger.info(
            f"Traffic showing version {describe_version(unit.version)} on {unit.name}, "
            "waiting for old versions to stop"
        )
        if unit.smoke_test_url:
            logger.info(f"Running smoke test for {unit.name} at {unit.smoke_test_url}")
            await self.prober.run_smoke_test(unit.smoke_test_url)
        return True

    async def _check_drained(self, unit: Unit) -> bool:
        logger.debug(f"Checking if old versions are gone for {unit.name}")
        try:
            status = await self.backend.describe_unit_status(unit)
        except DeploymentError:
            raise
        except Exception as e:
            # A deploy that succeeded should leave a describable unit; retrying won't help
            raise BackendOperationError(unit.name, "describe", e) from e

        if (
            status.active_revision == unit.revision
            and status.running_count == status.desired_count
            and status.stale_count == 0
        ):
            return True

        if status.unhealthy_tasks:
            raise ConvergenceError(
                unit.name, f"tasks failing health checks: {', '.join(status.unhealthy_tasks)}"
            )
        return False
