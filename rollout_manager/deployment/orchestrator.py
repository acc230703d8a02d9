"""
Deployment orchestrator.

Drives one run over a set of services and scheduled jobs:

    deploy -> verify deployed -> verify drained

A partial deploy failure rolls back the units that were updated. A unit that
never serves its new version rolls back every unit. Old versions that refuse
to drain are reported but leave the new version in place.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from rollout_manager.audit import DeploymentEventLog
from rollout_manager.backends.base import BackendAdapter, VersionProber
from rollout_manager.config.settings import TimingConfig
from rollout_manager.deployment.executor import StageExecutor
from rollout_manager.deployment.helpers import describe_version
from rollout_manager.deployment.rollback import RollbackController
from rollout_manager.deployment.stages import DeploymentStages
from rollout_manager.logging_config import LogContext, log_unit_operation
from rollout_manager.models import (
    RollbackOutcome,
    RunOutcome,
    RunStatus,
    StageReport,
    Unit,
)

logger = logging.getLogger(__name__)


class DeploymentOrchestrator:
    """Runs a rollout over services and scheduled jobs as one unit of work."""

    def __init__(
        self,
        backend: BackendAdapter,
        prober: VersionProber,
        timing: Optional[TimingConfig] = None,
        events: Optional[DeploymentEventLog] = None,
    ) -> None:
        """
        Initialize deployment orchestrator.

        Args:
            backend: Scheduler backend that updates and describes units
            prober: Fetches the version each unit serves
            timing: Check interval and per-stage deadline
            events: Optional event log for run and stage transitions
        """
        self.timing = timing or TimingConfig()
        self.stages = DeploymentStages(backend, prober, StageExecutor(self.timing))
        self.rollback_controller = RollbackController(self.stages)
        self.events = events

    async def run_deployment(
        self, units: Sequence[Unit], scheduled_units: Iterable[Unit] = ()
    ) -> RunOutcome:
        """
        Roll out every unit to its target version.

        Args:
            units: Services to roll out
            scheduled_units: Scheduled jobs updated alongside the services

        Returns:
            RunOutcome with every stage report and the rollback, if one ran
        """
        all_units: List[Unit] = list(units) + list(scheduled_units)
        run_id = str(uuid.uuid4())
        outcome = RunOutcome(status=RunStatus.SUCCEEDED, run_id=run_id)

        with LogContext(logger, run_id=run_id):
            versions = sorted({describe_version(u.version) for u in all_units})
            logger.info(
                f"Starting run {run_id}: {len(all_units)} units to version {', '.join(versions)}"
            )
            await self._record(
                "run_started",
                run_id,
                {"units": [u.to_dict() for u in all_units]},
                units=all_units,
            )

            deployed = await self.stages.deploy(all_units)
            await self._stage_completed(run_id, deployed)
            outcome.stages.append(deployed)
            if deployed.failed:
                self._log_failures(deployed)
                # Only units that were actually updated need reverting
                await self._rollback(outcome, run_id, deployed.succeeded_units)
                return await self._finish(outcome)

            verified = await self.stages.verify_deployed(all_units)
            await self._stage_completed(run_id, verified)
            outcome.stages.append(verified)
            if verified.failed:
                self._log_failures(verified)
                await self._rollback(outcome, run_id, all_units)
                return await self._finish(outcome)

            drained = await self.stages.verify_drained(all_units)
            await self._stage_completed(run_id, drained)
            outcome.stages.append(drained)
            if drained.failed:
                self._log_failures(drained)
                logger.warning("New version is live but old versions did not drain")
                outcome.status = RunStatus.DEGRADED
                return await self._finish(outcome)

            for unit in all_units:
                if not unit.is_skipped:
                    log_unit_operation(
                        "deployed", unit.name, {"version": unit.version, "run_id": run_id}
                    )
            return await self._finish(outcome)

    async def _rollback(self, outcome: RunOutcome, run_id: str, units: List[Unit]) -> None:
        await self._record(
            "rollback_started", run_id, {"units": [u.name for u in units]}, units=units
        )
        rollback: RollbackOutcome = await self.rollback_controller.rollback(units)
        for report in rollback.stages:
            await self._stage_completed(run_id, report)

        outcome.rollback = rollback
        outcome.status = RunStatus.ROLLED_BACK if rollback.confirmed else RunStatus.ROLLBACK_FAILED
        for unit in units:
            log_unit_operation(
                "rolled_back" if rollback.confirmed else "rollback_failed",
                unit.name,
                {"version": unit.version, "run_id": run_id},
                level="WARNING" if rollback.confirmed else "ERROR",
            )
        await self._record(
            "rollback_completed",
            run_id,
            {"units": rollback.unit_names, "status": rollback.status.value},
            units=units,
            success=rollback.confirmed,
        )

    async def _finish(self, outcome: RunOutcome) -> RunOutcome:
        if outcome.status is RunStatus.SUCCEEDED:
            logger.info(f"Run {outcome.run_id} succeeded")
        elif outcome.status is RunStatus.ROLLBACK_FAILED:
            logger.error(f"Run {outcome.run_id} failed and could not be rolled back")
        else:
            logger.warning(f"Run {outcome.run_id} finished with status {outcome.status.value}")

        await self._record(
            "run_completed",
            outcome.run_id,
            {"status": outcome.status.value, "timed_out": outcome.timed_out},
            success=outcome.status is RunStatus.SUCCEEDED,
        )
        return outcome

    async def _stage_completed(self, run_id: str, report: StageReport) -> None:
        await self._record(
            "stage_completed",
            run_id,
            report.to_dict(),
            units=[r.unit for r in report.results],
            success=not report.failed,
        )

    async def _record(
        self,
        action: str,
        run_id: Optional[str],
        details: dict,
        units: Sequence[Unit] = (),
        success: Optional[bool] = None,
    ) -> None:
        if not self.events:
            return
        tags: List[str] = []
        for unit in units:
            for tag in unit.tags:
                if tag not in tags:
                    tags.append(tag)
        await self.events.record(action, run_id=run_id, details=details, tags=tags, success=success)

    @staticmethod
    def _log_failures(report: StageReport) -> None:
        for result in report.results:
            if result.failed:
                logger.error(f"{report.stage.value} failed for {result.unit.name}: {result.error}")
