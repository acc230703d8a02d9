"""
Rollback controller.

Drives a set of units back to the version they ran before this run by
swapping their version pointers and re-running the same stages the rollout
went through.
"""

import logging
from typing import List

from rollout_manager.deployment.stages import DeploymentStages
from rollout_manager.models import RollbackOutcome, RollbackStatus, Unit

logger = logging.getLogger(__name__)


class RollbackController:
    """Reverts units and confirms the revert the same way a rollout is confirmed."""

    def __init__(self, stages: DeploymentStages) -> None:
        self.stages = stages

    async def rollback(self, units: List[Unit]) -> RollbackOutcome:
        """
        Roll back units to their previous version.

        A failed revert is fatal: there is nothing further to fall back to. A
        revert whose version cannot be observed is unconfirmed. Old resources
        that fail to drain leave the rollback recovered but degraded.

        Args:
            units: Units to roll back; may be a subset of the run's units

        Returns:
            RollbackOutcome with the reports of every stage that ran
        """
        logger.warning(f"Rolling back {len(units)} units: {', '.join(u.name for u in units)}")
        for unit in units:
            unit.swap_versions()

        outcome = RollbackOutcome(units=list(units), status=RollbackStatus.RECOVERED)

        revert = await self.stages.revert(units)
        outcome.stages.append(revert)
        if revert.failed:
            for result in revert.results:
                if result.failed:
                    logger.error(f"Failed to roll back {result.unit.name}: {result.error}")
            outcome.status = RollbackStatus.FAILED
            return outcome

        verify = await self.stages.verify_deployed(units, rollback=True)
        outcome.stages.append(verify)
        if verify.failed:
            names = ", ".join(u.name for u in verify.failed_units)
            logger.error(f"Could not confirm rollback of {names}")
            outcome.status = RollbackStatus.FAILED
            return outcome

        drained = await self.stages.verify_drained(units, rollback=True)
        outcome.stages.append(drained)
        if drained.failed:
            names = ", ".join(u.name for u in drained.failed_units)
            logger.warning(f"Rollback completed but old versions are still running on {names}")
            outcome.status = RollbackStatus.RECOVERED_DEGRADED
            return outcome

        logger.info("Rollback completed")
        return outcome
