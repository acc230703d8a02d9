"""
Outcome records produced by the stages, the rollback controller and the run.

Every stage produces exactly one StageResult per unit it was given, including
units whose check never finished before the stage deadline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from rollout_manager.errors import DeadlineExceededError, DeploymentError
from rollout_manager.models.unit import Unit


class Stage(str, Enum):
    """Phases a unit goes through during a run."""

    DEPLOY = "deploy"
    VERIFY_DEPLOYED = "verify_deployed"
    VERIFY_DRAINED = "verify_drained"


class StageOutcome(str, Enum):
    """Per-unit outcome of a stage."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    NO_CHECK = "no_check"
    SKIPPED = "skipped"


class RollbackStatus(str, Enum):
    RECOVERED = "recovered"
    RECOVERED_DEGRADED = "recovered_degraded"
    FAILED = "failed"


class RunStatus(str, Enum):
    """
    Final status of a run.

    SUCCEEDED: every stage passed.
    DEGRADED: the new version is live but old resources did not drain.
    ROLLED_BACK: the run failed and the rollback was confirmed.
    ROLLBACK_FAILED: the run failed and the rollback could not be confirmed.
    """

    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"
    ROLLED_BACK = "rolled_back"
    ROLLBACK_FAILED = "rollback_failed"


@dataclass
class StageResult:
    """Outcome of one stage for one unit."""

    unit: Unit
    stage: Stage
    outcome: StageOutcome
    error: Optional[DeploymentError] = None

    @classmethod
    def success(cls, unit: Unit, stage: Stage) -> "StageResult":
        return cls(unit, stage, StageOutcome.SUCCEEDED)

    @classmethod
    def failure(cls, unit: Unit, stage: Stage, error: DeploymentError) -> "StageResult":
        return cls(unit, stage, StageOutcome.FAILED, error)

    @classmethod
    def timed_out(cls, unit: Unit, stage: Stage, timeout: float) -> "StageResult":
        error = DeadlineExceededError(unit.name, stage.value, timeout)
        return cls(unit, stage, StageOutcome.TIMED_OUT, error)

    @property
    def failed(self) -> bool:
        return self.outcome in (StageOutcome.FAILED, StageOutcome.TIMED_OUT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit.name,
            "stage": self.stage.value,
            "outcome": self.outcome.value,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class StageReport:
    """All results of one stage, in the order they were collected."""

    stage: Stage
    results: List[StageResult] = field(default_factory=list)
    rollback: bool = False

    @property
    def failed(self) -> bool:
        return any(r.failed for r in self.results)

    @property
    def timed_out(self) -> bool:
        return any(r.outcome is StageOutcome.TIMED_OUT for r in self.results)

    @property
    def succeeded_units(self) -> List[Unit]:
        return [r.unit for r in self.results if not r.failed]

    @property
    def failed_units(self) -> List[Unit]:
        return [r.unit for r in self.results if r.failed]

    def result_for(self, name: str) -> Optional[StageResult]:
        for result in self.results:
            if result.unit.name == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "rollback": self.rollback,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class RollbackOutcome:
    """Outcome of driving a set of units back to their previous version."""

    units: List[Unit]
    status: RollbackStatus
    stages: List[StageReport] = field(default_factory=list)

    @property
    def confirmed(self) -> bool:
        return self.status is not RollbackStatus.FAILED

    @property
    def unit_names(self) -> List[str]:
        return [u.name for u in self.units]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "units": self.unit_names,
            "status": self.status.value,
            "stages": [s.to_dict() for s in self.stages],
        }


@dataclass
class RunOutcome:
    """Aggregate outcome of one top-level run."""

    status: RunStatus
    stages: List[StageReport] = field(default_factory=list)
    rollback: Optional[RollbackOutcome] = None
    run_id: Optional[str] = None

    @property
    def rollback_triggered(self) -> bool:
        return self.rollback is not None

    @property
    def stage_failures(self) -> Dict[Stage, bool]:
        return {report.stage: report.failed for report in self.stages}

    @property
    def timed_out(self) -> bool:
        """True when the stage that decided the run's failure hit its deadline."""
        return any(report.timed_out for report in self.stages if report.failed)

    def report_for(self, stage: Stage) -> Optional[StageReport]:
        for report in self.stages:
            if report.stage is stage:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "timed_out": self.timed_out,
            "stages": [s.to_dict() for s in self.stages],
            "rollback": self.rollback.to_dict() if self.rollback else None,
        }
