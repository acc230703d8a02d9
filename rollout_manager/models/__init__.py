"""
Data models for rollout-manager.

Units describe what is being deployed; results describe what happened to
them at every stage of a run.
"""

from rollout_manager.models.unit import (
    Unit,
    UnitKind,
    UnitStatus,
    UpdateResult,
    UpdateStrategy,
)
from rollout_manager.models.results import (
    RollbackOutcome,
    RollbackStatus,
    RunOutcome,
    RunStatus,
    Stage,
    StageOutcome,
    StageReport,
    StageResult,
)

__all__ = [
    # Units
    "Unit",
    "UnitKind",
    "UnitStatus",
    "UpdateResult",
    "UpdateStrategy",
    # Results
    "RollbackOutcome",
    "RollbackStatus",
    "RunOutcome",
    "RunStatus",
    "Stage",
    "StageOutcome",
    "StageReport",
    "StageResult",
]
