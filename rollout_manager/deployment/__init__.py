"""
Deployment orchestration module.

Provides coordinated rollouts of services and scheduled jobs including:
- Concurrent per-unit stages bounded by a shared deadline
- Version verification through HTTP probes
- Rollback of updated units when a rollout fails

Usage:
    from rollout_manager.deployment import DeploymentOrchestrator

    orchestrator = DeploymentOrchestrator(backend, prober, timing)
    outcome = await orchestrator.run_deployment(services, scheduled_jobs)
"""

from rollout_manager.deployment.executor import StageExecutor
from rollout_manager.deployment.helpers import (
    MIN_VERSION_TOKEN_LENGTH,
    describe_version,
    version_matches,
)
from rollout_manager.deployment.orchestrator import DeploymentOrchestrator
from rollout_manager.deployment.rollback import RollbackController
from rollout_manager.deployment.stages import DeploymentStages

__all__ = [
    # Main orchestrator
    "DeploymentOrchestrator",
    # Building blocks
    "DeploymentStages",
    "RollbackController",
    "StageExecutor",
    # Helpers
    "MIN_VERSION_TOKEN_LENGTH",
    "describe_version",
    "version_matches",
]
