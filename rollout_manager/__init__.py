"""
rollout-manager - coordinated rollouts for Docker Swarm services and scheduled jobs.
"""

__version__ = "0.1.0"

from rollout_manager.deployment import DeploymentOrchestrator  # noqa: E402
from rollout_manager.models import RunOutcome, RunStatus, Unit  # noqa: E402

__all__ = ["DeploymentOrchestrator", "RunOutcome", "RunStatus", "Unit", "__version__"]
