"""
Exception hierarchy for rollout-manager.

Backend failures, deadline expiry and convergence failures are kept as
distinct types so callers can tell "it definitely failed" apart from
"we don't know whether it worked".
"""

from typing import Optional


class DeploymentError(Exception):
    """Base class for every error raised while driving a rollout."""


class ConfigurationError(DeploymentError):
    """The configuration file is missing or invalid."""


class BackendOperationError(DeploymentError):
    """A backend operation on a unit failed."""

    def __init__(self, unit_name: str, operation: str, cause: Optional[BaseException] = None):
        self.unit_name = unit_name
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed for {unit_name}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ConvergenceError(DeploymentError):
    """The backend reports the new revision is not healthy."""

    def __init__(self, unit_name: str, reason: str):
        self.unit_name = unit_name
        self.reason = reason
        super().__init__(f"{unit_name} failed to converge: {reason}")


class DeadlineExceededError(DeploymentError):
    """A unit did not report before the stage deadline."""

    def __init__(self, unit_name: str, stage: str, timeout: float):
        self.unit_name = unit_name
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"{unit_name} timed out after {timeout:g}s in {stage}")


class ProbeError(DeploymentError):
    """Fetching the deployed version failed. Recoverable: the check is retried."""


class SmokeTestError(DeploymentError):
    """The smoke test endpoint of a unit reported a failure."""
