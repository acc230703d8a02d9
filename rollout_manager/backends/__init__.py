"""
Collaborators of the orchestration core.

The core depends only on the BackendAdapter and VersionProber protocols;
SwarmBackend and HttpVersionProber are the production implementations.
"""

from rollout_manager.backends.base import BackendAdapter, VersionProber
from rollout_manager.backends.probe import HttpVersionProber
from rollout_manager.backends.swarm import SwarmBackend

__all__ = [
    "BackendAdapter",
    "HttpVersionProber",
    "SwarmBackend",
    "VersionProber",
]
