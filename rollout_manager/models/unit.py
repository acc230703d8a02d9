"""
Deployable unit model.

A unit is one thing the orchestrator drives through a rollout: a long-running
service or a scheduled job. Units are built once per invocation from the
configuration file and mutated only by the deploy and rollback stages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class UnitKind(str, Enum):
    """Kind of deployable unit."""

    SERVICE = "service"
    JOB = "job"


class UpdateStrategy(str, Enum):
    """
    How the backend picks the base revision a new revision is built from.

    CURRENT uses the revision the unit is actually running, LATEST uses the
    most recently submitted revision, SKIP leaves the unit untouched.
    """

    CURRENT = "current"
    LATEST = "latest"
    SKIP = "skip"


@dataclass
class UpdateResult:
    """What the backend reports after updating a unit."""

    revision: str
    previous_revision: str
    previous_version: str
    tags: List[str] = field(default_factory=list)


@dataclass
class UnitStatus:
    """Point-in-time rollout status of a unit as seen by the backend."""

    active_revision: str
    running_count: int
    desired_count: int
    stale_count: int = 0
    unhealthy_tasks: List[str] = field(default_factory=list)


@dataclass
class Unit:
    """A deployable service or scheduled job tracked through one run."""

    name: str
    version: str
    kind: UnitKind = UnitKind.SERVICE
    check_url: Optional[str] = None
    smoke_test_url: Optional[str] = None
    update_strategy: UpdateStrategy = UpdateStrategy.CURRENT
    previous_version: Optional[str] = None
    revision: Optional[str] = None
    previous_revision: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def is_skipped(self) -> bool:
        return self.update_strategy is UpdateStrategy.SKIP

    @property
    def is_updated(self) -> bool:
        """True once a deploy has recorded the revision this unit came from."""
        return self.previous_revision is not None

    @property
    def is_unchanged(self) -> bool:
        """True when the deploy found the unit already on its target version."""
        return self.previous_version is not None and self.previous_version == self.version

    def apply_update(self, result: UpdateResult) -> None:
        """Record a successful update reported by the backend."""
        self.previous_version = result.previous_version
        self.previous_revision = result.previous_revision
        self.revision = result.revision
        for tag in result.tags:
            if tag not in self.tags:
                self.tags.append(tag)

    def swap_versions(self) -> None:
        """
        Point the unit back at the version and revision it came from.

        Swapping twice restores the pointers as they were. Units that were never
        updated have nothing to swap and are left as they are.
        """
        if not self.is_updated:
            return
        target = self.previous_version if self.previous_version is not None else self.version
        self.version, self.previous_version = target, self.version
        self.revision, self.previous_revision = self.previous_revision, self.revision

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "version": self.version,
            "previous_version": self.previous_version,
            "revision": self.revision,
            "previous_revision": self.previous_revision,
            "update_strategy": self.update_strategy.value,
            "tags": list(self.tags),
        }
