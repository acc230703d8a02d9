"""
Docker Swarm backend.

Drives rollouts of Swarm services through the Docker API. A unit maps to a
Swarm service of the same name, its revision handle is the image reference of
the service's container spec and its version is the image tag. Scheduled jobs
are services whose runs are triggered externally; updating them only changes
the image used by the next run.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import docker
from docker import DockerClient
from docker.models.services import Service
from docker.tls import TLSConfig

from rollout_manager.backends.images import image_tag, same_image, with_tag
from rollout_manager.config.settings import DockerConfig
from rollout_manager.models import Unit, UnitKind, UnitStatus, UpdateResult, UpdateStrategy
from rollout_manager.utils.log_sanitizer import sanitize_for_log

logger = logging.getLogger(__name__)

# Update states in which the service's tasks still run the previous spec
UNFINISHED_UPDATE_STATES = {"updating", "paused", "rollback_started", "rollback_paused"}

# Task states that mean a task of the new revision could not be kept running
FAILED_TASK_STATES = {"failed", "rejected"}


class SwarmBackend:
    """BackendAdapter implementation for Docker Swarm services."""

    def __init__(self, client: DockerClient):
        """
        Initialize Swarm backend.

        Args:
            client: Docker client connected to a Swarm manager node
        """
        self.client = client

    @classmethod
    def from_config(cls, config: DockerConfig) -> "SwarmBackend":
        """Create a backend connected to the Docker host described by config."""
        if not config.host:
            logger.debug("Creating Docker client from environment")
            return cls(docker.from_env(timeout=config.timeout))

        tls_config = None
        if config.tls_enabled:
            # Checked by DockerConfig validation
            assert config.tls_cert is not None
            assert config.tls_key is not None
            assert config.tls_ca is not None
            tls_config = TLSConfig(
                client_cert=(config.tls_cert, config.tls_key),
                ca_cert=config.tls_ca,
                verify=True,
            )

        logger.debug(f"Creating Docker client for {config.host}")
        return cls(DockerClient(base_url=config.host, tls=tls_config, timeout=config.timeout))

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking Docker SDK call without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _get_service(self, name: str) -> Service:
        return await self._call(self.client.services.get, name)

    async def update_unit(self, unit: Unit) -> UpdateResult:
        """Point the unit's service at the image tagged with the unit's version."""
        service = await self._get_service(unit.name)
        spec_image = _container_spec(service.attrs.get("Spec", {})).get("Image", "")
        base_spec = self._base_spec(service, unit.update_strategy)
        base_image = _container_spec(base_spec).get("Image", "")
        if not base_image:
            raise ValueError(f"service {unit.name} has no container image")

        new_image = with_tag(base_image, unit.version)
        labels = _container_spec(base_spec).get("Labels") or {}
        tags = [f"{key}:{value}" for key, value in sorted(labels.items())]

        if same_image(new_image, spec_image):
            logger.info(f"Service {unit.name} already runs {new_image}, nothing to update")
            # Keep the handle as recorded in the spec, which may be pinned to a digest
            new_image = spec_image
        else:
            logger.info(f"Changing image of {unit.name} from {base_image} to {new_image}")
            await self._call(
                service.update, image=new_image, force_update=unit.kind is UnitKind.SERVICE
            )

        return UpdateResult(
            revision=new_image,
            previous_revision=base_image,
            previous_version=image_tag(base_image),
            tags=tags,
        )

    async def revert_unit(self, unit: Unit) -> None:
        """Re-apply the image recorded as the unit's current revision."""
        if not unit.revision:
            raise ValueError(f"unit {unit.name} has no revision to revert to")

        service = await self._get_service(unit.name)
        logger.info(f"Reverting {unit.name} to {unit.revision}")
        await self._call(
            service.update, image=unit.revision, force_update=unit.kind is UnitKind.SERVICE
        )

    async def describe_unit_status(self, unit: Unit) -> UnitStatus:
        """Count running, stale and failed tasks of the unit's service."""
        service = await self._get_service(unit.name)
        spec = service.attrs.get("Spec", {})
        active_image = _container_spec(spec).get("Image", "")

        if unit.kind is UnitKind.JOB:
            # Job runs are started by the scheduler; nothing is kept running
            return UnitStatus(active_revision=active_image, running_count=0, desired_count=0)

        tasks: List[Dict[str, Any]] = await self._call(service.tasks)
        running = 0
        stale = 0
        unhealthy: List[str] = []
        global_slots = 0

        latest = _latest_task_per_slot(tasks)
        for task in tasks:
            image = task.get("Spec", {}).get("ContainerSpec", {}).get("Image")
            state = task.get("Status", {}).get("State")
            desired_state = task.get("DesiredState")
            on_active = same_image(image, active_image)

            if desired_state == "running" and on_active:
                global_slots += 1
            if state == "running":
                if on_active and desired_state == "running":
                    running += 1
                else:
                    stale += 1
            elif (
                state in FAILED_TASK_STATES
                and on_active
                and same_image(image, unit.revision)
                and latest.get(_task_slot(task)) is task
            ):
                message = task.get("Status", {}).get("Err") or state
                unhealthy.append(f"{task.get('ID', '?')}: {sanitize_for_log(message)}")

        mode = spec.get("Mode", {})
        if "Replicated" in mode:
            desired = int(mode["Replicated"].get("Replicas", 0))
        else:
            desired = global_slots

        logger.debug(
            f"Service {unit.name}: {running}/{desired} running on {active_image}, {stale} stale"
        )
        return UnitStatus(
            active_revision=active_image,
            running_count=running,
            desired_count=desired,
            stale_count=stale,
            unhealthy_tasks=unhealthy,
        )

    def _base_spec(self, service: Service, strategy: UpdateStrategy) -> Dict[str, Any]:
        """Pick the service spec a new revision is built from."""
        spec: Dict[str, Any] = service.attrs.get("Spec", {})
        if strategy is UpdateStrategy.LATEST:
            return spec

        update_state = (service.attrs.get("UpdateStatus") or {}).get("State")
        previous: Optional[Dict[str, Any]] = service.attrs.get("PreviousSpec")
        if update_state in UNFINISHED_UPDATE_STATES and previous:
            return previous
        return spec

    def close(self) -> None:
        """Close the Docker client connection."""
        try:
            self.client.close()
        except Exception as e:
            logger.warning(f"Error closing Docker client: {e}")


def _container_spec(spec: Dict[str, Any]) -> Dict[str, Any]:
    return spec.get("TaskTemplate", {}).get("ContainerSpec", {})


def _task_slot(task: Dict[str, Any]) -> str:
    """Replica slot of a task; global services have one slot per node."""
    if task.get("Slot") is not None:
        return f"slot:{task['Slot']}"
    if task.get("NodeID"):
        return f"node:{task['NodeID']}"
    return f"task:{task.get('ID', id(task))}"


def _latest_task_per_slot(tasks: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Pick the newest task of every slot.

    Swarm keeps replaced tasks as history; only the newest task of a slot
    reflects its current health.
    """
    latest: Dict[str, Dict[str, Any]] = {}
    for task in tasks:
        slot = _task_slot(task)
        current = latest.get(slot)
        if current is None or _task_order(task) > _task_order(current):
            latest[slot] = task
    return latest


def _task_order(task: Dict[str, Any]) -> Tuple[int, str]:
    return (int((task.get("Version") or {}).get("Index", 0)), task.get("CreatedAt") or "")
