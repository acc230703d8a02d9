"""
Configuration models for rollout-manager.

The configuration file is YAML and lists the services and scheduled jobs to
roll out together, plus timing, Docker, logging and event log settings.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from rollout_manager.errors import ConfigurationError
from rollout_manager.models import Unit, UnitKind, UpdateStrategy


class ServiceConfig(BaseModel):
    """A long-running service to roll out."""

    check_url: Optional[str] = Field(
        default=None, description="Endpoint serving the deployed version; disables the check if unset"
    )
    smoke_test_url: Optional[str] = Field(
        default=None, description="Endpoint run once after the new version is observed"
    )
    update_strategy: UpdateStrategy = Field(
        default=UpdateStrategy.CURRENT,
        description="Base revision to update from: current, latest or skip",
    )
    tags: List[str] = Field(default_factory=list, description="Labels attached to events")


class ScheduledJobConfig(BaseModel):
    """A scheduled job whose next runs should use the new version."""

    update_strategy: UpdateStrategy = Field(default=UpdateStrategy.CURRENT)
    tags: List[str] = Field(default_factory=list)


class TimingConfig(BaseModel):
    """Polling interval and per-stage deadline, in seconds."""

    check_interval: float = Field(default=15.0, gt=0, description="Seconds between checks")
    timeout: float = Field(default=300.0, gt=0, description="Deadline of each polling stage")


class DockerConfig(BaseModel):
    """Connection to the Docker Swarm manager."""

    host: Optional[str] = Field(
        default=None, description="Docker API URL; the environment is used when unset"
    )
    tls_ca: Optional[str] = None
    tls_cert: Optional[str] = None
    tls_key: Optional[str] = None
    timeout: int = Field(default=60, gt=0, description="Docker API timeout in seconds")

    @property
    def tls_enabled(self) -> bool:
        return any([self.tls_ca, self.tls_cert, self.tls_key])

    @model_validator(mode="after")
    def validate_tls(self) -> "DockerConfig":
        """Ensure TLS settings are given together."""
        if self.tls_enabled and not all([self.tls_ca, self.tls_cert, self.tls_key]):
            raise ValueError("tls_ca, tls_cert and tls_key must be set together")
        return self


class LoggingConfig(BaseModel):
    directory: str = Field(default="/var/log/rollout-manager")
    console_level: str = Field(default="INFO")
    use_json: bool = Field(default=False)

    @field_validator("console_level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level


class EventLogConfig(BaseModel):
    enabled: bool = Field(default=True)
    path: str = Field(default="/var/log/rollout-manager/events.jsonl")


class RolloutManagerConfig(BaseModel):
    """Top-level configuration."""

    services: Dict[str, ServiceConfig] = Field(default_factory=dict)
    scheduled_jobs: Dict[str, ScheduledJobConfig] = Field(default_factory=dict)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    docker: DockerConfig = Field(default_factory=DockerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    events: EventLogConfig = Field(default_factory=EventLogConfig)

    @model_validator(mode="after")
    def validate_units(self) -> "RolloutManagerConfig":
        """Ensure there is something to deploy and names are unique."""
        if not self.services and not self.scheduled_jobs:
            raise ValueError("configuration must contain at least one service or scheduled job")
        duplicates = set(self.services) & set(self.scheduled_jobs)
        if duplicates:
            raise ValueError(
                f"names used for both a service and a scheduled job: {', '.join(sorted(duplicates))}"
            )
        return self

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RolloutManagerConfig":
        """
        Load and validate configuration from a YAML file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"No such file {config_path}")

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Couldn't read yaml file at {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {config_path}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    def save(self, path: Union[str, Path]) -> None:
        """Write the configuration to a YAML file."""
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    def build_units(self, version: str) -> tuple[List[Unit], List[Unit]]:
        """
        Build the units of one run.

        Args:
            version: Version every unit should converge to

        Returns:
            Tuple of (service units, scheduled job units)
        """
        services = [
            Unit(
                name=name,
                version=version,
                kind=UnitKind.SERVICE,
                check_url=service.check_url,
                smoke_test_url=service.smoke_test_url,
                update_strategy=service.update_strategy,
                tags=list(service.tags),
            )
            for name, service in self.services.items()
        ]
        jobs = [
            Unit(
                name=name,
                version=version,
                kind=UnitKind.JOB,
                update_strategy=job.update_strategy,
                tags=list(job.tags),
            )
            for name, job in self.scheduled_jobs.items()
        ]
        return services, jobs


def generate_default_config(path: Union[str, Path]) -> RolloutManagerConfig:
    """Write an example configuration file and return it."""
    config = RolloutManagerConfig(
        services={
            "example-api": ServiceConfig(check_url="https://api.example.com/version"),
        },
        scheduled_jobs={"example-nightly-report": ScheduledJobConfig()},
    )
    config.save(path)
    return config


def load_config(path: Union[str, Path], **overrides: Any) -> RolloutManagerConfig:
    """Load configuration and apply timing overrides given on the command line."""
    config = RolloutManagerConfig.from_file(path)
    timing = {key: value for key, value in overrides.items() if value is not None}
    if timing:
        try:
            config.timing = TimingConfig(**{**config.timing.model_dump(), **timing})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid timing override: {e}") from e
    return config
