"""Configuration loading for rollout-manager."""

from rollout_manager.config.settings import (
    DockerConfig,
    EventLogConfig,
    LoggingConfig,
    RolloutManagerConfig,
    ScheduledJobConfig,
    ServiceConfig,
    TimingConfig,
    generate_default_config,
    load_config,
)

__all__ = [
    "DockerConfig",
    "EventLogConfig",
    "LoggingConfig",
    "RolloutManagerConfig",
    "ScheduledJobConfig",
    "ServiceConfig",
    "TimingConfig",
    "generate_default_config",
    "load_config",
]
