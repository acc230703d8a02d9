"""
rollout-manager CLI entry point.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from docker.errors import DockerException

from rollout_manager import __version__
from rollout_manager.audit import DeploymentEventLog
from rollout_manager.backends import HttpVersionProber, SwarmBackend
from rollout_manager.config.settings import (
    LoggingConfig,
    RolloutManagerConfig,
    generate_default_config,
    load_config,
)
from rollout_manager.deployment import DeploymentOrchestrator
from rollout_manager.errors import ConfigurationError
from rollout_manager.logging_config import setup_logging as setup_full_logging
from rollout_manager.models import RunOutcome, RunStatus
from rollout_manager.output import format_json, format_summary

DEFAULT_CONFIG_PATH = "/etc/rollout-manager/config.yml"

EXIT_SUCCESS = 0
EXIT_ROLLED_BACK = 1
EXIT_TIMED_OUT = 2
EXIT_ROLLBACK_FAILED = 3
EXIT_DEGRADED = 4
EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Setup file and console logging, falling back to console only."""
    console_level = "DEBUG" if verbose else config.console_level

    log_dir = config.directory
    parent = Path(log_dir).parent
    if not parent.exists() or not os.access(parent, os.W_OK):
        log_dir = str(Path.home() / ".local" / "log" / "rollout-manager")

    try:
        setup_full_logging(
            log_dir=log_dir,
            console_level=console_level,
            file_level="DEBUG",
            use_json=config.use_json,
        )
    except OSError:
        # Fall back to basic logging if file logging fails
        logging.basicConfig(
            level=getattr(logging, console_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stderr)],
        )


def exit_code_for(outcome: RunOutcome) -> int:
    """Map a run outcome to the process exit code."""
    if outcome.status is RunStatus.SUCCEEDED:
        return EXIT_SUCCESS
    if outcome.status is RunStatus.DEGRADED:
        return EXIT_DEGRADED
    if outcome.status is RunStatus.ROLLBACK_FAILED:
        return EXIT_ROLLBACK_FAILED
    if outcome.timed_out:
        return EXIT_TIMED_OUT
    return EXIT_ROLLED_BACK


async def run(config: RolloutManagerConfig, version: str) -> RunOutcome:
    """
    Roll out ``version`` to every unit in the configuration.

    Raises:
        DockerException: If the Docker client cannot be created
    """
    services, jobs = config.build_units(version)
    backend = SwarmBackend.from_config(config.docker)
    events = DeploymentEventLog(config.events.path) if config.events.enabled else None

    try:
        async with HttpVersionProber() as prober:
            orchestrator = DeploymentOrchestrator(backend, prober, config.timing, events)
            return await orchestrator.run_deployment(services, jobs)
    finally:
        backend.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollout-manager",
        description="Roll out a new version to Docker Swarm services and scheduled jobs",
    )
    parser.add_argument(
        "--version",
        "-V",
        dest="target_version",
        type=str,
        help="Version (image tag) to roll out",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--check-interval",
        type=float,
        default=None,
        help="Seconds between checks (overrides configuration)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline of each verification stage in seconds (overrides configuration)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Print the run outcome as JSON")
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate example configuration file and exit",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration file and exit"
    )
    parser.add_argument(
        "--program-version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        generate_default_config(args.config)
        print(f"Generated example configuration at: {args.config}")
        return EXIT_SUCCESS

    if args.validate_config:
        try:
            RolloutManagerConfig.from_file(args.config)
        except ConfigurationError as e:
            print(f"Configuration invalid: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR
        print(f"Configuration valid: {args.config}")
        return EXIT_SUCCESS

    if not args.target_version:
        print("error: --version is required", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        config = load_config(
            args.config, check_interval=args.check_interval, timeout=args.timeout
        )
    except ConfigurationError as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging, args.verbose)
    logger.info(f"Loaded configuration from {args.config}")

    try:
        outcome = asyncio.run(run(config, args.target_version))
    except DockerException as e:
        logger.error(f"Could not connect to Docker: {e}")
        print(f"Error running rollout-manager: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_INTERRUPTED

    print(format_json(outcome) if args.json else format_summary(outcome))
    return exit_code_for(outcome)
