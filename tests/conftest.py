"""
Pytest configuration and fixtures for rollout-manager tests.
"""

import json
import os
import pytest
from unittest.mock import Mock, patch


def pytest_configure(config):
    """
    Set environment variables before any test modules are imported.
    This runs very early in the pytest lifecycle.
    """
    os.environ.pop("ROLLOUT_SMOKE_TEST_TOKEN", None)


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for tests."""
    with patch("docker.from_env") as mock_docker:
        client = Mock()
        mock_docker.return_value = client
        yield client


@pytest.fixture
def config_file(tmp_path):
    """Write a minimal configuration file and return its path."""
    path = tmp_path / "config.yml"
    path.write_text(
        """
services:
  api:
    check_url: http://api.internal/version
    tags: [team:payments]
  worker: {}
scheduled_jobs:
  nightly-report:
    update_strategy: latest
timing:
  check_interval: 0.01
  timeout: 0.5
logging:
  directory: %s
events:
  path: %s
"""
        % (tmp_path / "logs", tmp_path / "events.jsonl")
    )
    return path


@pytest.fixture
def read_events():
    """Return a reader for the records of a JSONL event log."""

    def read(path):
        with open(path, "r") as f:
            return [json.loads(line) for line in f if line.strip()]

    return read
