#!/usr/bin/env python3
"""
Setup script for rollout-manager.
Installs the rollout orchestrator and its command line entry point.
"""

from setuptools import setup, find_packages

setup(
    name="rollout-manager",
    version="0.1.0",
    description="Coordinated rollouts for Docker Swarm services and scheduled jobs",
    python_requires=">=3.9",
    packages=find_packages(include=["rollout_manager", "rollout_manager.*"]),
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "httpx>=0.24",
        "docker>=6.1",
        "aiofiles>=23.0",
        "tabulate>=0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "rollout-manager=rollout_manager.cli:main",
        ],
    },
)
