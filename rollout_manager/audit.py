"""
Event log for deployment runs.

Appends one JSON record per run and stage transition so that dashboards and
alerting can follow a rollout without parsing log lines.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles  # type: ignore

logger = logging.getLogger(__name__)


class DeploymentEventLog:
    """Appends deployment events to a JSONL file."""

    def __init__(self, path: Union[str, Path]) -> None:
        """
        Initialize event log.

        Args:
            path: JSONL file events are appended to
        """
        self.path = Path(path)

    async def record(
        self,
        action: str,
        run_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        tags: Optional[List[str]] = None,
        success: Optional[bool] = None,
    ) -> None:
        """
        Record a deployment event.

        Args:
            action: Event name (run_started, stage_completed, rollback_started, ...)
            run_id: Run the event belongs to
            details: Additional structured data
            tags: Labels of the units involved
            success: Whether the step succeeded, if applicable
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "run_id": run_id,
            "details": details or {},
        }
        if tags:
            entry["tags"] = tags
        if success is not None:
            entry["success"] = success

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a") as f:
                await f.write(json.dumps(entry) + "\n")
            logger.debug(f"Event: {action} for run {run_id}")
        except Exception as e:
            # Don't fail runs due to event logging issues
            logger.error(f"Failed to write event log: {e}")

