"""
Output formatting for run outcomes.

Renders a RunOutcome as a per-unit table (one column per stage) or as JSON.
"""

import json
from typing import Any, Dict, List

from tabulate import tabulate  # type: ignore[import-untyped]

from rollout_manager.deployment.helpers import describe_version
from rollout_manager.models import RunOutcome, Stage, StageReport

STAGE_COLUMNS = {
    Stage.DEPLOY: "deploy",
    Stage.VERIFY_DEPLOYED: "deployed",
    Stage.VERIFY_DRAINED: "drained",
}


def _stage_rows(reports: List[StageReport], rows: Dict[str, Dict[str, Any]]) -> None:
    for report in reports:
        column = STAGE_COLUMNS[report.stage]
        for result in report.results:
            row = rows.setdefault(result.unit.name, {"unit": result.unit.name})
            row[column] = result.outcome.value
            if result.error is not None:
                row["error"] = str(result.error)


def format_summary(outcome: RunOutcome) -> str:
    """
    Format a run outcome as a table.

    Args:
        outcome: Outcome of a completed run

    Returns:
        Table with one row per unit followed by the run status
    """
    rows: Dict[str, Dict[str, Any]] = {}
    _stage_rows(outcome.stages, rows)
    for report in outcome.stages:
        for result in report.results:
            rows[result.unit.name]["version"] = describe_version(result.unit.version)

    columns = ["unit", "version"] + list(STAGE_COLUMNS.values()) + ["error"]
    table_data = [[row.get(col, "") for col in columns] for row in rows.values()]
    lines = [tabulate(table_data, headers=columns, tablefmt="simple") if table_data else "No units."]

    if outcome.rollback is not None:
        rollback_rows: Dict[str, Dict[str, Any]] = {}
        _stage_rows(outcome.rollback.stages, rollback_rows)
        lines.append("")
        lines.append(f"Rollback: {outcome.rollback.status.value}")
        if rollback_rows:
            rollback_columns = ["unit"] + list(STAGE_COLUMNS.values()) + ["error"]
            lines.append(
                tabulate(
                    [[row.get(col, "") for col in rollback_columns] for row in rollback_rows.values()],
                    headers=rollback_columns,
                    tablefmt="simple",
                )
            )

    lines.append("")
    status = outcome.status.value
    if outcome.timed_out:
        status += " (deadline exceeded)"
    lines.append(f"Run {outcome.run_id}: {status}")
    return "\n".join(lines)


def format_json(outcome: RunOutcome) -> str:
    """Format a run outcome as JSON."""
    return json.dumps(outcome.to_dict(), indent=2, default=str)
