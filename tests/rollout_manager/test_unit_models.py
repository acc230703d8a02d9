"""
Tests for unit and outcome models.
"""

from rollout_manager.errors import BackendOperationError, DeadlineExceededError
from rollout_manager.models import (
    RollbackOutcome,
    RollbackStatus,
    RunOutcome,
    RunStatus,
    Stage,
    StageOutcome,
    StageReport,
    StageResult,
    Unit,
    UpdateResult,
    UpdateStrategy,
)


def updated_unit() -> Unit:
    unit = Unit(name="api", version="v2.0.0")
    unit.apply_update(
        UpdateResult(
            revision="registry/api:v2.0.0",
            previous_revision="registry/api:v1.0.0",
            previous_version="v1.0.0",
            tags=["team:payments"],
        )
    )
    return unit


class TestUnit:
    """Test unit bookkeeping."""

    def test_apply_update_records_previous_revision(self):
        unit = updated_unit()

        assert unit.is_updated
        assert unit.previous_version == "v1.0.0"
        assert unit.revision == "registry/api:v2.0.0"
        assert unit.previous_revision == "registry/api:v1.0.0"
        assert unit.tags == ["team:payments"]

    def test_apply_update_does_not_duplicate_tags(self):
        unit = Unit(name="api", version="v2.0.0", tags=["team:payments"])
        unit.apply_update(
            UpdateResult("registry/api:v2.0.0", "registry/api:v1.0.0", "v1.0.0", ["team:payments"])
        )
        assert unit.tags == ["team:payments"]

    def test_swap_versions(self):
        unit = updated_unit()
        unit.swap_versions()

        assert unit.version == "v1.0.0"
        assert unit.previous_version == "v2.0.0"
        assert unit.revision == "registry/api:v1.0.0"
        assert unit.previous_revision == "registry/api:v2.0.0"

    def test_swap_versions_twice_restores_pointers(self):
        unit = updated_unit()
        before = unit.to_dict()

        unit.swap_versions()
        unit.swap_versions()

        assert unit.to_dict() == before

    def test_swap_versions_without_update_is_noop(self):
        unit = Unit(name="api", version="v2.0.0")
        unit.swap_versions()

        assert unit.version == "v2.0.0"
        assert unit.previous_version is None
        assert unit.revision is None

    def test_is_unchanged(self):
        unit = Unit(name="api", version="v1.0.0")
        assert not unit.is_unchanged

        unit.apply_update(UpdateResult("registry/api:v1.0.0", "registry/api:v1.0.0", "v1.0.0"))
        assert unit.is_unchanged

    def test_is_skipped(self):
        assert Unit(name="api", version="v1", update_strategy=UpdateStrategy.SKIP).is_skipped
        assert not Unit(name="api", version="v1").is_skipped


class TestStageReport:
    """Test stage report aggregation."""

    def test_failed_and_timed_out(self):
        a = Unit(name="a", version="v1")
        b = Unit(name="b", version="v1")
        report = StageReport(
            Stage.VERIFY_DEPLOYED,
            [
                StageResult.success(a, Stage.VERIFY_DEPLOYED),
                StageResult.timed_out(b, Stage.VERIFY_DEPLOYED, 30),
            ],
        )

        assert report.failed
        assert report.timed_out
        assert report.succeeded_units == [a]
        assert report.failed_units == [b]
        assert isinstance(report.result_for("b").error, DeadlineExceededError)
        assert report.result_for("missing") is None

    def test_exempt_outcomes_are_not_failures(self):
        unit = Unit(name="a", version="v1")
        report = StageReport(
            Stage.VERIFY_DEPLOYED,
            [StageResult(unit, Stage.VERIFY_DEPLOYED, StageOutcome.NO_CHECK)],
        )
        assert not report.failed
        assert report.succeeded_units == [unit]

    def test_to_dict(self):
        unit = Unit(name="a", version="v1")
        error = BackendOperationError("a", "update", RuntimeError("boom"))
        report = StageReport(Stage.DEPLOY, [StageResult.failure(unit, Stage.DEPLOY, error)])

        data = report.to_dict()
        assert data["stage"] == "deploy"
        assert data["failed"] is True
        assert data["results"][0] == {
            "unit": "a",
            "stage": "deploy",
            "outcome": "failed",
            "error": "update failed for a: boom",
        }


class TestRunOutcome:
    """Test run outcome helpers."""

    def test_timed_out_only_counts_failed_stages(self):
        unit = Unit(name="a", version="v1")
        drained = StageReport(
            Stage.VERIFY_DRAINED, [StageResult.timed_out(unit, Stage.VERIFY_DRAINED, 1)]
        )
        outcome = RunOutcome(status=RunStatus.DEGRADED, stages=[drained])
        assert outcome.timed_out

        ok = StageReport(Stage.DEPLOY, [StageResult.success(unit, Stage.DEPLOY)])
        assert not RunOutcome(status=RunStatus.SUCCEEDED, stages=[ok]).timed_out

    def test_rollback_triggered(self):
        outcome = RunOutcome(status=RunStatus.SUCCEEDED)
        assert not outcome.rollback_triggered

        outcome.rollback = RollbackOutcome(units=[], status=RollbackStatus.RECOVERED)
        assert outcome.rollback_triggered
        assert outcome.rollback.confirmed
        assert outcome.to_dict()["rollback"]["status"] == "recovered"

    def test_rollback_failed_is_not_confirmed(self):
        rollback = RollbackOutcome(units=[], status=RollbackStatus.FAILED)
        assert not rollback.confirmed
        assert RollbackOutcome(units=[], status=RollbackStatus.RECOVERED_DEGRADED).confirmed

    def test_report_for(self):
        unit = Unit(name="a", version="v1")
        deploy = StageReport(Stage.DEPLOY, [StageResult.success(unit, Stage.DEPLOY)])
        outcome = RunOutcome(status=RunStatus.SUCCEEDED, stages=[deploy])

        assert outcome.report_for(Stage.DEPLOY) is deploy
        assert outcome.report_for(Stage.VERIFY_DRAINED) is None
        assert outcome.stage_failures == {Stage.DEPLOY: False}
