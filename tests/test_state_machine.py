from __future__ import annotations

import pytest

from deepreport.errors import ErrorCategory, InvalidTransitionError
from deepreport.models.research import TRANSITIONS, PipelineStatus, Stage


def test_agent_run_path_is_legal():
    status = PipelineStatus(run_id=1)
    for stage in (Stage.PROCESSING, Stage.SEARCHING, Stage.ANALYZING, Stage.GENERATING, Stage.IDLE):
        status.transition(stage, f"entered {stage.value}")

    assert status.stage is Stage.IDLE
    assert len(status.insights) == 5


def test_manual_run_jumps_to_generating():
    status = PipelineStatus()
    status.transition(Stage.GENERATING)
    assert status.is_active
    status.transition(Stage.IDLE)
    assert not status.is_active


@pytest.mark.parametrize("stage", [Stage.PROCESSING, Stage.SEARCHING, Stage.ANALYZING, Stage.GENERATING])
def test_every_active_stage_can_fail(stage):
    status = PipelineStatus()
    status.stage = stage

    status.fail(ErrorCategory.UPSTREAM_FAILURE, "boom")

    assert status.stage is Stage.ERROR
    assert status.error.message == "boom"
    assert status.insights[-1] == "Error: boom"


def test_illegal_transitions_raise():
    status = PipelineStatus()
    with pytest.raises(InvalidTransitionError):
        status.transition(Stage.SEARCHING)

    status.transition(Stage.PROCESSING)
    with pytest.raises(InvalidTransitionError):
        status.transition(Stage.GENERATING)
    assert status.stage is Stage.PROCESSING


def test_table_covers_every_stage():
    assert set(TRANSITIONS) == set(Stage)
    for stage in (Stage.IDLE, Stage.ERROR):
        assert Stage.ERROR not in TRANSITIONS[stage]


def test_snapshot_is_detached_from_status():
    status = PipelineStatus(run_id=4)
    status.transition(Stage.PROCESSING, "first")
    snapshot = status.snapshot()
    status.add_insight("second")

    assert snapshot.insights == ("first",)
    assert snapshot.to_dict()["stage"] == "processing"
    assert snapshot.to_dict()["fetch_status"]["total"] == 0
