"""Unit tests for plan and record models"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.models.records import (
    Job,
    JobStatus,
    NodeType,
    Run,
    RunStatus,
    JOB_TRANSITIONS,
    RUN_TRANSITIONS,
)
from core.models.workflow import DEFAULT_TTS_MODEL, WorkflowPlan


PLANNER_JSON = {
    "scenes": [
        {
            "id": "s1",
            "description": "Sunrise over the harbour",
            "duration": 5,
            "stylePreset": "cinematic",
            "cameraAngle": "aerial",
            "movement": "slow push in",
            "models": {"t2i": "fal-ai/flux/schnell"},
        },
        {"id": "s2", "description": "Fishing boats leaving", "duration": 4},
    ],
    "voiceover": {"script": "Every morning...", "voice": "male", "estimatedDuration": 8},
    "estimatedCredits": 275.7,
    "recommendedModels": {"llm": "claude", "t2i": "fal-ai/flux/dev", "t2v": "fal-ai/seedance/image-to-video"},
    "aspectRatio": "9:16",
}


# ============================================================
# WorkflowPlan
# ============================================================

def test_parses_planner_camel_case():
    plan = WorkflowPlan.from_dict(PLANNER_JSON)

    assert plan.scene_ids() == ["s1", "s2"]
    assert plan.scenes[0].style_preset == "cinematic"
    assert plan.scenes[0].camera_angle == "aerial"
    assert plan.voiceover.estimated_duration == 8
    assert plan.estimated_credits == 275.7
    assert plan.total_duration == 9


def test_effective_models():
    plan = WorkflowPlan.from_dict(PLANNER_JSON)

    assert plan.image_model_for(plan.scenes[0]) == "fal-ai/flux/schnell"
    assert plan.image_model_for(plan.scenes[1]) == "fal-ai/flux/dev"
    assert plan.video_model_for(plan.scenes[0]) == "fal-ai/seedance/image-to-video"
    assert plan.tts_model == DEFAULT_TTS_MODEL


@pytest.mark.parametrize("ratio,size,dims", [
    ("16:9", "landscape_16_9", (1920, 1080)),
    ("9:16", "portrait_9_16", (1080, 1920)),
    ("1:1", "square", (1080, 1080)),
    ("4:3", "landscape_16_9", (1920, 1080)),
])
def test_aspect_ratio_drives_sizes(ratio, size, dims):
    plan = WorkflowPlan.from_dict({**PLANNER_JSON, "aspectRatio": ratio})

    assert plan.image_size == size
    assert plan.video_dimensions == dims


def test_snapshot_round_trips():
    plan = WorkflowPlan.from_dict(PLANNER_JSON)

    assert WorkflowPlan.from_dict(plan.snapshot()) == plan


@pytest.mark.parametrize("bad", [
    {**PLANNER_JSON, "scenes": []},
    {**PLANNER_JSON, "scenes": [PLANNER_JSON["scenes"][1], PLANNER_JSON["scenes"][1]]},
    {**PLANNER_JSON, "scenes": [{"id": "s1", "description": "x", "duration": 0}]},
    {**PLANNER_JSON, "estimatedCredits": -1},
])
def test_invalid_plans_rejected(bad):
    with pytest.raises(ValidationError):
        WorkflowPlan.from_dict(bad)


# ============================================================
# Records
# ============================================================

def test_terminal_states_have_no_exits():
    for status in RunStatus:
        if status.is_terminal:
            assert RUN_TRANSITIONS[status] == set()
    for status in JobStatus:
        if status.is_terminal:
            assert JOB_TRANSITIONS[status] == set()


def test_job_idempotency_key():
    job = Job(run_id="r", node_id="s1", node_type=NodeType.T2I, adapter="fal")

    assert job.idempotency_key == f"job:{job.job_id}"


def test_record_dict_round_trip():
    run = Run(user_id="alice", plan_snapshot={"scenes": []})
    data = run.to_dict()

    assert data["status"] == "pending"
    assert isinstance(data["created_at"], str)
    assert Run.from_dict(data) == run


def test_timestamps_are_timezone_aware():
    run = Run(user_id="alice", plan_snapshot={})

    assert run.created_at.utcoffset() == timedelta(0)
    assert Run.from_dict(run.to_dict()).created_at.utcoffset() == timedelta(0)
