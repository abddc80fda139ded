"""Unit tests for the pricing engine"""

import pytest

from core.errors import UnknownModel
from core.pricing import (
    CREDIT_SCALE,
    NEW_USER_BONUS,
    credits_to_units,
    estimate_plan_cost,
    image_cost,
    merge_cost,
    units_to_credits,
    video_cost,
    voiceover_cost,
)
from tests.mocks.fixtures import make_plan, make_scene, make_scene_list


KLING = "fal-ai/kling-video/v1.6/standard/image-to-video"
SEEDANCE = "fal-ai/seedance/image-to-video"


# ============================================================
# Unit conversion
# ============================================================

def test_credit_scale():
    assert CREDIT_SCALE == 10
    assert credits_to_units(1) == 10
    assert credits_to_units(0.5) == 5
    assert units_to_credits(25) == 2.5


def test_credits_to_units_rounds_half_up():
    assert credits_to_units(0.05) == 1
    assert credits_to_units(0.04) == 0
    assert credits_to_units(2.25) == 23


# ============================================================
# Per-stage costs
# ============================================================

def test_image_cost():
    assert image_cost("fal-ai/flux/dev") == 30
    assert image_cost("fal-ai/flux/schnell") == 10
    assert image_cost("fal-ai/flux-pro") == 80


def test_video_cost_full_base_period():
    assert video_cost(KLING, 15) == 4000


def test_video_cost_scales_linearly():
    assert video_cost(KLING, 5) == 1333   # 400 * 5/15 = 133.33 credits
    assert video_cost(KLING, 7.5) == 2000
    assert video_cost(SEEDANCE, 10) == 2040


def test_video_cost_half_up():
    # 3060 / 15 = 204.0; 2000 / 15 = 133.33
    assert video_cost(SEEDANCE, 1) == 204
    assert video_cost(KLING, 0.5) == 133
    # 847.5 / 15 = 56.5 rounds up
    assert video_cost("fal-ai/ltx-video", 0.75) == 57


def test_video_cost_rejects_non_positive_duration():
    with pytest.raises(ValueError):
        video_cost(KLING, 0)


def test_voiceover_and_merge_cost():
    assert voiceover_cost("fal-ai/vibevoice") == 10
    assert voiceover_cost("openai/tts-1") == 5
    assert merge_cost() == 10


def test_costs_are_deterministic():
    assert [video_cost(KLING, 4.2) for _ in range(5)] == [video_cost(KLING, 4.2)] * 5


@pytest.mark.parametrize("fn,args", [
    (image_cost, ("fal-ai/does-not-exist",)),
    (video_cost, ("fal-ai/does-not-exist", 5)),
    (voiceover_cost, ("fal-ai/does-not-exist",)),
])
def test_unknown_model_raises(fn, args):
    with pytest.raises(UnknownModel) as exc_info:
        fn(*args)
    assert "fal-ai/does-not-exist" in str(exc_info.value)


def test_new_user_bonus_is_one_economy_video():
    assert NEW_USER_BONUS == 306


# ============================================================
# Plan estimate
# ============================================================

def test_estimate_plan_cost_breakdown():
    plan = make_plan(make_scene_list(2, durations=[5.0, 10.0]))

    breakdown = estimate_plan_cost(plan)

    assert breakdown.images == {"scene_1": 30, "scene_2": 30}
    assert breakdown.videos == {"scene_1": 1333, "scene_2": 2667}
    assert breakdown.voiceover == 10
    assert breakdown.merge == 10
    assert breakdown.total == 30 + 30 + 1333 + 2667 + 10 + 10
    assert breakdown.total_credits == pytest.approx(408.0)


def test_estimate_without_voiceover():
    plan = make_plan(make_scene_list(1), voiceover=False)

    breakdown = estimate_plan_cost(plan)

    assert breakdown.voiceover is None
    assert breakdown.total == 30 + 1333 + 10


def test_estimate_uses_scene_model_overrides():
    scene = make_scene(models={"t2i": "fal-ai/flux/schnell", "t2v": SEEDANCE}, duration=15)
    plan = make_plan([scene], voiceover=False)

    breakdown = estimate_plan_cost(plan)

    assert breakdown.images["scene_1"] == 10
    assert breakdown.videos["scene_1"] == 3060


def test_estimate_uses_planned_tts_model():
    plan = make_plan(recommendedModels={"tts": "fal-ai/vibevoice/7b"})

    assert estimate_plan_cost(plan).voiceover == 20


def test_estimate_unknown_model_raises():
    scene = make_scene(models={"t2i": "fal-ai/not-priced"})
    plan = make_plan([scene], voiceover=False, estimated_credits=1)

    with pytest.raises(UnknownModel):
        estimate_plan_cost(plan)


def test_breakdown_to_dict_in_credits():
    plan = make_plan(make_scene_list(1), voiceover=False)

    data = estimate_plan_cost(plan).to_dict()

    assert data["images"] == {"scene_1": 3.0}
    assert data["videos"] == {"scene_1": 133.3}
    assert data["voiceover"] is None
    assert data["merge"] == 1.0
    assert data["total"] == pytest.approx(137.3)
