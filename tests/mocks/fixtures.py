"""Test data factories for consistent test setup"""

from typing import List, Optional

from core.models.workflow import Scene, VoiceoverPlan, WorkflowPlan
from core.pricing import estimate_plan_cost


def make_scene(
    scene_id: str = "scene_1",
    description: str = "A lighthouse on a cliff at dusk",
    duration: float = 5.0,
    **kwargs
) -> Scene:
    """Factory for Scene objects"""
    defaults = {
        "id": scene_id,
        "description": description,
        "duration": duration,
        "stylePreset": "cinematic",
        "cameraAngle": "wide",
        "movement": "slow pan",
    }
    defaults.update(kwargs)
    return Scene.model_validate(defaults)


def make_scene_list(count: int = 3, durations: Optional[List[float]] = None) -> List[Scene]:
    """Factory for list of scenes"""
    durations = durations or [5.0] * count
    return [
        make_scene(scene_id=f"scene_{i+1}", description=f"Scene {i+1}", duration=d)
        for i, d in enumerate(durations)
    ]


def make_voiceover(script: str = "Welcome to the coast. The light never sleeps.") -> VoiceoverPlan:
    return VoiceoverPlan(script=script, voice="female", language="en")


def make_plan(
    scenes: Optional[List[Scene]] = None,
    voiceover: bool = True,
    estimated_credits: Optional[float] = None,
    **kwargs
) -> WorkflowPlan:
    """
    Factory for WorkflowPlan objects.

    `estimatedCredits` defaults to the priced total, as a planner would set it.
    """
    data = {
        "scenes": [s.model_dump(by_alias=True) for s in (scenes or make_scene_list(3))],
        "voiceover": make_voiceover().model_dump(by_alias=True) if voiceover else None,
        "estimatedCredits": 0,
    }
    data.update(kwargs)
    plan = WorkflowPlan.from_dict(data)
    if estimated_credits is None:
        estimated_credits = estimate_plan_cost(plan).total_credits
    return plan.model_copy(update={"estimated_credits": estimated_credits})


def make_plan_dict(count: int = 2, voiceover: bool = True) -> dict:
    """Planner-style camelCase JSON for CLI tests"""
    return make_plan(make_scene_list(count), voiceover=voiceover).snapshot()
