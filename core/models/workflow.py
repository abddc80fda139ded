"""
Workflow plan models

The plan is produced by an external planner as camelCase JSON. It is parsed
into frozen pydantic models so nothing downstream can mutate it once a run
has accepted it.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_IMAGE_MODEL = "fal-ai/flux/dev"
DEFAULT_VIDEO_MODEL = "fal-ai/kling-video/v1.6/standard/image-to-video"
DEFAULT_TTS_MODEL = "fal-ai/vibevoice"

# Aspect ratio -> (image size preset, video width, video height)
ASPECT_RATIOS: Dict[str, Tuple[str, int, int]] = {
    "16:9": ("landscape_16_9", 1920, 1080),
    "9:16": ("portrait_9_16", 1080, 1920),
    "1:1": ("square", 1080, 1080),
}


class _PlanModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class SceneModels(_PlanModel):
    """Per-scene model overrides"""
    image: Optional[str] = Field(None, alias="t2i")
    video: Optional[str] = Field(None, alias="t2v")


class Scene(_PlanModel):
    """One scene of the plan: one image, then one clip animated from it"""
    id: str = Field(..., min_length=1, description="Stable scene id")
    description: str = Field(..., description="Prompt for image and video generation")
    duration: float = Field(..., gt=0, description="Target clip duration in seconds")
    style_preset: Optional[str] = Field(None, alias="stylePreset")
    camera_angle: Optional[str] = Field(None, alias="cameraAngle")
    movement: Optional[str] = None
    models: Optional[SceneModels] = None


class VoiceoverPlan(_PlanModel):
    """Single narration track laid under the whole video"""
    script: str
    voice: str = "female"
    language: Optional[str] = "en"
    estimated_duration: Optional[float] = Field(None, alias="estimatedDuration")


class RecommendedModels(_PlanModel):
    """Model identifiers the planner picked per stage"""
    llm: Optional[str] = None
    t2i: str = DEFAULT_IMAGE_MODEL
    t2v: str = DEFAULT_VIDEO_MODEL
    tts: Optional[str] = None


class WorkflowPlan(_PlanModel):
    """
    Structured generation plan.

    Scene order is the final clip order in the merged video, regardless of
    which scene finishes generating first.
    """
    scenes: Tuple[Scene, ...]
    voiceover: Optional[VoiceoverPlan] = None
    estimated_credits: float = Field(..., ge=0, alias="estimatedCredits")
    recommended_models: RecommendedModels = Field(
        default_factory=RecommendedModels, alias="recommendedModels"
    )
    aspect_ratio: str = Field("16:9", alias="aspectRatio")
    resolution: str = "hd"

    @field_validator("scenes")
    @classmethod
    def _check_scenes(cls, scenes: Tuple[Scene, ...]) -> Tuple[Scene, ...]:
        if not scenes:
            raise ValueError("plan must contain at least one scene")
        ids = [s.id for s in scenes]
        if len(set(ids)) != len(ids):
            raise ValueError(f"duplicate scene ids: {ids}")
        return scenes

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowPlan":
        return cls.model_validate(data)

    def snapshot(self) -> Dict[str, Any]:
        """Plain JSON copy of the plan, stored by value on the run"""
        return self.model_dump(mode="json", by_alias=True)

    # ---- effective per-stage choices ----

    def image_model_for(self, scene: Scene) -> str:
        if scene.models and scene.models.image:
            return scene.models.image
        return self.recommended_models.t2i

    def video_model_for(self, scene: Scene) -> str:
        if scene.models and scene.models.video:
            return scene.models.video
        return self.recommended_models.t2v

    @property
    def tts_model(self) -> str:
        return self.recommended_models.tts or DEFAULT_TTS_MODEL

    @property
    def image_size(self) -> str:
        return ASPECT_RATIOS.get(self.aspect_ratio, ASPECT_RATIOS["16:9"])[0]

    @property
    def video_dimensions(self) -> Tuple[int, int]:
        _, width, height = ASPECT_RATIOS.get(self.aspect_ratio, ASPECT_RATIOS["16:9"])
        return width, height

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.scenes)

    def scene_ids(self) -> List[str]:
        return [s.id for s in self.scenes]
