"""
Pricing engine - single source of truth for credit costs

Every cost is returned in integer micro-units (1 credit = CREDIT_SCALE units)
so the ledger never accumulates floating point drift. The same functions are
used to estimate a plan and to deduct credits for each job; nothing else in
the codebase may compute a price.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from core.errors import UnknownModel


# 1 credit = 10 micro-units (0.1 credit precision in the ledger)
CREDIT_SCALE = 10

# Video prices are quoted per 15 seconds and scale linearly
VIDEO_PRICE_BASE_SECONDS = 15


# Text-to-image, credits per image
IMAGE_MODEL_PRICING: Dict[str, float] = {
    "fal-ai/flux/dev": 3,
    "fal-ai/flux/schnell": 1,
    "fal-ai/flux-lora": 4,
    "fal-ai/flux-pro": 8,
    "fal-ai/flux-dev": 3,
    "fal-ai/flux-schnell": 1,
    "fal-ai/nanobanana-flux": 2,
}

# Image/text-to-video, credits per 15 seconds
VIDEO_MODEL_PRICING: Dict[str, float] = {
    # Kling
    "fal-ai/kling-video/v1": 600,
    "fal-ai/kling-video/v1.6/standard/text-to-video": 400,
    "fal-ai/kling-video/v1.6/standard/image-to-video": 400,
    "fal-ai/kling-video/v1.6/pro/text-to-video": 1000,
    # Sora
    "fal-ai/sora-2/text-to-video": 750,
    "fal-ai/sora-2/text-to-video/pro": 2250,
    "fal-ai/sora-2/image-to-video": 750,
    # Seedance (economy)
    "fal-ai/seedance/text-to-video": 306,
    "fal-ai/seedance/image-to-video": 306,
    # Veo
    "fal-ai/veo-3-1": 3000,
    "fal-ai/veo-3-1/fast": 1125,
    # Others
    "fal-ai/wan-25-preview/text-to-video": 375,
    "fal-ai/wan-25-preview/image-to-video": 375,
    "fal-ai/minimax-video": 900,
    "fal-ai/ltx-video": 113,
    "fal-ai/vidu/text-to-video": 600,
}

# Text-to-speech, credits per call
TTS_MODEL_PRICING: Dict[str, float] = {
    "fal-ai/vibevoice": 1,
    "fal-ai/vibevoice/7b": 2,
    "elevenlabs/turbo-v2": 1,
    "openai/tts-1": 0.5,
}

# Fixed per merge/render call
MERGE_COST_CREDITS = 1

# Granted once to new accounts (one 15s economy video)
NEW_USER_BONUS = VIDEO_MODEL_PRICING["fal-ai/seedance/image-to-video"]


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def credits_to_units(credits: float) -> int:
    """Convert credits to integer micro-units for storage"""
    return _round_half_up(Decimal(str(credits)) * CREDIT_SCALE)


def units_to_credits(units: int) -> float:
    """Convert micro-units back to credits for display"""
    return units / CREDIT_SCALE


def _lookup(table: Dict[str, float], model: str, kind: str) -> float:
    try:
        return table[model]
    except KeyError:
        raise UnknownModel(model, kind) from None


def image_cost(model: str) -> int:
    """Cost of one generated image"""
    return credits_to_units(_lookup(IMAGE_MODEL_PRICING, model, "image"))


def video_cost(model: str, seconds: float) -> int:
    """Cost of one clip of `seconds`, scaled from the 15s list price"""
    if seconds <= 0:
        raise ValueError(f"video duration must be positive, got {seconds}")
    base = Decimal(str(_lookup(VIDEO_MODEL_PRICING, model, "video")))
    scaled = base * CREDIT_SCALE * Decimal(str(seconds)) / VIDEO_PRICE_BASE_SECONDS
    return _round_half_up(scaled)


def voiceover_cost(model: str) -> int:
    """Cost of one voiceover generation"""
    return credits_to_units(_lookup(TTS_MODEL_PRICING, model, "voiceover"))


def merge_cost() -> int:
    """Cost of one merge/render"""
    return credits_to_units(MERGE_COST_CREDITS)


@dataclass
class CostBreakdown:
    """Per-stage estimate for a plan, in micro-units"""
    images: Dict[str, int] = field(default_factory=dict)   # scene id -> units
    videos: Dict[str, int] = field(default_factory=dict)   # scene id -> units
    voiceover: Optional[int] = None
    merge: int = 0

    @property
    def total(self) -> int:
        return (
            sum(self.images.values())
            + sum(self.videos.values())
            + (self.voiceover or 0)
            + self.merge
        )

    @property
    def total_credits(self) -> float:
        return units_to_credits(self.total)

    def to_dict(self) -> Dict:
        return {
            "images": {k: units_to_credits(v) for k, v in self.images.items()},
            "videos": {k: units_to_credits(v) for k, v in self.videos.items()},
            "voiceover": units_to_credits(self.voiceover) if self.voiceover is not None else None,
            "merge": units_to_credits(self.merge),
            "total": self.total_credits,
        }


def estimate_plan_cost(plan) -> CostBreakdown:
    """
    Estimate a WorkflowPlan with the exact functions used for deduction.

    Planners should set `estimatedCredits` from `estimate_plan_cost(plan).total_credits`.
    """
    breakdown = CostBreakdown()
    for scene in plan.scenes:
        breakdown.images[scene.id] = image_cost(plan.image_model_for(scene))
        breakdown.videos[scene.id] = video_cost(plan.video_model_for(scene), scene.duration)
    if plan.voiceover is not None:
        breakdown.voiceover = voiceover_cost(plan.tts_model)
    breakdown.merge = merge_cost()
    return breakdown
