"""
Render models for the external merge service

These models describe the composition submitted to the render vendor and the
status reports it returns while the render is in progress.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from enum import Enum


class TransitionType(Enum):
    """Clip transition types understood by the vendor"""
    FADE = "fade"
    WIPE = "wipe"
    SLIDE_LEFT = "slideLeft"
    SLIDE_RIGHT = "slideRight"


class RenderState(Enum):
    """Vendor render lifecycle: queued -> fetching -> rendering -> saving -> done|failed"""
    QUEUED = "queued"
    FETCHING = "fetching"
    RENDERING = "rendering"
    SAVING = "saving"
    DONE = "done"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RenderState":
        """Unrecognized states count as still in progress"""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (RenderState.DONE, RenderState.FAILED)


# Resolution preset -> (width, height); unknown presets fall back to hd
RESOLUTIONS: Dict[str, Tuple[int, int]] = {
    "preview": (512, 288),
    "mobile": (640, 360),
    "sd": (1024, 576),
    "hd": (1280, 720),
    "high": (1920, 1080),
    "1080": (1920, 1080),
}
DEFAULT_RESOLUTION = "hd"


def resolution_dimensions(preset: Optional[str]) -> Tuple[int, int]:
    return RESOLUTIONS.get(preset or DEFAULT_RESOLUTION, RESOLUTIONS[DEFAULT_RESOLUTION])


@dataclass
class VideoClip:
    """One clip on the timeline, in final order"""
    url: str
    duration: float


@dataclass
class TransitionSpec:
    """
    Requested transition between interior clips.

    The first clip always fades in and the last always fades out, whatever
    type is requested here.
    """
    type: TransitionType = TransitionType.FADE
    duration: float = 0.5


@dataclass
class OutputSpec:
    """Render output settings"""
    format: str = "mp4"
    resolution: str = DEFAULT_RESOLUTION
    fps: int = 30
    quality: str = "high"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "resolution": self.resolution,
            "fps": self.fps,
            "quality": self.quality,
        }


@dataclass
class RenderStatusReport:
    """One poll response"""
    render_id: str
    state: RenderState
    raw_status: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    duration: Optional[float] = None
    render_time: Optional[float] = None


@dataclass
class RenderOutput:
    """Final merged video"""
    url: str
    render_id: str
    duration: Optional[float]
    width: int
    height: int
    metadata: Dict[str, Any] = field(default_factory=dict)
