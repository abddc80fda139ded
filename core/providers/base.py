"""Abstract base classes for generation adapter interfaces"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Dict, Any, List

if TYPE_CHECKING:
    from core.models.render import OutputSpec, RenderOutput, TransitionSpec, VideoClip


def _mask_secret(value: Optional[str]) -> str:
    """Mask a secret value for safe display in logs/repr."""
    if value is None:
        return "None"
    if len(value) <= 8:
        return "'***'"
    return f"'{value[:4]}...{value[-4:]}'"


@dataclass
class ProviderConfig:
    """Configuration shared by generation adapters"""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: int = 300  # seconds
    extra_params: Dict[str, Any] = None

    def __post_init__(self):
        if self.extra_params is None:
            self.extra_params = {}

    def __repr__(self) -> str:
        """Safe repr that masks API key to prevent accidental exposure in logs."""
        return (
            f"ProviderConfig(api_key={_mask_secret(self.api_key)}, "
            f"base_url={self.base_url!r}, timeout={self.timeout})"
        )


@dataclass
class ImageGenerationResult:
    """Result from image generation"""
    success: bool
    image_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    mime_type: str = "image/png"
    error_message: Optional[str] = None
    provider_metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.provider_metadata is None:
            self.provider_metadata = {}


@dataclass
class VideoGenerationResult:
    """Result from image-to-video generation"""
    success: bool
    video_url: Optional[str] = None
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    mime_type: str = "video/mp4"
    error_message: Optional[str] = None
    provider_metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.provider_metadata is None:
            self.provider_metadata = {}


@dataclass
class AudioGenerationResult:
    """Result from speech generation"""
    success: bool
    audio_url: Optional[str] = None
    duration: Optional[float] = None
    file_size: Optional[int] = None
    mime_type: str = "audio/mpeg"
    error_message: Optional[str] = None
    provider_metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.provider_metadata is None:
            self.provider_metadata = {}


class ImageGenerator(ABC):
    """
    Text-to-image adapter.

    Implementations call one hosted model per request. A result with
    `success=False` (or a raised exception) counts as a failed unit of work.
    """

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config or ProviderConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier"""
        pass

    @abstractmethod
    async def generate_image(
        self,
        model: str,
        prompt: str,
        size: str,
        style: Optional[str] = None,
    ) -> ImageGenerationResult:
        """
        Generate one image.

        Args:
            model: Priced model identifier
            prompt: Scene description
            size: Size preset (e.g. "landscape_16_9")
            style: Optional style preset

        Returns:
            ImageGenerationResult with the image URL
        """
        pass


class VideoGenerator(ABC):
    """Image-to-video adapter"""

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config or ProviderConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier"""
        pass

    @abstractmethod
    async def generate_video(
        self,
        model: str,
        image_url: str,
        prompt: str,
        duration_seconds: float,
        width: int,
        height: int,
    ) -> VideoGenerationResult:
        """
        Animate a still image into a clip.

        Args:
            model: Priced model identifier
            image_url: Source image from the text-to-image stage
            prompt: Scene description plus camera/movement hints
            duration_seconds: Requested clip length
            width: Output width in pixels
            height: Output height in pixels

        Returns:
            VideoGenerationResult with the clip URL and actual duration
        """
        pass


class VoiceoverGenerator(ABC):
    """Text-to-speech adapter"""

    def __init__(self, config: Optional[ProviderConfig] = None):
        self.config = config or ProviderConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier"""
        pass

    @abstractmethod
    async def generate_speech(
        self,
        model: str,
        text: str,
        voice: str,
        language: Optional[str] = None,
    ) -> AudioGenerationResult:
        pass


class VideoMerger(ABC):
    """Combines ordered clips and an optional audio track into one video"""

    name: str = "merger"

    @abstractmethod
    async def merge(
        self,
        clips: List["VideoClip"],
        audio_url: Optional[str] = None,
        transition: Optional["TransitionSpec"] = None,
        output: Optional["OutputSpec"] = None,
    ) -> "RenderOutput":
        """
        Raises:
            RenderError: submission, vendor failure, timeout, or missing URL
        """
        pass
