"""Adapter interfaces for external generation services"""

from .base import (
    ProviderConfig,
    ImageGenerator,
    ImageGenerationResult,
    VideoGenerator,
    VideoGenerationResult,
    VoiceoverGenerator,
    AudioGenerationResult,
    VideoMerger,
)
from .mock import (
    MockImageGenerator,
    MockVideoGenerator,
    MockVoiceoverGenerator,
    MockVideoMerger,
)

__all__ = [
    # Base classes
    "ProviderConfig",
    "ImageGenerator",
    "ImageGenerationResult",
    "VideoGenerator",
    "VideoGenerationResult",
    "VoiceoverGenerator",
    "AudioGenerationResult",
    "VideoMerger",

    # Mock adapters
    "MockImageGenerator",
    "MockVideoGenerator",
    "MockVoiceoverGenerator",
    "MockVideoMerger",
]
