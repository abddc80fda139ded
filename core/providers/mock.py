"""Mock adapters for running workflows without API keys"""

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from core.models.render import (
    OutputSpec,
    RenderOutput,
    TransitionSpec,
    VideoClip,
    resolution_dimensions,
)
from .base import (
    AudioGenerationResult,
    ImageGenerationResult,
    ImageGenerator,
    ProviderConfig,
    VideoGenerationResult,
    VideoGenerator,
    VideoMerger,
    VoiceoverGenerator,
)

MOCK_CDN = "https://mock-cdn.example.com"

# Size preset -> pixel dimensions reported by the mock image adapter
_IMAGE_SIZES = {
    "landscape_16_9": (1024, 576),
    "portrait_9_16": (576, 1024),
    "square": (1024, 1024),
}

# Rough speaking rate for estimating mock voiceover length
_WORDS_PER_SECOND = 2.5


class MockImageGenerator(ImageGenerator):
    """
    Mock text-to-image adapter.

    Used for:
    - Testing without API keys
    - Development without incurring costs
    - `reel run --mock`
    """

    def __init__(self, config: ProviderConfig = None, delay: float = 0.05):
        super().__init__(config)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock-image"

    async def generate_image(
        self,
        model: str,
        prompt: str,
        size: str,
        style: Optional[str] = None,
    ) -> ImageGenerationResult:
        await asyncio.sleep(self.delay)
        self.calls.append({"model": model, "prompt": prompt, "size": size, "style": style})

        request_id = f"mock_img_{uuid.uuid4().hex[:8]}"
        width, height = _IMAGE_SIZES.get(size, (1024, 1024))
        return ImageGenerationResult(
            success=True,
            image_url=f"{MOCK_CDN}/images/{request_id}.png",
            width=width,
            height=height,
            provider_metadata={"request_id": request_id, "model": model, "provider": "mock"},
        )


class MockVideoGenerator(VideoGenerator):
    """Mock image-to-video adapter; clips come back at the requested length"""

    def __init__(self, config: ProviderConfig = None, delay: float = 0.1):
        super().__init__(config)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock-video"

    async def generate_video(
        self,
        model: str,
        image_url: str,
        prompt: str,
        duration_seconds: float,
        width: int,
        height: int,
    ) -> VideoGenerationResult:
        await asyncio.sleep(self.delay)
        self.calls.append({
            "model": model,
            "image_url": image_url,
            "prompt": prompt,
            "duration_seconds": duration_seconds,
        })

        request_id = f"mock_vid_{uuid.uuid4().hex[:8]}"
        return VideoGenerationResult(
            success=True,
            video_url=f"{MOCK_CDN}/videos/{request_id}.mp4",
            duration=duration_seconds,
            width=width,
            height=height,
            provider_metadata={"request_id": request_id, "model": model, "provider": "mock"},
        )


class MockVoiceoverGenerator(VoiceoverGenerator):
    """Mock text-to-speech adapter"""

    def __init__(self, config: ProviderConfig = None, delay: float = 0.05):
        super().__init__(config)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "mock-tts"

    async def generate_speech(
        self,
        model: str,
        text: str,
        voice: str,
        language: Optional[str] = None,
    ) -> AudioGenerationResult:
        await asyncio.sleep(self.delay)
        self.calls.append({"model": model, "text": text, "voice": voice, "language": language})

        request_id = f"mock_tts_{uuid.uuid4().hex[:8]}"
        return AudioGenerationResult(
            success=True,
            audio_url=f"{MOCK_CDN}/audio/{request_id}.mp3",
            duration=round(len(text.split()) / _WORDS_PER_SECOND, 1),
            provider_metadata={"request_id": request_id, "voice": voice, "provider": "mock"},
        )


class MockVideoMerger(VideoMerger):
    """Mock render service: returns immediately with a fake merged URL"""

    name = "mock-render"

    def __init__(self, delay: float = 0.05):
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def merge(
        self,
        clips: List[VideoClip],
        audio_url: Optional[str] = None,
        transition: Optional[TransitionSpec] = None,
        output: Optional[OutputSpec] = None,
    ) -> RenderOutput:
        await asyncio.sleep(self.delay)
        output = output or OutputSpec()
        self.calls.append({
            "clips": list(clips),
            "audio_url": audio_url,
            "transition": transition,
            "output": output,
        })

        render_id = f"mock_render_{uuid.uuid4().hex[:8]}"
        width, height = resolution_dimensions(output.resolution)
        return RenderOutput(
            url=f"{MOCK_CDN}/renders/{render_id}.mp4",
            render_id=render_id,
            duration=sum(c.duration for c in clips),
            width=width,
            height=height,
            metadata={"render_id": render_id, "clip_count": len(clips)},
        )
