"""
Render merge client for the Shotstack-style asynchronous render API.

Turns ordered video clips (plus an optional voiceover track) into one video:
build a timeline, submit it once, then poll the render until it is `done`,
`failed`, or the attempt ceiling is reached.

Wire contract:
    POST {base_url}/render          {"timeline": ..., "output": ...}
         -> {"success": true, "response": {"id": "<render id>"}}
    GET  {base_url}/render/{id}
         -> {"response": {"status": "...", "url": "...", "error": "..."}}
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from core.errors import (
    MissingRenderUrl,
    RenderSubmissionError,
    RenderTimeout,
    RenderVendorFailure,
)
from core.models.render import (
    OutputSpec,
    RenderOutput,
    RenderState,
    RenderStatusReport,
    TransitionSpec,
    TransitionType,
    VideoClip,
    resolution_dimensions,
)
from core.providers.base import VideoMerger

logger = logging.getLogger(__name__)


POLL_INTERVAL_SECONDS = 5.0
MAX_POLL_ATTEMPTS = 60  # 60 x 5s = 5 minutes
VOICEOVER_VOLUME = 0.8


def build_timeline(
    clips: List[VideoClip],
    audio_url: Optional[str] = None,
    transition: Optional[TransitionSpec] = None,
) -> Dict[str, Any]:
    """
    Lay clips end to end on track 0 and the voiceover on track 1.

    Clip i starts at the sum of the durations of clips 0..i-1. The first clip
    always fades in and the last always fades out; every other edge uses the
    requested transition type.
    """
    if not clips:
        raise ValueError("cannot build a timeline without clips")

    transition = transition or TransitionSpec()
    requested = transition.type.value
    fade = TransitionType.FADE.value

    video_clips = []
    current_time = 0.0
    last = len(clips) - 1
    for i, clip in enumerate(clips):
        video_clips.append({
            "asset": {
                "type": "video",
                "src": clip.url,
            },
            "start": current_time,
            "length": clip.duration,
            "transition": {
                "in": fade if i == 0 else requested,
                "out": fade if i == last else requested,
            },
        })
        current_time += clip.duration

    tracks = [{"clips": video_clips}]

    if audio_url:
        tracks.append({
            "clips": [{
                "asset": {
                    "type": "audio",
                    "src": audio_url,
                },
                "start": 0,
                "length": "end",
                "volume": VOICEOVER_VOLUME,
            }],
        })

    return {
        "background": "#000000",
        "tracks": tracks,
    }


def build_output(output: Optional[OutputSpec] = None) -> Dict[str, Any]:
    return (output or OutputSpec()).to_dict()


class RenderMergeClient(VideoMerger):
    """
    Submit/poll client for the external render service.

    `sleep` is injectable so tests can run the full 60-attempt ceiling
    without waiting five minutes.
    """

    name = "shotstack"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.shotstack.io/stage",
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("render API key is not configured (SHOTSTACK_API_KEY)")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._sleep = sleep
        self._transport = transport

    def __repr__(self) -> str:
        return f"RenderMergeClient(base_url={self.base_url!r}, api_key='***')"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Accept": "application/json",
                "x-api-key": self.api_key,
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def submit(self, timeline: Dict[str, Any], output: OutputSpec) -> str:
        """Submit one render; returns the vendor's render id"""
        logger.info("[Render] Submitting render job (%d tracks)", len(timeline.get("tracks", [])))
        async with self._client() as client:
            try:
                response = await client.post(
                    "/render",
                    json={"timeline": timeline, "output": build_output(output)},
                )
            except httpx.HTTPError as e:
                raise RenderSubmissionError(f"Render submission failed: {e}") from e

        if not response.is_success:
            raise RenderSubmissionError(
                f"Render submission failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        if not data.get("success", True):
            raise RenderSubmissionError(f"Render submission rejected: {data.get('message')}")
        render_id = (data.get("response") or {}).get("id")
        if not render_id:
            raise RenderSubmissionError("Render submission returned no render id")

        logger.info("[Render] Render job submitted: %s", render_id)
        return render_id

    async def poll(self, render_id: str, client: Optional[httpx.AsyncClient] = None) -> RenderStatusReport:
        """Fetch the current status of a render once"""
        if client is None:
            async with self._client() as own_client:
                return await self.poll(render_id, own_client)

        try:
            response = await client.get(f"/render/{render_id}")
        except httpx.HTTPError as e:
            raise RenderVendorFailure(f"Render status check failed: {e}") from e
        if not response.is_success:
            raise RenderVendorFailure(
                f"Render status check failed: {response.status_code} {response.text}"
            )

        body = response.json().get("response") or {}
        raw_status = body.get("status")
        return RenderStatusReport(
            render_id=render_id,
            state=RenderState.parse(raw_status),
            raw_status=raw_status,
            url=body.get("url"),
            error=body.get("error"),
            duration=body.get("duration"),
            render_time=body.get("renderTime"),
        )

    async def wait_for_render(self, render_id: str) -> RenderStatusReport:
        """
        Poll until done or failed, up to `max_attempts` polls.

        No cancellation is sent to the vendor on timeout.

        Raises:
            MissingRenderUrl: `done` without a URL
            RenderVendorFailure: `failed`, or a status check error
            RenderTimeout: ceiling reached while still in progress
        """
        async with self._client() as client:
            for attempt in range(1, self.max_attempts + 1):
                report = await self.poll(render_id, client)
                logger.debug(
                    "[Render] Attempt %d/%d - status: %s",
                    attempt, self.max_attempts, report.raw_status,
                )

                if report.state == RenderState.DONE:
                    if not report.url:
                        raise MissingRenderUrl(render_id)
                    logger.info("[Render] Render completed: %s", report.url)
                    return report

                if report.state == RenderState.FAILED:
                    raise RenderVendorFailure(
                        f"Render {render_id} failed: {report.error or 'Unknown error'}"
                    )

                if attempt < self.max_attempts:
                    await self._sleep(self.poll_interval)

        raise RenderTimeout(render_id, self.max_attempts, self.poll_interval)

    async def merge(
        self,
        clips: List[VideoClip],
        audio_url: Optional[str] = None,
        transition: Optional[TransitionSpec] = None,
        output: Optional[OutputSpec] = None,
    ) -> RenderOutput:
        output = output or OutputSpec()
        logger.info(
            "[Render] Merging %d clips (audio: %s, transition: %s)",
            len(clips), bool(audio_url), (transition or TransitionSpec()).type.value,
        )

        timeline = build_timeline(clips, audio_url, transition)
        render_id = await self.submit(timeline, output)
        report = await self.wait_for_render(render_id)

        width, height = resolution_dimensions(output.resolution)
        return RenderOutput(
            url=report.url,
            render_id=render_id,
            duration=report.duration or sum(c.duration for c in clips),
            width=width,
            height=height,
            metadata={
                "render_id": render_id,
                "render_time": report.render_time or 0,
                "clip_count": len(clips),
            },
        )
