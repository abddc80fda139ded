"""
Workflow Orchestrator - turns a WorkflowPlan into one rendered video

    Stage A  text-to-image per scene      concurrent     ┐
    Stage B  image-to-video per scene     after all of A ├ C alongside
    Stage C  voiceover (optional)                        ┘
    Stage D  merge/render                 after A-C have all succeeded

Every adapter call goes through the JobTracker, so each completed unit of
work is charged exactly once and a failed one is never charged. The run is
all-or-nothing: the first failure stops new work from starting, siblings
already in flight are allowed to settle, and the run ends `failed` with the
first error recorded. Charges for work that did complete are kept; there is
no refund path.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.errors import (
    AdapterFailure,
    InsufficientCredits,
    InvalidTransition,
    TrackingWriteFailure,
    WorkflowError,
)
from core.ledger import CreditLedger
from core.models.records import (
    RUN_TRANSITIONS,
    ArtifactType,
    JobStatus,
    NodeType,
    Run,
    RunStatus,
    utcnow,
)
from core.models.render import OutputSpec, TransitionSpec, VideoClip
from core.models.workflow import Scene, WorkflowPlan
from core.pricing import (
    credits_to_units,
    estimate_plan_cost,
    image_cost,
    merge_cost,
    units_to_credits,
    video_cost,
    voiceover_cost,
)
from core.progress import build_run_report
from core.providers.base import (
    ImageGenerator,
    VideoGenerator,
    VideoMerger,
    VoiceoverGenerator,
)
from core.store.base import WorkflowStore
from core.tracker import ArtifactSpec, JobTracker, TrackedResult

logger = logging.getLogger(__name__)


MERGE_NODE_ID = "merge"
VOICEOVER_NODE_ID = "voiceover"


@dataclass
class OrchestrationResult:
    """Final result of one run"""
    run_id: str
    status: RunStatus
    final_video_url: Optional[str] = None
    final_artifact_id: Optional[str] = None
    error_message: Optional[str] = None
    credits_used: int = 0  # micro-units

    @property
    def success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "final_video_url": self.final_video_url,
            "final_artifact_id": self.final_artifact_id,
            "error_message": self.error_message,
            "credits_used": units_to_credits(self.credits_used),
        }


class _FanOut:
    """
    Bounded concurrent fan-out with first-error abort.

    Once any unit fails, units that have not started yet are skipped (no Job
    is created for them). Units already running are not cancelled.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None
        self.aborted = False
        self.error: Optional[BaseException] = None

    @asynccontextmanager
    async def _slot(self):
        if self._semaphore is None:
            yield
            return
        async with self._semaphore:
            yield

    async def run(self, unit: Callable[[], Awaitable[Any]]) -> Optional[Any]:
        """Run one unit of work; returns None if the fan-out was already aborted"""
        if self.aborted:
            return None
        async with self._slot():
            if self.aborted:
                return None
            try:
                return await unit()
            except Exception as e:
                if self.error is None:
                    self.error = e
                self.aborted = True
                raise


@dataclass
class _RunContext:
    run: Run
    plan: WorkflowPlan
    fan: _FanOut


class WorkflowOrchestrator:
    """
    Executes workflow plans as single, cost-accounted units of work.

    Adapters are injected, so the same orchestrator runs against live
    services or the mocks in core.providers.mock.
    """

    def __init__(
        self,
        store: WorkflowStore,
        ledger: CreditLedger,
        image: ImageGenerator,
        video: VideoGenerator,
        voiceover: VoiceoverGenerator,
        renderer: VideoMerger,
        max_concurrency: Optional[int] = None,
        serialize_user_runs: bool = True,
        transition: Optional[TransitionSpec] = None,
    ):
        """
        Args:
            store: Persistence for runs, jobs and artifacts
            ledger: Credit ledger over the same store
            image: Text-to-image adapter (Stage A)
            video: Image-to-video adapter (Stage B)
            voiceover: Text-to-speech adapter (Stage C)
            renderer: Merge/render client (Stage D)
            max_concurrency: Cap on concurrent adapter calls per run (None = unbounded)
            serialize_user_runs: Admit one run per user at a time in this process
            transition: Transition requested between interior clips
        """
        self.store = store
        self.ledger = ledger
        self.tracker = JobTracker(store, ledger)
        self.image = image
        self.video = video
        self.voiceover = voiceover
        self.renderer = renderer
        self.max_concurrency = max_concurrency
        self.serialize_user_runs = serialize_user_runs
        self.transition = transition or TransitionSpec()
        self._user_locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, user_id: str) -> asyncio.Lock:
        """Get or create the admission lock for a user"""
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    @asynccontextmanager
    async def _admission(self, user_id: str):
        if not self.serialize_user_runs:
            yield
            return
        async with self._get_lock(user_id):
            yield

    # =========================================================================
    # RUN LIFECYCLE
    # =========================================================================

    async def execute(self, plan: WorkflowPlan, user_id: str) -> OrchestrationResult:
        """
        Run a plan end to end.

        Raises:
            InsufficientCredits: balance below the plan estimate; no run is created
            UnknownModel: the plan names a model with no price
            TrackingWriteFailure: the run record itself could not be written
        """
        async with self._admission(user_id):
            return await self._execute(plan, user_id)

    async def _execute(self, plan: WorkflowPlan, user_id: str) -> OrchestrationResult:
        estimate = estimate_plan_cost(plan)
        declared = credits_to_units(plan.estimated_credits)
        if declared != estimate.total:
            logger.warning(
                "[Orchestrator] Plan declares %.1f credits but prices at %.1f",
                plan.estimated_credits, estimate.total_credits,
            )

        required = max(declared, estimate.total)
        balance = await self.ledger.get_balance(user_id)
        if balance < required:
            raise InsufficientCredits(required, balance)

        run = Run(user_id=user_id, plan_snapshot=plan.snapshot())
        try:
            run = await self.store.create_run(run)
        except Exception as e:
            raise TrackingWriteFailure(f"Failed to create run: {e}") from e

        logger.info(
            "[Orchestrator] Run %s started: %d scenes, voiceover=%s, estimate %.1f credits",
            run.run_id, len(plan.scenes), plan.voiceover is not None, estimate.total_credits,
        )
        run = await self._transition(run, RunStatus.RUNNING)

        ctx = _RunContext(run=run, plan=plan, fan=_FanOut(self.max_concurrency))
        try:
            final = await self._run_stages(ctx)
        except asyncio.CancelledError:
            await asyncio.shield(self._transition(run, RunStatus.FAILED, "Run cancelled"))
            raise
        except WorkflowError as e:
            run = await self._transition(run, RunStatus.FAILED, str(e))
            logger.error("[Orchestrator] Run %s failed: %s", run.run_id, e)
            return OrchestrationResult(
                run_id=run.run_id,
                status=run.status,
                error_message=run.error_message,
                credits_used=run.total_credits_deducted,
            )
        except Exception as e:
            await self._transition(run, RunStatus.FAILED, f"Unexpected error: {e}")
            raise

        run = await self._transition(run, RunStatus.COMPLETED)
        logger.info(
            "[Orchestrator] Run %s completed: %s (%.1f credits)",
            run.run_id, final.artifact.url, units_to_credits(run.total_credits_deducted),
        )
        return OrchestrationResult(
            run_id=run.run_id,
            status=run.status,
            final_video_url=final.artifact.url,
            final_artifact_id=final.artifact.artifact_id,
            credits_used=run.total_credits_deducted,
        )

    async def _transition(
        self,
        run: Run,
        target: RunStatus,
        error_message: Optional[str] = None,
    ) -> Run:
        """Move the run to `target`; terminal states also settle the credit total"""
        if target not in RUN_TRANSITIONS[run.status]:
            raise InvalidTransition(
                f"Run {run.run_id} cannot move from {run.status.value} to {target.value}"
            )

        try:
            if target == RunStatus.RUNNING:
                run.started_at = utcnow()
            else:
                jobs = await self.store.list_jobs(run.run_id)
                run.total_credits_deducted = sum(
                    job.credits_used for job in jobs if job.status == JobStatus.COMPLETED
                )
                run.completed_at = utcnow()
                run.error_message = error_message
            run.status = target
            return await self.store.update_run(run)
        except Exception as e:
            raise TrackingWriteFailure(
                f"Failed to mark run {run.run_id} {target.value}: {e}"
            ) from e

    async def get_run_report(self, run_id: str) -> Dict[str, Any]:
        return await build_run_report(self.store, run_id)

    # =========================================================================
    # STAGES
    # =========================================================================

    async def _run_stages(self, ctx: _RunContext) -> TrackedResult:
        plan = ctx.plan

        # C runs alongside A and B
        voice: Optional[asyncio.Future] = None
        if plan.voiceover is not None:
            voice = asyncio.ensure_future(ctx.fan.run(lambda: self._generate_voiceover(ctx)))

        try:
            # A then B: no video job starts until every scene has its image
            images = await self._stage(
                ctx, [lambda s=scene: self._generate_image(ctx, s) for scene in plan.scenes]
            )
            videos = await self._stage(
                ctx,
                [
                    lambda s=scene, i=image: self._generate_video(ctx, s, i)
                    for scene, image in zip(plan.scenes, images)
                ],
            )
        finally:
            if voice is not None:
                await asyncio.gather(voice, return_exceptions=True)

        audio: Optional[TrackedResult] = None
        if voice is not None:
            if ctx.fan.error is not None:
                raise ctx.fan.error
            audio = voice.result()

        # D - barrier: clips in plan order, whatever order they finished in
        clips = [
            VideoClip(url=tracked.artifact.url, duration=tracked.artifact.duration or scene.duration)
            for scene, tracked in zip(plan.scenes, videos)
        ]
        return await self._merge(ctx, clips, audio.artifact.url if audio else None)

    async def _stage(
        self,
        ctx: _RunContext,
        units: List[Callable[[], Awaitable[TrackedResult]]],
    ) -> List[TrackedResult]:
        """Run one stage's units concurrently; all must succeed"""
        results = await asyncio.gather(*(ctx.fan.run(u) for u in units), return_exceptions=True)
        if ctx.fan.error is not None:
            raise ctx.fan.error
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results

    async def _generate_image(self, ctx: _RunContext, scene: Scene) -> TrackedResult:
        plan = ctx.plan
        model = plan.image_model_for(scene)
        size = plan.image_size
        adapter = self.image.name

        async def call() -> ArtifactSpec:
            result = await self.image.generate_image(
                model=model,
                prompt=scene.description,
                size=size,
                style=scene.style_preset,
            )
            if not result.success or not result.image_url:
                raise AdapterFailure(adapter, scene.id, result.error_message or "no image returned")
            return ArtifactSpec(
                artifact_type=ArtifactType.IMAGE,
                url=result.image_url,
                width=result.width,
                height=result.height,
                file_size=result.file_size,
                mime_type=result.mime_type,
                metadata={"scene_id": scene.id, "model": model},
                provider_metadata=result.provider_metadata,
            )

        return await self.tracker.track(
            run=ctx.run,
            node_id=scene.id,
            node_type=NodeType.T2I,
            adapter=adapter,
            input_params={
                "model": model,
                "prompt": scene.description,
                "size": size,
                "style": scene.style_preset,
            },
            call=call,
            credits_used=image_cost(model),
        )

    async def _generate_video(
        self,
        ctx: _RunContext,
        scene: Scene,
        image: TrackedResult,
    ) -> TrackedResult:
        plan = ctx.plan
        model = plan.video_model_for(scene)
        width, height = plan.video_dimensions
        prompt = _motion_prompt(scene)
        adapter = self.video.name

        async def call() -> ArtifactSpec:
            result = await self.video.generate_video(
                model=model,
                image_url=image.artifact.url,
                prompt=prompt,
                duration_seconds=scene.duration,
                width=width,
                height=height,
            )
            if not result.success or not result.video_url:
                raise AdapterFailure(adapter, scene.id, result.error_message or "no video returned")
            return ArtifactSpec(
                artifact_type=ArtifactType.VIDEO,
                url=result.video_url,
                duration=result.duration or scene.duration,
                width=result.width or width,
                height=result.height or height,
                file_size=result.file_size,
                mime_type=result.mime_type,
                metadata={
                    "scene_id": scene.id,
                    "model": model,
                    "source_artifact_id": image.artifact.artifact_id,
                },
                provider_metadata=result.provider_metadata,
            )

        return await self.tracker.track(
            run=ctx.run,
            node_id=scene.id,
            node_type=NodeType.I2V,
            adapter=adapter,
            input_params={
                "model": model,
                "image_url": image.artifact.url,
                "prompt": prompt,
                "duration": scene.duration,
                "width": width,
                "height": height,
            },
            call=call,
            credits_used=video_cost(model, scene.duration),
        )

    async def _generate_voiceover(self, ctx: _RunContext) -> TrackedResult:
        voiceover = ctx.plan.voiceover
        model = ctx.plan.tts_model
        adapter = self.voiceover.name

        async def call() -> ArtifactSpec:
            result = await self.voiceover.generate_speech(
                model=model,
                text=voiceover.script,
                voice=voiceover.voice,
                language=voiceover.language,
            )
            if not result.success or not result.audio_url:
                raise AdapterFailure(
                    adapter, VOICEOVER_NODE_ID, result.error_message or "no audio returned"
                )
            return ArtifactSpec(
                artifact_type=ArtifactType.AUDIO,
                url=result.audio_url,
                duration=result.duration or voiceover.estimated_duration,
                file_size=result.file_size,
                mime_type=result.mime_type,
                metadata={"model": model, "voice": voiceover.voice},
                provider_metadata=result.provider_metadata,
            )

        return await self.tracker.track(
            run=ctx.run,
            node_id=VOICEOVER_NODE_ID,
            node_type=NodeType.TTS,
            adapter=adapter,
            input_params={
                "model": model,
                "text": voiceover.script,
                "voice": voiceover.voice,
                "language": voiceover.language,
            },
            call=call,
            credits_used=voiceover_cost(model),
        )

    async def _merge(
        self,
        ctx: _RunContext,
        clips: List[VideoClip],
        audio_url: Optional[str],
    ) -> TrackedResult:
        output = OutputSpec(resolution=ctx.plan.resolution)
        adapter = self.renderer.name

        async def call() -> ArtifactSpec:
            rendered = await self.renderer.merge(
                clips=clips,
                audio_url=audio_url,
                transition=self.transition,
                output=output,
            )
            return ArtifactSpec(
                artifact_type=ArtifactType.VIDEO,
                url=rendered.url,
                duration=rendered.duration,
                width=rendered.width,
                height=rendered.height,
                mime_type="video/mp4",
                metadata={"clip_count": len(clips), "has_audio": audio_url is not None},
                provider_metadata=rendered.metadata,
            )

        logger.info("[Orchestrator] Run %s merging %d clips", ctx.run.run_id, len(clips))
        return await self.tracker.track(
            run=ctx.run,
            node_id=MERGE_NODE_ID,
            node_type=NodeType.MERGE,
            adapter=adapter,
            input_params={
                "clips": [{"url": c.url, "duration": c.duration} for c in clips],
                "audio_url": audio_url,
                "transition": self.transition.type.value,
                "output": output.to_dict(),
            },
            call=call,
            credits_used=merge_cost(),
        )


def _motion_prompt(scene: Scene) -> str:
    """Scene description plus camera hints for the image-to-video model"""
    parts = [scene.description]
    if scene.camera_angle:
        parts.append(f"Camera: {scene.camera_angle}")
    if scene.movement:
        parts.append(f"Movement: {scene.movement}")
    return ". ".join(parts)
