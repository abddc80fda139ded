"""
Job/artifact tracker - bookkeeping protocol around every unit of work

    begin_job      persist a `pending` job before the adapter is called
    (adapter call)
    complete_job   artifact -> ledger deduction keyed by the job id -> job `completed`
    fail_job       job `failed`, no artifact, no charge

A terminal job therefore has either exactly one artifact and one ledger row,
or neither. Bookkeeping write failures raise TrackingWriteFailure and are
fatal to the run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from core.errors import (
    AdapterFailure,
    DuplicateTransaction,
    InvalidTransition,
    TrackingWriteFailure,
    WorkflowError,
)
from core.ledger import CreditLedger
from core.models.records import (
    JOB_TRANSITIONS,
    Artifact,
    ArtifactType,
    Job,
    JobStatus,
    NodeType,
    Run,
    TransType,
    utcnow,
)
from core.store.base import WorkflowStore

logger = logging.getLogger(__name__)


def sanitize_params(value: Any) -> Any:
    """Recursively drop None values from JSON-like input parameters"""
    if isinstance(value, dict):
        return {k: sanitize_params(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [sanitize_params(v) for v in value if v is not None]
    return value


@dataclass
class ArtifactSpec:
    """What an adapter produced, before it becomes an Artifact row"""
    artifact_type: ArtifactType
    url: str
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TrackedResult:
    """Outcome of a completed, charged unit of work"""
    job: Job
    artifact: Artifact


class JobTracker:
    """Runs the begin/complete/fail protocol against the store and ledger"""

    def __init__(self, store: WorkflowStore, ledger: CreditLedger):
        self.store = store
        self.ledger = ledger

    async def _write(self, what: str, job: Job, coro: Awaitable):
        try:
            return await coro
        except (InvalidTransition, TrackingWriteFailure):
            raise
        except Exception as e:
            raise TrackingWriteFailure(
                f"Failed to {what} for job {job.job_id} ({job.node_type.value} {job.node_id}): {e}"
            ) from e

    @staticmethod
    def _check_transition(job: Job, target: JobStatus):
        if target not in JOB_TRANSITIONS[job.status]:
            raise InvalidTransition(
                f"Job {job.job_id} cannot move from {job.status.value} to {target.value}"
            )

    async def begin_job(
        self,
        run: Run,
        node_id: str,
        node_type: NodeType,
        adapter: str,
        input_params: Dict[str, Any],
    ) -> Job:
        """Persist a pending job. If this fails the work must not start."""
        job = Job(
            run_id=run.run_id,
            node_id=node_id,
            node_type=node_type,
            adapter=adapter,
            input_params=sanitize_params(input_params),
        )
        job = await self._write("create job", job, self.store.create_job(job))
        logger.debug("[Tracker] Job %s pending (%s %s)", job.job_id, node_type.value, node_id)
        return job

    async def mark_running(self, job: Job) -> Job:
        self._check_transition(job, JobStatus.RUNNING)
        job.status = JobStatus.RUNNING
        job.started_at = utcnow()
        return await self._write("mark job running", job, self.store.update_job(job))

    async def complete_job(
        self,
        job: Job,
        run: Run,
        spec: ArtifactSpec,
        credits_used: int,
    ) -> TrackedResult:
        """
        Record a successful unit of work.

        Safe to call again after a crash part-way through: an artifact
        already stored for the job is reused and the ledger row is keyed by
        the job id, so the charge is posted at most once.
        """
        self._check_transition(job, JobStatus.COMPLETED)

        # 1. Artifact
        existing = await self._write(
            "look up artifact", job, self.store.list_artifacts(job_id=job.job_id)
        )
        if existing:
            artifact = existing[0]
        else:
            artifact = Artifact(
                user_id=run.user_id,
                run_id=run.run_id,
                job_id=job.job_id,
                artifact_type=spec.artifact_type,
                url=spec.url,
                duration=spec.duration,
                width=spec.width,
                height=spec.height,
                file_size=spec.file_size,
                mime_type=spec.mime_type,
                metadata=sanitize_params(spec.metadata) or None,
            )
            artifact = await self._write(
                "create artifact", job, self.store.create_artifact(artifact)
            )

        # 2. Charge
        await self._post_charge(job, run, credits_used)

        # 3. Job terminal
        job.status = JobStatus.COMPLETED
        job.credits_used = credits_used
        job.output_artifact_id = artifact.artifact_id
        job.provider_metadata = sanitize_params(spec.provider_metadata) or None
        job.error_message = None
        job.completed_at = utcnow()
        job = await self._write("mark job completed", job, self.store.update_job(job))

        logger.info(
            "[Tracker] %s %s completed, charged %d units",
            job.node_type.value, job.node_id, credits_used,
        )
        return TrackedResult(job=job, artifact=artifact)

    async def _post_charge(self, job: Job, run: Run, credits_used: int):
        try:
            await self.ledger.deduct(
                user_id=run.user_id,
                units=credits_used,
                idempotency_key=job.idempotency_key,
                reason=f"{job.node_type.value}:{run.run_id}",
            )
            return
        except DuplicateTransaction:
            pass
        except Exception as e:
            raise TrackingWriteFailure(
                f"Failed to post charge for job {job.job_id}: {e}"
            ) from e

        # A retry of the same completion: only an identical row is acceptable
        existing = await self._write(
            "read existing charge", job, self.ledger.get_transaction(job.idempotency_key)
        )
        if (
            existing is None
            or existing.user_id != run.user_id
            or existing.trans_type != TransType.DEDUCT
            or existing.amount != -abs(credits_used)
        ):
            raise TrackingWriteFailure(
                f"Conflicting ledger row for {job.idempotency_key}: {existing}"
            )
        logger.warning("[Tracker] Charge for job %s was already posted", job.job_id)

    async def fail_job(self, job: Job, error_message: str) -> Job:
        """Record a failed unit of work: no artifact, no charge"""
        self._check_transition(job, JobStatus.FAILED)
        job.status = JobStatus.FAILED
        job.credits_used = 0
        job.error_message = error_message
        job.completed_at = utcnow()
        job = await self._write("mark job failed", job, self.store.update_job(job))
        logger.info("[Tracker] %s %s failed: %s", job.node_type.value, job.node_id, error_message)
        return job

    async def track(
        self,
        run: Run,
        node_id: str,
        node_type: NodeType,
        adapter: str,
        input_params: Dict[str, Any],
        call: Callable[[], Awaitable[ArtifactSpec]],
        credits_used: int,
    ) -> TrackedResult:
        """
        Wrap one adapter call in the full protocol.

        Raises:
            AdapterFailure: the call failed; the job is recorded as failed
            TrackingWriteFailure: bookkeeping could not be written
        """
        job = await self.begin_job(run, node_id, node_type, adapter, input_params)
        job = await self.mark_running(job)

        try:
            spec = await call()
        except asyncio.CancelledError:
            await asyncio.shield(self.fail_job(job, "Cancelled before completion"))
            raise
        except Exception as e:
            await self.fail_job(job, str(e) or type(e).__name__)
            if isinstance(e, WorkflowError):
                raise
            raise AdapterFailure(adapter, node_id, str(e)) from e

        # Work that succeeded is always recorded, even if the caller is cancelled
        return await asyncio.shield(self.complete_job(job, run, spec, credits_used))
