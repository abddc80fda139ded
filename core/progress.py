"""
Run progress reports for poll-based clients

Builds a plain-dict view of a run from the store: status, jobs, artifacts
and credits (shown in credits, not micro-units).
"""

from typing import Any, Dict, Optional

from core.errors import RecordNotFound
from core.models.records import JobStatus, NodeType
from core.pricing import units_to_credits
from core.store.base import WorkflowStore


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def expected_job_count(plan_snapshot: Dict[str, Any]) -> int:
    """Image + video per scene, one voiceover if planned, one merge"""
    scenes = plan_snapshot.get("scenes") or []
    return 2 * len(scenes) + (1 if plan_snapshot.get("voiceover") else 0) + 1


async def build_run_report(store: WorkflowStore, run_id: str) -> Dict[str, Any]:
    """
    Raises:
        RecordNotFound: no such run
    """
    run = await store.get_run(run_id)
    if run is None:
        raise RecordNotFound("runs", run_id)

    jobs = await store.list_jobs(run_id)
    artifacts = await store.list_artifacts(run_id=run_id)
    by_id = {a.artifact_id: a for a in artifacts}

    final_video_url = None
    for job in jobs:
        if job.node_type == NodeType.MERGE and job.status == JobStatus.COMPLETED:
            final = by_id.get(job.output_artifact_id)
            final_video_url = final.url if final else None

    completed = sum(1 for j in jobs if j.status == JobStatus.COMPLETED)
    # Settled on the run at the terminal transition; live sum while running
    used = run.total_credits_deducted if run.status.is_terminal else sum(
        j.credits_used for j in jobs if j.status == JobStatus.COMPLETED
    )

    return {
        "run_id": run.run_id,
        "user_id": run.user_id,
        "status": run.status.value,
        "created_at": _iso(run.created_at),
        "started_at": _iso(run.started_at),
        "completed_at": _iso(run.completed_at),
        "error_message": run.error_message,
        "credits_used": units_to_credits(used),
        "credits_refunded": units_to_credits(run.total_credits_refunded),
        "progress": {
            "completed": completed,
            "total": expected_job_count(run.plan_snapshot),
        },
        "final_video_url": final_video_url,
        "jobs": [
            {
                "job_id": j.job_id,
                "node_id": j.node_id,
                "node_type": j.node_type.value,
                "adapter": j.adapter,
                "status": j.status.value,
                "credits_used": units_to_credits(j.credits_used),
                "output_artifact_id": j.output_artifact_id,
                "error_message": j.error_message,
            }
            for j in jobs
        ],
        "artifacts": [
            {
                "artifact_id": a.artifact_id,
                "job_id": a.job_id,
                "artifact_type": a.artifact_type.value,
                "url": a.url,
                "duration": a.duration,
            }
            for a in artifacts
        ],
    }
