"""Unit tests for the storage backends"""

import json
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest
from filelock import FileLock

from core.errors import DuplicateKeyError, RecordNotFound, StoreError
from core.models.records import (
    Artifact,
    ArtifactType,
    CreditTransaction,
    Job,
    JobStatus,
    NodeType,
    Run,
    RunStatus,
    TransType,
)
from core.store import InMemoryStore, LocalJsonStore


def _run(user_id="alice"):
    return Run(user_id=user_id, plan_snapshot={"scenes": [{"id": "s1"}], "estimatedCredits": 5})


# ============================================================
# Shared behaviour
# ============================================================

@pytest.fixture(params=["memory", "local"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return LocalJsonStore(base_path=str(tmp_path / "store"))


@pytest.mark.asyncio
async def test_run_round_trip(any_store):
    run = await any_store.create_run(_run())

    loaded = await any_store.get_run(run.run_id)

    assert loaded.run_id == run.run_id
    assert loaded.status == RunStatus.PENDING
    assert loaded.plan_snapshot == {"scenes": [{"id": "s1"}], "estimatedCredits": 5}
    assert loaded.created_at == run.created_at


@pytest.mark.asyncio
async def test_reads_are_by_value(any_store):
    run = await any_store.create_run(_run())

    run.status = RunStatus.RUNNING  # not saved

    assert (await any_store.get_run(run.run_id)).status == RunStatus.PENDING


@pytest.mark.asyncio
async def test_duplicate_primary_key_rejected(any_store):
    run = await any_store.create_run(_run())

    with pytest.raises(DuplicateKeyError):
        await any_store.create_run(run)


@pytest.mark.asyncio
async def test_update_missing_row_raises(any_store):
    with pytest.raises(RecordNotFound):
        await any_store.update_run(_run())


@pytest.mark.asyncio
async def test_jobs_and_artifacts_filtered_by_run(any_store):
    run_a = await any_store.create_run(_run())
    run_b = await any_store.create_run(_run())
    job_a = await any_store.create_job(Job(run_id=run_a.run_id, node_id="s1", node_type=NodeType.T2I, adapter="x"))
    await any_store.create_job(Job(run_id=run_b.run_id, node_id="s1", node_type=NodeType.T2I, adapter="x"))
    await any_store.create_artifact(Artifact(
        user_id="alice", run_id=run_a.run_id, job_id=job_a.job_id,
        artifact_type=ArtifactType.IMAGE, url="https://img.test/a.png",
    ))

    jobs = await any_store.list_jobs(run_a.run_id)
    artifacts = await any_store.list_artifacts(run_id=run_a.run_id)

    assert [j.job_id for j in jobs] == [job_a.job_id]
    assert jobs[0].status == JobStatus.PENDING
    assert [a.job_id for a in artifacts] == [job_a.job_id]
    assert await any_store.list_artifacts(job_id="nope") == []


@pytest.mark.asyncio
async def test_list_runs_newest_first(any_store):
    first = await any_store.create_run(_run())
    second = await any_store.create_run(_run())
    await any_store.create_run(_run(user_id="bob"))

    runs = await any_store.list_runs(user_id="alice")

    assert [r.run_id for r in runs] == [second.run_id, first.run_id]


@pytest.mark.asyncio
async def test_transaction_number_unique(any_store):
    row = CreditTransaction(trans_no="job:1", user_id="alice", trans_type=TransType.DEDUCT, amount=-5)
    await any_store.insert_transaction(row)

    with pytest.raises(DuplicateKeyError):
        await any_store.insert_transaction(row)
    assert await any_store.sum_transactions("alice") == -5


# ============================================================
# Local JSON specifics
# ============================================================

@pytest.mark.asyncio
async def test_local_store_visible_to_second_instance(tmp_path):
    path = str(tmp_path / "store")
    writer = LocalJsonStore(base_path=path)
    run = await writer.create_run(_run())

    reader = LocalJsonStore(base_path=path)

    assert (await reader.get_run(run.run_id)).user_id == "alice"


@pytest.mark.asyncio
async def test_local_store_file_format(tmp_path):
    store = LocalJsonStore(base_path=str(tmp_path))
    run = await store.create_run(_run())

    data = json.loads((tmp_path / "runs.json").read_text())

    assert data["table"] == "runs"
    assert data["row_count"] == 1
    assert data["rows"][0][0] == run.run_id
    assert data["rows"][0][1]["status"] == "pending"
    assert list(tmp_path.glob("*.tmp")) == []


@pytest.mark.asyncio
async def test_local_store_corrupt_file(tmp_path):
    (tmp_path / "runs.json").write_text("{not json")
    store = LocalJsonStore(base_path=str(tmp_path))

    with pytest.raises(StoreError):
        await store.get_run("anything")


# ============================================================
# Cross-process writes
# ============================================================

REPO_ROOT = Path(__file__).resolve().parents[2]

GRANT_WRITER = textwrap.dedent("""
    import asyncio
    import sys

    from core.ledger import CreditLedger
    from core.store import LocalJsonStore

    async def main(path, tag, count):
        ledger = CreditLedger(LocalJsonStore(base_path=path))
        for i in range(count):
            await ledger.grant("alice", 10, "parallel grant", idempotency_key=f"{tag}-{i}")

    asyncio.run(main(sys.argv[1], sys.argv[2], int(sys.argv[3])))
""")


@pytest.mark.slow
@pytest.mark.asyncio
async def test_local_store_two_processes_keep_every_row(tmp_path):
    count = 60
    writers = [
        subprocess.Popen(
            [sys.executable, "-c", GRANT_WRITER, str(tmp_path), tag, str(count)],
            cwd=str(REPO_ROOT),
            stderr=subprocess.PIPE,
        )
        for tag in ("first", "second")
    ]
    for proc in writers:
        _, stderr = proc.communicate(timeout=120)
        assert proc.returncode == 0, stderr.decode()

    store = LocalJsonStore(base_path=str(tmp_path))
    rows = await store.list_transactions("alice", limit=1000)

    assert len(rows) == 2 * count
    assert await store.sum_transactions("alice") == 2 * count * 10


@pytest.mark.asyncio
async def test_local_store_write_waits_for_lock_file(tmp_path):
    store = LocalJsonStore(base_path=str(tmp_path), lock_timeout=0.05)
    held = FileLock(str(tmp_path / "runs.json.lock"))

    with held:
        with pytest.raises(StoreError, match="waiting for"):
            await store.create_run(_run())

    run = await store.create_run(_run())
    assert await store.get_run(run.run_id) is not None
