"""
In-process storage backend.

Rows are kept serialized (plain dicts) so every read returns a fresh object,
the same by-value behaviour a database gives. Each table is guarded by its
own asyncio lock; the ledger's unique check and insert happen under that
lock in one step.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from core.errors import DuplicateKeyError, RecordNotFound
from core.models.records import Artifact, CreditTransaction, Job, Run
from core.store.base import WorkflowStore


# table name -> (record class, primary key attribute)
TABLES = {
    "runs": (Run, "run_id"),
    "jobs": (Job, "job_id"),
    "artifacts": (Artifact, "artifact_id"),
    "credits": (CreditTransaction, "trans_no"),
}


class InMemoryStore(WorkflowStore):
    """Dictionary-backed store; subclasses override the table load/save hooks."""

    def __init__(self):
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in TABLES}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, table: str) -> asyncio.Lock:
        """Get or create a lock for a table"""
        if table not in self._locks:
            self._locks[table] = asyncio.Lock()
        return self._locks[table]

    @asynccontextmanager
    async def _write_guard(self, table: str):
        """Held across load-modify-save of a table"""
        async with self._get_lock(table):
            yield

    # ---- persistence hooks ----

    async def _load_table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables[table]

    async def _save_table(self, table: str, rows: Dict[str, Dict[str, Any]]):
        self._tables[table] = rows

    # ---- generic row operations ----

    async def _insert(self, table: str, record):
        record_cls, key_attr = TABLES[table]
        key = getattr(record, key_attr)
        async with self._write_guard(table):
            rows = await self._load_table(table)
            if key in rows:
                raise DuplicateKeyError(table, key)
            row = record.to_dict()
            rows[key] = row
            await self._save_table(table, rows)
        return record_cls.from_dict(row)

    async def _replace(self, table: str, record):
        record_cls, key_attr = TABLES[table]
        key = getattr(record, key_attr)
        async with self._write_guard(table):
            rows = await self._load_table(table)
            if key not in rows:
                raise RecordNotFound(table, key)
            row = record.to_dict()
            rows[key] = row
            await self._save_table(table, rows)
        return record_cls.from_dict(row)

    async def _get(self, table: str, key: str):
        record_cls, _ = TABLES[table]
        rows = await self._load_table(table)
        row = rows.get(key)
        return record_cls.from_dict(row) if row is not None else None

    async def _select(
        self,
        table: str,
        where: Callable[[Dict[str, Any]], bool],
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List:
        record_cls, _ = TABLES[table]
        rows = await self._load_table(table)
        # dicts keep insertion order, which is creation order
        matched = [row for row in rows.values() if where(row)]
        if newest_first:
            matched.reverse()
        if limit is not None:
            matched = matched[:limit]
        return [record_cls.from_dict(row) for row in matched]

    # ---- runs ----

    async def create_run(self, run: Run) -> Run:
        return await self._insert("runs", run)

    async def update_run(self, run: Run) -> Run:
        return await self._replace("runs", run)

    async def get_run(self, run_id: str) -> Optional[Run]:
        return await self._get("runs", run_id)

    async def list_runs(self, user_id: Optional[str] = None, limit: int = 50) -> List[Run]:
        return await self._select(
            "runs",
            lambda row: user_id is None or row["user_id"] == user_id,
            newest_first=True,
            limit=limit,
        )

    # ---- jobs ----

    async def create_job(self, job: Job) -> Job:
        return await self._insert("jobs", job)

    async def update_job(self, job: Job) -> Job:
        return await self._replace("jobs", job)

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self._get("jobs", job_id)

    async def list_jobs(self, run_id: str) -> List[Job]:
        return await self._select("jobs", lambda row: row["run_id"] == run_id)

    # ---- artifacts ----

    async def create_artifact(self, artifact: Artifact) -> Artifact:
        return await self._insert("artifacts", artifact)

    async def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        return await self._get("artifacts", artifact_id)

    async def list_artifacts(
        self,
        run_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> List[Artifact]:
        return await self._select(
            "artifacts",
            lambda row: (run_id is None or row["run_id"] == run_id)
            and (job_id is None or row["job_id"] == job_id),
        )

    # ---- credit ledger ----

    async def insert_transaction(self, transaction: CreditTransaction) -> CreditTransaction:
        return await self._insert("credits", transaction)

    async def get_transaction(self, trans_no: str) -> Optional[CreditTransaction]:
        return await self._get("credits", trans_no)

    async def list_transactions(self, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        return await self._select(
            "credits",
            lambda row: row["user_id"] == user_id,
            newest_first=True,
            limit=limit,
        )

    async def sum_transactions(self, user_id: str) -> int:
        rows = await self._load_table("credits")
        return sum(row["amount"] for row in rows.values() if row["user_id"] == user_id)
