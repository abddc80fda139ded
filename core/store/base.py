"""
Abstract base class for workflow storage backends.

Holds the four tables the orchestrator writes: runs, jobs, artifacts and the
credit ledger. Records cross the boundary by value; mutating a returned
object never changes what is stored until it is written back.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.models.records import Artifact, CreditTransaction, Job, Run


class WorkflowStore(ABC):
    """
    Storage interface for runs, jobs, artifacts and credit transactions.

    Implementations:
    - InMemoryStore: process-local, used by tests and embedding callers
    - LocalJsonStore: JSON files on disk, used by the CLI across invocations
    """

    # ---- runs ----

    @abstractmethod
    async def create_run(self, run: Run) -> Run:
        """Insert a new run. Raises DuplicateKeyError if the id exists."""
        pass

    @abstractmethod
    async def update_run(self, run: Run) -> Run:
        """Replace a stored run. Raises RecordNotFound if missing."""
        pass

    @abstractmethod
    async def get_run(self, run_id: str) -> Optional[Run]:
        pass

    @abstractmethod
    async def list_runs(self, user_id: Optional[str] = None, limit: int = 50) -> List[Run]:
        """Most recent first"""
        pass

    # ---- jobs ----

    @abstractmethod
    async def create_job(self, job: Job) -> Job:
        pass

    @abstractmethod
    async def update_job(self, job: Job) -> Job:
        pass

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        pass

    @abstractmethod
    async def list_jobs(self, run_id: str) -> List[Job]:
        """Jobs of a run in creation order"""
        pass

    # ---- artifacts ----

    @abstractmethod
    async def create_artifact(self, artifact: Artifact) -> Artifact:
        pass

    @abstractmethod
    async def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        pass

    @abstractmethod
    async def list_artifacts(
        self,
        run_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> List[Artifact]:
        pass

    # ---- credit ledger ----

    @abstractmethod
    async def insert_transaction(self, transaction: CreditTransaction) -> CreditTransaction:
        """
        Append a ledger row.

        `trans_no` carries a unique index: a second insert with the same key
        raises DuplicateKeyError and leaves the ledger unchanged.
        """
        pass

    @abstractmethod
    async def get_transaction(self, trans_no: str) -> Optional[CreditTransaction]:
        pass

    @abstractmethod
    async def list_transactions(self, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        """Most recent first"""
        pass

    @abstractmethod
    async def sum_transactions(self, user_id: str) -> int:
        """Signed sum of all of a user's transaction amounts (micro-units)"""
        pass
