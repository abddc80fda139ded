"""
Persistent records: runs, jobs, artifacts and credit transactions.

All cross references are opaque ids. Credit amounts are integer micro-units
(see core.pricing).
"""

import uuid
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CACHED = "cached"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CACHED)


RUN_TRANSITIONS = {
    RunStatus.PENDING: {RunStatus.RUNNING, RunStatus.FAILED},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}

JOB_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CACHED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.CACHED: set(),
}


class NodeType(Enum):
    """Which stage a job belongs to"""
    T2I = "T2I"
    I2V = "I2V"
    TTS = "TTS"
    MERGE = "MERGE"


class ArtifactType(Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class TransType(Enum):
    CHARGE = "charge"    # purchased credits
    DEDUCT = "deduct"    # usage
    REFUND = "refund"
    GRANT = "grant"      # free credits
    BONUS = "bonus"      # referral bonus
    EXPIRE = "expire"


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class _Record:
    """to_dict/from_dict for the record dataclasses"""

    _enums: Dict[str, type] = {}
    _datetimes: tuple = ()

    def to_dict(self) -> Dict[str, Any]:
        return {k: _encode(v) for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        for name, enum_cls in cls._enums.items():
            if kwargs.get(name) is not None:
                kwargs[name] = enum_cls(kwargs[name])
        for name in cls._datetimes:
            kwargs[name] = _parse_datetime(kwargs.get(name))
        return cls(**kwargs)


@dataclass
class Run(_Record):
    """One orchestration attempt for a workflow plan"""
    user_id: str
    plan_snapshot: Dict[str, Any]
    run_id: str = field(default_factory=new_id)
    status: RunStatus = RunStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_credits_deducted: int = 0
    # Part of the schema; no code path refunds (failed runs keep their charges)
    total_credits_refunded: int = 0
    error_message: Optional[str] = None

    _enums = {"status": RunStatus}
    _datetimes = ("created_at", "started_at", "completed_at")


@dataclass
class Job(_Record):
    """One unit of work (one adapter call) inside a run"""
    run_id: str
    node_id: str
    node_type: NodeType
    adapter: str
    input_params: Dict[str, Any] = field(default_factory=dict)
    job_id: str = field(default_factory=new_id)
    status: JobStatus = JobStatus.PENDING
    credits_used: int = 0
    cache_hit: bool = False
    output_artifact_id: Optional[str] = None
    provider_metadata: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    _enums = {"node_type": NodeType, "status": JobStatus}
    _datetimes = ("created_at", "started_at", "completed_at")

    @property
    def idempotency_key(self) -> str:
        """Ledger key for this job's charge; retries of completion reuse it"""
        return f"job:{self.job_id}"


@dataclass
class Artifact(_Record):
    """A produced media file; exists only for completed jobs"""
    user_id: str
    run_id: str
    job_id: str
    artifact_type: ArtifactType
    url: str
    artifact_id: str = field(default_factory=new_id)
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)
    expires_at: Optional[datetime] = None

    _enums = {"artifact_type": ArtifactType}
    _datetimes = ("created_at", "expires_at")


@dataclass(frozen=True)
class CreditTransaction(_Record):
    """
    Append-only ledger row.

    `trans_no` is the idempotency key and is unique across the ledger.
    `amount` is signed: deductions negative, grants and charges positive.
    """
    trans_no: str
    user_id: str
    trans_type: TransType
    amount: int
    order_no: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    expired_at: Optional[datetime] = None

    _enums = {"trans_type": TransType}
    _datetimes = ("created_at", "expired_at")
