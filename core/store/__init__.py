"""Storage backends for runs, jobs, artifacts and the credit ledger"""

from .base import WorkflowStore
from .memory import InMemoryStore
from .local import LocalJsonStore

__all__ = [
    "WorkflowStore",
    "InMemoryStore",
    "LocalJsonStore",
]
