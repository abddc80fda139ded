"""Core components - pricing, ledger, tracking and orchestration"""

from .errors import (
    WorkflowError,
    InsufficientCredits,
    AdapterFailure,
    TrackingWriteFailure,
    RenderError,
)
from .pricing import (
    CREDIT_SCALE,
    CostBreakdown,
    credits_to_units,
    units_to_credits,
    estimate_plan_cost,
)

# Note: WorkflowOrchestrator is NOT imported here to avoid circular imports
# Import it directly: from core.orchestrator import WorkflowOrchestrator

__all__ = [
    # Errors
    "WorkflowError",
    "InsufficientCredits",
    "AdapterFailure",
    "TrackingWriteFailure",
    "RenderError",

    # Pricing
    "CREDIT_SCALE",
    "CostBreakdown",
    "credits_to_units",
    "units_to_credits",
    "estimate_plan_cost",
]
