"""Error taxonomy for workflow orchestration and credit accounting"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all orchestration errors"""
    pass


class InsufficientCredits(WorkflowError):
    """Raised before a run is created when the balance cannot cover the estimate."""

    def __init__(self, required_units: int, available_units: int):
        from core.pricing import units_to_credits

        self.required_units = required_units
        self.available_units = available_units
        super().__init__(
            f"Insufficient credits. Required: {units_to_credits(required_units):g}, "
            f"Available: {units_to_credits(available_units):g}"
        )


class AdapterFailure(WorkflowError):
    """A generation adapter call failed (treated opaquely as a stage failure)."""

    def __init__(self, adapter: str, node_id: str, message: str):
        self.adapter = adapter
        self.node_id = node_id
        super().__init__(f"{adapter} failed for {node_id}: {message}")


class TrackingWriteFailure(WorkflowError):
    """A bookkeeping write failed; work must not continue untracked."""
    pass


class UnknownModel(WorkflowError):
    """Pricing lookup for an unrecognized model identifier."""

    def __init__(self, model: str, kind: str):
        self.model = model
        self.kind = kind
        super().__init__(f"Unknown {kind} model: {model}")


class DuplicateTransaction(WorkflowError):
    """A credit transaction with the same idempotency key already exists."""

    def __init__(self, trans_no: str):
        self.trans_no = trans_no
        super().__init__(f"Duplicate credit transaction: {trans_no}")


class InvalidTransition(WorkflowError):
    """A run or job status change that the state machine does not allow."""
    pass


# ---- Render ---------------------------------------------------------------

class RenderError(WorkflowError):
    """Base class for merge/render failures"""
    pass


class RenderSubmissionError(RenderError):
    """The render vendor rejected the submission."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RenderTimeout(RenderError):
    """The render did not reach a terminal state within the poll ceiling."""

    def __init__(self, render_id: str, attempts: int, interval: float):
        self.render_id = render_id
        self.attempts = attempts
        super().__init__(
            f"Render {render_id} timed out after {attempts * interval:g}s "
            f"({attempts} polls)"
        )


class MissingRenderUrl(RenderError):
    """The vendor reported `done` without a URL."""

    def __init__(self, render_id: str):
        self.render_id = render_id
        super().__init__(f"Render {render_id} completed but no URL provided")


class RenderVendorFailure(RenderError):
    """The vendor reported `failed` or answered a status check with an error."""
    pass


# ---- Storage --------------------------------------------------------------

class StoreError(WorkflowError):
    """A persistence operation failed."""
    pass


class DuplicateKeyError(StoreError):
    """Unique index violation in the store."""

    def __init__(self, table: str, key: str):
        self.table = table
        self.key = key
        super().__init__(f"Duplicate key in {table}: {key}")


class RecordNotFound(StoreError):
    """Lookup by id found nothing."""

    def __init__(self, table: str, key: str):
        self.table = table
        self.key = key
        super().__init__(f"{table} not found: {key}")
