"""Run status lifecycle shared by detection and imputation results."""

from datetime import datetime

from fluxqc.services.errors import InvalidStatusTransition

PENDING = "PENDING"
RUNNING = "RUNNING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"

# Forward-only. Detection rows are created directly in RUNNING.
_ALLOWED = {
    PENDING: {RUNNING, FAILED},
    RUNNING: {COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
}


def advance_status(record, new_status: str, error_message: str | None = None) -> None:
    """Move a result row forward; raises on any backwards or terminal move."""
    current = record.status or PENDING
    if new_status not in _ALLOWED.get(current, set()):
        raise InvalidStatusTransition(
            f"Result {record.id}: cannot move from {current} to {new_status}"
        )
    record.status = new_status
    if error_message is not None:
        record.error_message = error_message[:2000]
    record.updated_at = datetime.utcnow()
