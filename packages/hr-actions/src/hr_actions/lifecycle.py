"""Guarded lifecycle transitions for actions.

Each transition checks the action's current state before touching it and returns
an updated copy, so a rejected transition leaves the caller's action exactly as it
was. Nothing here performs I/O; persistence belongs to the service.

    Pending ──start──▶ In Progress ──complete──▶ Completed
       │                   │  └──────fail──────▶ Failed
       └───────cancel──────┴─────────────────────▶ Cancelled

``complete``, ``fail`` and ``cancel`` are accepted from any non-terminal state.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .exceptions import InvalidTransitionError, ValidationError
from .models import (
    Action,
    ActionResult,
    ActionStatus,
    ExecutionLog,
    LogLevel,
)
from .recurrence import next_run_at

START_PROGRESS = 10


def _require(action: Action, operation: str, allowed: tuple[ActionStatus, ...]) -> None:
    if action.status not in allowed:
        raise InvalidTransitionError(action.id, operation, action.status.value)


def _require_open(action: Action, operation: str) -> None:
    if action.status.is_terminal:
        raise InvalidTransitionError(
            action.id, operation, action.status.value, "action already finished"
        )


def _log(
    action: Action,
    now: datetime,
    level: LogLevel,
    message: str,
    details: Any = None,
) -> None:
    action.execution_logs.append(
        ExecutionLog(timestamp=now, level=level, message=message, details=details)
    )
    action.updated_at = now


def start(action: Action, now: datetime) -> Action:
    _require(action, "start", (ActionStatus.PENDING,))
    updated = action.model_copy(deep=True)
    updated.status = ActionStatus.IN_PROGRESS
    updated.started_at = now
    updated.progress = START_PROGRESS
    _log(updated, now, LogLevel.INFO, "Action started", {"started_at": now.isoformat()})
    return updated


def complete(action: Action, now: datetime, result: ActionResult | None = None) -> Action:
    """Mark the action completed and, if it recurs, schedule its next run."""
    _require_open(action, "complete")
    result = result or ActionResult(success=True)
    updated = action.model_copy(deep=True)
    updated.status = ActionStatus.COMPLETED
    updated.completed_at = now
    updated.progress = 100
    updated.result = result
    _log(
        updated,
        now,
        LogLevel.INFO,
        "Action completed",
        {"completed_at": now.isoformat(), "result": result.model_dump(mode="json")},
    )
    if updated.is_recurring and updated.recurring_pattern is not None:
        updated.next_run_at = next_run_at(updated.recurring_pattern, now)
    return updated


def fail(action: Action, now: datetime, error: str | BaseException | None = None) -> Action:
    _require_open(action, "fail")
    message = str(error) if error else "Action failed"
    updated = action.model_copy(deep=True)
    updated.status = ActionStatus.FAILED
    updated.result = ActionResult(success=False, message=message)
    _log(updated, now, LogLevel.ERROR, "Action failed", {"error": message})
    return updated


def cancel(action: Action, now: datetime, reason: str | None = None) -> Action:
    _require_open(action, "cancel")
    message = reason or "Action cancelled"
    updated = action.model_copy(deep=True)
    updated.status = ActionStatus.CANCELLED
    updated.result = ActionResult(success=False, message=message)
    _log(updated, now, LogLevel.WARNING, "Action cancelled", {"reason": message})
    return updated


def add_log(
    action: Action,
    now: datetime,
    level: LogLevel,
    message: str,
    details: Any = None,
) -> Action:
    """Append an execution log entry. Allowed in every state."""
    if not isinstance(message, str) or not message:
        raise ValidationError("message: must be a non-empty string")
    updated = action.model_copy(deep=True)
    _log(updated, now, level, message, details)
    return updated


def update_progress(action: Action, now: datetime, progress: int) -> Action:
    _require(action, "update progress of", (ActionStatus.IN_PROGRESS,))
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise ValidationError("progress: must be an integer")
    if not 0 <= progress <= 100:
        raise ValidationError("progress: must be between 0 and 100")
    if progress < action.progress:
        raise ValidationError(
            f"progress: cannot go backwards from {action.progress} to {progress}"
        )
    updated = action.model_copy(deep=True)
    updated.progress = progress
    _log(updated, now, LogLevel.DEBUG, "Progress updated", {"progress": progress})
    return updated


def approve(
    action: Action,
    now: datetime,
    approver: str,
    comments: str | None = None,
) -> Action:
    """Record approval. Does not change the action's status."""
    if not action.requires_approval:
        raise InvalidTransitionError(
            action.id, "approve", action.status.value, "action does not require approval"
        )
    if action.approved_by is not None:
        raise InvalidTransitionError(
            action.id, "approve", action.status.value, f"already approved by {action.approved_by}"
        )
    if not approver:
        raise ValidationError("approved_by: must not be empty")
    updated = action.model_copy(deep=True)
    updated.approved_by = approver
    updated.approved_at = now
    updated.approval_comments = comments
    _log(updated, now, LogLevel.INFO, "Action approved", {"approved_by": approver})
    return updated
