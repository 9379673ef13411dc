"""Data models for HR actions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a timestamp to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ActionType(Enum):
    LOCK_SALARY = "Lock Salary"
    GENERATE_REPORT = "Generate Report"
    PROCESS_PAYROLL = "Process Payroll"
    SEND_REMINDER = "Send Reminder"
    APPROVE_LEAVE = "Approve Leave"
    REVIEW_EMPLOYEE = "Review Employee"
    UPDATE_POLICY = "Update Policy"
    BACKUP_DATA = "Backup Data"
    SEND_NOTIFICATION = "Send Notification"
    OTHER = "Other"


class ActionCategory(Enum):
    PAYROLL = "payroll"
    REPORTS = "reports"
    EMPLOYEE_MANAGEMENT = "employee-management"
    COMPLIANCE = "compliance"
    NOTIFICATIONS = "notifications"
    MAINTENANCE = "maintenance"
    SECURITY = "security"
    OTHER = "other"


class ActionStatus(Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ActionStatus.COMPLETED, ActionStatus.FAILED, ActionStatus.CANCELLED)


class ActionPriority(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RecurringPattern(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class LogLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"


class DependencyKind(Enum):
    BLOCKS = "blocks"
    TRIGGERS = "triggers"
    REQUIRES = "requires"


class ExecutionLog(BaseModel):
    """One entry of an action's audit trail. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = LogLevel.INFO
    message: str
    details: Any = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)  # type: ignore[return-value]


class ActionResult(BaseModel):
    """Outcome payload recorded when an action reaches a terminal state."""

    success: bool = True
    message: str = ""
    data: Any = None


class ActionDependency(BaseModel):
    """An advisory link to another action."""

    action_id: str
    kind: DependencyKind


class ActionCreate(BaseModel):
    """Fields a caller may supply when creating an action."""

    model_config = ConfigDict(extra="forbid")

    type: ActionType
    target: str = Field(min_length=1)
    description: str = Field(min_length=1, max_length=500)
    category: ActionCategory
    priority: ActionPriority = ActionPriority.MEDIUM
    scheduled_for: datetime | None = None
    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None
    assigned_to: str | None = None
    dependencies: list[ActionDependency] = Field(default_factory=list)
    notify_on_completion: bool = False
    notification_recipients: list[str] = Field(default_factory=list)
    requires_approval: bool = False

    @field_validator("target", "description", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("scheduled_for")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class Action(BaseModel):
    """A unit of schedulable administrative work."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: ActionType
    target: str = Field(min_length=1)
    description: str = Field(min_length=1, max_length=500)
    category: ActionCategory
    status: ActionStatus = ActionStatus.PENDING
    priority: ActionPriority = ActionPriority.MEDIUM
    progress: int = Field(default=0, ge=0, le=100)

    # Scheduling
    scheduled_for: datetime | None = None
    is_recurring: bool = False
    recurring_pattern: RecurringPattern | None = None
    next_run_at: datetime | None = None

    # Assignment
    assigned_to: str | None = None
    assigned_by: str | None = None
    created_by: str = Field(min_length=1)

    started_at: datetime | None = None
    completed_at: datetime | None = None

    result: ActionResult | None = None
    execution_logs: list[ExecutionLog] = Field(default_factory=list)
    dependencies: list[ActionDependency] = Field(default_factory=list)

    notify_on_completion: bool = False
    notification_recipients: list[str] = Field(default_factory=list)

    # Approval sub-workflow, independent of status
    requires_approval: bool = False
    approved_by: str | None = None
    approved_at: datetime | None = None
    approval_comments: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    version: int = 0

    @field_validator("target", "description", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator(
        "scheduled_for",
        "next_run_at",
        "started_at",
        "completed_at",
        "approved_at",
        "created_at",
        "updated_at",
    )
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.scheduled_for is None:
            return False
        if self.status in (ActionStatus.COMPLETED, ActionStatus.CANCELLED):
            return False
        return self.scheduled_for < (as_utc(now) or utc_now())

    def elapsed_minutes(self, now: datetime | None = None) -> int | None:
        """Minutes since the action started, up to completion if it has completed."""
        if self.started_at is None:
            return None
        end = self.completed_at or as_utc(now) or utc_now()
        return round((end - self.started_at).total_seconds() / 60)
