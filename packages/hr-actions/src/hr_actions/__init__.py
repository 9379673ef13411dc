"""HR Actions: lifecycle, recurrence and persistence for scheduled HR work."""

from .exceptions import (
    ActionError,
    ActionNotFoundError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .filters import ActionFilter
from .models import (
    Action,
    ActionCategory,
    ActionCreate,
    ActionDependency,
    ActionPriority,
    ActionResult,
    ActionStatus,
    ActionType,
    DependencyKind,
    ExecutionLog,
    LogLevel,
    RecurringPattern,
)
from .notifications import (
    ACTION_APPROVED,
    ACTION_CANCELLED,
    ACTION_COMPLETED,
    ACTION_CREATED,
    ACTION_FAILED,
    ACTION_STARTED,
    ALL_EVENTS,
    EventBus,
)
from .recurrence import next_run_at
from .service import ActionService
from .store import ActionStore, SqliteActionStore

__all__ = [
    "ActionService",
    "ActionStore",
    "SqliteActionStore",
    "ActionFilter",
    "Action",
    "ActionCategory",
    "ActionCreate",
    "ActionDependency",
    "ActionPriority",
    "ActionResult",
    "ActionStatus",
    "ActionType",
    "DependencyKind",
    "ExecutionLog",
    "LogLevel",
    "RecurringPattern",
    "EventBus",
    "next_run_at",
    "ActionError",
    "ActionNotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "ACTION_APPROVED",
    "ACTION_CANCELLED",
    "ACTION_COMPLETED",
    "ACTION_CREATED",
    "ACTION_FAILED",
    "ACTION_STARTED",
    "ALL_EVENTS",
]
