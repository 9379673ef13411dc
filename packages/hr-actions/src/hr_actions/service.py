"""Action service: the main entry point.

Loads an action from the injected store, applies one lifecycle transition and
writes it back conditionally on the version it loaded. A lost race is retried
against fresh state a bounded number of times.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

import pydantic
import structlog

from . import lifecycle
from .exceptions import ConflictError, ValidationError
from .filters import ActionFilter
from .models import (
    Action,
    ActionCreate,
    ActionResult,
    ActionStatus,
    LogLevel,
    as_utc,
    utc_now,
)
from .notifications import (
    ACTION_APPROVED,
    ACTION_CANCELLED,
    ACTION_COMPLETED,
    ACTION_CREATED,
    ACTION_FAILED,
    ACTION_STARTED,
    EventBus,
)
from .store import ActionStore

logger = structlog.get_logger()

Clock = Callable[[], datetime]
Transition = Callable[[Action, datetime], Action]

DEFAULT_CONFLICT_RETRIES = 3


def _validate(model: type[pydantic.BaseModel], data: Any) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc


def _enum(enum_cls: Any, value: Any, field: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field}: {value!r} is not one of {allowed}") from None


class ActionService:
    """Create, query and transition actions.

    The store is injected; the clock is injectable so callers (and tests) control
    what "now" means for scheduling and overdue checks.
    """

    def __init__(
        self,
        store: ActionStore,
        *,
        events: EventBus | None = None,
        clock: Clock = utc_now,
        max_conflict_retries: int = DEFAULT_CONFLICT_RETRIES,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_conflict_retries = max(0, max_conflict_retries)
        self.events = events or EventBus()

    def close(self) -> None:
        """Close the backing store."""
        self._store.close()

    def now(self) -> datetime:
        return as_utc(self._clock())  # type: ignore[return-value]

    # ── Creation & Queries ──

    def create(self, payload: ActionCreate | dict[str, Any], created_by: str) -> Action:
        """Create a Pending action owned by ``created_by``."""
        if not created_by:
            raise ValidationError("created_by: must not be empty")
        data = _validate(ActionCreate, payload)
        now = self.now()
        action = Action(
            **data.model_dump(),
            created_by=created_by,
            assigned_by=created_by if data.assigned_to else None,
            created_at=now,
            updated_at=now,
        )
        saved = self._store.save(action)
        logger.info(
            "action_created",
            action_id=saved.id,
            type=saved.type.value,
            category=saved.category.value,
            created_by=created_by,
        )
        self.events.emit(ACTION_CREATED, action=saved)
        return saved

    def get(self, action_id: str) -> Action:
        return self._store.load(action_id)

    def list_actions(self, action_filter: ActionFilter | None = None) -> list[Action]:
        return self._store.query(action_filter or ActionFilter(), self.now())

    def list_by_status(self, status: ActionStatus | str) -> list[Action]:
        return self._store.query_by_status(_enum(ActionStatus, status, "status"))

    def list_overdue(self) -> list[Action]:
        return self._store.query_overdue(self.now())

    def list_assigned_to(
        self, user_id: str, status: ActionStatus | str | None = None
    ) -> list[Action]:
        if status is not None:
            status = _enum(ActionStatus, status, "status")
        return self._store.query_assigned_to(user_id, status)

    def list_due_recurring(self) -> list[Action]:
        """Recurring actions an external scheduler should materialise now."""
        return self._store.query_due_recurring(self.now())

    # ── Lifecycle ──

    def start(self, action_id: str) -> Action:
        action = self._transition(action_id, "start", lifecycle.start)
        self.events.emit(ACTION_STARTED, action=action)
        return action

    def complete(
        self, action_id: str, result: ActionResult | dict[str, Any] | None = None
    ) -> Action:
        outcome = _validate(ActionResult, result) if result is not None else None
        action = self._transition(
            action_id, "complete", lambda a, now: lifecycle.complete(a, now, outcome)
        )
        if action.next_run_at is not None and action.is_recurring:
            logger.info(
                "action_rescheduled",
                action_id=action.id,
                pattern=action.recurring_pattern.value if action.recurring_pattern else None,
                next_run_at=action.next_run_at.isoformat(),
            )
        recipients = action.notification_recipients if action.notify_on_completion else []
        self.events.emit(ACTION_COMPLETED, action=action, recipients=recipients)
        return action

    def fail(self, action_id: str, error: str | BaseException | None = None) -> Action:
        action = self._transition(
            action_id, "fail", lambda a, now: lifecycle.fail(a, now, error)
        )
        assert action.result is not None
        self.events.emit(ACTION_FAILED, action=action, error=action.result.message)
        return action

    def cancel(self, action_id: str, reason: str | None = None) -> Action:
        action = self._transition(
            action_id, "cancel", lambda a, now: lifecycle.cancel(a, now, reason)
        )
        self.events.emit(ACTION_CANCELLED, action=action)
        return action

    def add_log(
        self,
        action_id: str,
        level: LogLevel | str,
        message: str,
        details: Any = None,
    ) -> Action:
        log_level = _enum(LogLevel, level, "level")
        return self._transition(
            action_id,
            "add_log",
            lambda a, now: lifecycle.add_log(a, now, log_level, message, details),
        )

    def update_progress(self, action_id: str, progress: int) -> Action:
        return self._transition(
            action_id,
            "update_progress",
            lambda a, now: lifecycle.update_progress(a, now, progress),
        )

    def approve(self, action_id: str, approver: str, comments: str | None = None) -> Action:
        action = self._transition(
            action_id,
            "approve",
            lambda a, now: lifecycle.approve(a, now, approver, comments),
        )
        self.events.emit(ACTION_APPROVED, action=action, approver=approver)
        return action

    def _transition(self, action_id: str, operation: str, apply: Transition) -> Action:
        """Load, apply and conditionally save, retrying lost races with fresh state."""
        conflict: ConflictError | None = None
        for attempt in range(self._max_conflict_retries + 1):
            current = self._store.load(action_id)
            updated = apply(current, self.now())
            try:
                saved = self._store.save(updated)
            except ConflictError as exc:
                conflict = exc
                logger.warning(
                    "action_write_conflict",
                    action_id=action_id,
                    operation=operation,
                    attempt=attempt + 1,
                )
                continue
            logger.info(
                "action_transitioned",
                operation=operation,
                action_id=action_id,
                status=saved.status.value,
                progress=saved.progress,
                version=saved.version,
            )
            return saved

        assert conflict is not None
        logger.error(
            "action_write_conflict_exhausted",
            action_id=action_id,
            operation=operation,
            retries=self._max_conflict_retries,
        )
        raise conflict
