"""Typed action filters.

A filter is an enumerated set of optional criteria. It compiles to a
parameterised SQL predicate over the store's indexed columns, and offers the
same predicate in memory. Anything outside the known fields is rejected rather
than passed through to the query.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator

from .exceptions import ValidationError
from .models import (
    Action,
    ActionCategory,
    ActionPriority,
    ActionStatus,
    ActionType,
    as_utc,
    utc_now,
)

_CLOSED = (ActionStatus.COMPLETED.value, ActionStatus.CANCELLED.value)


def column_timestamp(value: datetime) -> str:
    """Fixed-width UTC text form, so column comparisons sort chronologically."""
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")  # type: ignore[union-attr]


class ActionFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: ActionStatus | None = None
    type: ActionType | None = None
    category: ActionCategory | None = None
    priority: ActionPriority | None = None
    assigned_to: str | None = None
    created_by: str | None = None
    is_recurring: bool | None = None
    overdue: bool | None = None
    scheduled_before: datetime | None = None
    scheduled_after: datetime | None = None

    @field_validator("scheduled_before", "scheduled_after")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @classmethod
    def from_query_params(cls, params: dict[str, list[str]]) -> "ActionFilter":
        """Build a filter from parsed query-string parameters."""
        values: dict[str, Any] = {}
        for key, items in params.items():
            if len(items) != 1:
                raise ValidationError(f"{key}: expected a single value")
            values[key] = items[0]
        try:
            return cls.model_validate(values)
        except pydantic.ValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

    def to_sql(self, now: datetime | None = None) -> tuple[str, list[Any]]:
        """Return ``(where_clause, params)``. The clause is ``1 = 1`` when empty."""
        clauses: list[str] = []
        params: list[Any] = []

        for column in ("status", "type", "category", "priority"):
            value = getattr(self, column)
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value.value)
        for column in ("assigned_to", "created_by"):
            value = getattr(self, column)
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        if self.is_recurring is not None:
            clauses.append("is_recurring = ?")
            params.append(int(self.is_recurring))
        if self.scheduled_before is not None:
            clauses.append("scheduled_for < ?")
            params.append(column_timestamp(self.scheduled_before))
        if self.scheduled_after is not None:
            clauses.append("scheduled_for >= ?")
            params.append(column_timestamp(self.scheduled_after))
        if self.overdue is not None:
            overdue_sql = "(scheduled_for IS NOT NULL AND scheduled_for < ? AND status NOT IN (?, ?))"
            clauses.append(overdue_sql if self.overdue else f"NOT {overdue_sql}")
            params.extend([column_timestamp(as_utc(now) or utc_now()), *_CLOSED])

        return (" AND ".join(clauses) or "1 = 1"), params

    def matches(self, action: Action, now: datetime | None = None) -> bool:
        for field in ("status", "type", "category", "priority", "assigned_to", "created_by", "is_recurring"):
            wanted = getattr(self, field)
            if wanted is not None and getattr(action, field) != wanted:
                return False
        if self.scheduled_before is not None:
            if action.scheduled_for is None or action.scheduled_for >= self.scheduled_before:
                return False
        if self.scheduled_after is not None:
            if action.scheduled_for is None or action.scheduled_for < self.scheduled_after:
                return False
        if self.overdue is not None and action.is_overdue(now) != self.overdue:
            return False
        return True
