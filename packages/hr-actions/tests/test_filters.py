"""Tests for the typed action filter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hr_actions.exceptions import ValidationError
from hr_actions.filters import ActionFilter, column_timestamp
from hr_actions.models import (
    Action,
    ActionCategory,
    ActionPriority,
    ActionStatus,
    ActionType,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_action(**overrides) -> Action:
    fields = dict(
        type=ActionType.PROCESS_PAYROLL,
        target="June payroll",
        description="Run June payroll",
        category=ActionCategory.PAYROLL,
        created_by="admin-1",
    )
    fields.update(overrides)
    return Action(**fields)


class TestFromQueryParams:
    def test_parses_enums_and_bools(self) -> None:
        f = ActionFilter.from_query_params(
            {"status": ["In Progress"], "category": ["payroll"], "overdue": ["true"]}
        )
        assert f.status == ActionStatus.IN_PROGRESS
        assert f.category == ActionCategory.PAYROLL
        assert f.overdue is True

    def test_rejects_unknown_parameter(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ActionFilter.from_query_params({"$where": ["1"]})
        assert exc_info.value.errors[0]["field"] == "$where"

    def test_rejects_out_of_enum_value(self) -> None:
        with pytest.raises(ValidationError):
            ActionFilter.from_query_params({"priority": ["Urgent"]})

    def test_rejects_repeated_parameter(self) -> None:
        with pytest.raises(ValidationError):
            ActionFilter.from_query_params({"status": ["Pending", "Failed"]})


class TestToSql:
    def test_empty_filter(self) -> None:
        assert ActionFilter().to_sql() == ("1 = 1", [])

    def test_values_are_parameterised(self) -> None:
        where, params = ActionFilter(
            status=ActionStatus.PENDING,
            priority=ActionPriority.HIGH,
            assigned_to="u'; DROP TABLE actions; --",
        ).to_sql()
        assert where == "status = ? AND priority = ? AND assigned_to = ?"
        assert params == ["Pending", "High", "u'; DROP TABLE actions; --"]

    def test_overdue_clause(self) -> None:
        where, params = ActionFilter(overdue=True).to_sql(NOW)
        assert "scheduled_for < ?" in where
        assert params == [column_timestamp(NOW), "Completed", "Cancelled"]

    def test_not_overdue_clause(self) -> None:
        where, _ = ActionFilter(overdue=False).to_sql(NOW)
        assert where.startswith("NOT (")


class TestMatches:
    def test_field_equality(self) -> None:
        action = make_action(priority=ActionPriority.CRITICAL, assigned_to="emp-7")
        assert ActionFilter(priority=ActionPriority.CRITICAL).matches(action)
        assert ActionFilter(assigned_to="emp-7", type=ActionType.PROCESS_PAYROLL).matches(action)
        assert not ActionFilter(assigned_to="emp-8").matches(action)
        assert not ActionFilter(category=ActionCategory.SECURITY).matches(action)

    def test_schedule_window(self) -> None:
        action = make_action(scheduled_for=NOW)
        assert ActionFilter(scheduled_after=NOW, scheduled_before=NOW + timedelta(hours=1)).matches(action)
        assert not ActionFilter(scheduled_before=NOW).matches(action)
        assert not ActionFilter(scheduled_after=NOW).matches(make_action())

    def test_overdue(self) -> None:
        late = make_action(scheduled_for=NOW - timedelta(hours=1))
        assert ActionFilter(overdue=True).matches(late, NOW)
        assert not ActionFilter(overdue=False).matches(late, NOW)
        assert ActionFilter(overdue=False).matches(make_action(), NOW)


def test_column_timestamp_sorts_chronologically() -> None:
    earlier = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
    later = earlier + timedelta(microseconds=1)
    other_zone = later.astimezone(timezone(timedelta(hours=-5)))
    assert column_timestamp(earlier) < column_timestamp(later)
    assert column_timestamp(other_zone) == column_timestamp(later)


def test_column_timestamp_takes_naive_as_utc() -> None:
    naive = datetime(2024, 2, 29, 9, 0)
    assert column_timestamp(naive) == column_timestamp(naive.replace(tzinfo=timezone.utc))
    assert column_timestamp(naive) == "2024-02-29T09:00:00.000000Z"
