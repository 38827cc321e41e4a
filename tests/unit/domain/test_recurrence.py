"""
Tests for recurrence expansion.

Covers:
- daily / weekly / monthly stepping
- end conditions (date, count, never) and the iteration cap
- invalid time and duration inputs
- non-recurring multi-date selection
"""

from __future__ import annotations

from datetime import date, datetime

import pytest

from app.domain.schedules import RecurrenceEnd, RecurrenceExpander, RecurrenceRule, expand, occurrence_for_date
from app.enums import RecurrenceEndType, RecurrenceType


def _rule(kind, interval=1, weekdays=(), end_type=RecurrenceEndType.NEVER, end_value=None) -> RecurrenceRule:
    return RecurrenceRule(
        type=kind,
        interval=interval,
        weekdays=frozenset(weekdays),
        end=RecurrenceEnd(end_type, end_value),
    )


def _dates(occurrences) -> list[date]:
    return [o.date for o in occurrences]


class TestDaily:
    def test_interval_and_count(self):
        rule = _rule(RecurrenceType.DAILY, interval=2, end_type=RecurrenceEndType.COUNT, end_value=3)
        result = expand("2024-01-01", "09:00", 1, rule)
        assert _dates(result) == [date(2024, 1, 1), date(2024, 1, 3), date(2024, 1, 5)]

    def test_end_date_is_inclusive(self):
        rule = _rule(RecurrenceType.DAILY, end_type=RecurrenceEndType.DATE, end_value=date(2024, 1, 3))
        assert _dates(expand(date(2024, 1, 1), "09:00", 1, rule)) == [
            date(2024, 1, 1),
            date(2024, 1, 2),
            date(2024, 1, 3),
        ]

    def test_never_stops_at_occurrence_ceiling(self):
        result = expand("2024-01-01", "09:00", 1, _rule(RecurrenceType.DAILY))
        assert len(result) == 365

    def test_base_datetime_is_normalized_to_midnight(self):
        rule = _rule(RecurrenceType.DAILY, end_type=RecurrenceEndType.COUNT, end_value=1)
        result = expand(datetime(2024, 1, 1, 17, 45), "09:00", 1, rule)
        assert result[0].start == datetime(2024, 1, 1, 9, 0)


class TestWeekly:
    def test_monday_wednesday_count_four_from_sunday(self):
        rule = _rule(RecurrenceType.WEEKLY, weekdays={1, 3}, end_type=RecurrenceEndType.COUNT, end_value=4)
        result = expand("2024-01-07", "10:00", 1.5, rule)  # a Sunday

        assert _dates(result) == [
            date(2024, 1, 8),
            date(2024, 1, 10),
            date(2024, 1, 15),
            date(2024, 1, 17),
        ]
        assert len(set(_dates(result))) == 4
        assert result[0].start.isoformat() == "2024-01-08T10:00:00"
        assert result[0].end.isoformat() == "2024-01-08T11:30:00"

    def test_sunday_is_zero(self):
        rule = _rule(RecurrenceType.WEEKLY, weekdays={0}, end_type=RecurrenceEndType.COUNT, end_value=2)
        assert _dates(expand("2024-01-03", "10:00", 1, rule)) == [date(2024, 1, 7), date(2024, 1, 14)]

    def test_every_other_week(self):
        rule = _rule(RecurrenceType.WEEKLY, interval=2, weekdays={1}, end_type=RecurrenceEndType.COUNT, end_value=3)
        assert _dates(expand("2024-01-07", "10:00", 1, rule)) == [
            date(2024, 1, 8),
            date(2024, 1, 22),
            date(2024, 2, 5),
        ]

    def test_empty_weekdays_terminates_with_nothing(self):
        rule = _rule(RecurrenceType.WEEKLY, weekdays=set())
        assert expand("2024-01-07", "10:00", 1, rule) == []

    def test_iteration_cap_bounds_contradictory_rules(self):
        expander = RecurrenceExpander(max_iterations=10, max_occurrences=365)
        rule = _rule(RecurrenceType.WEEKLY, weekdays={1}, end_type=RecurrenceEndType.COUNT, end_value=100)
        result = expander.expand("2024-01-07", "10:00", 1, rule)
        # Ten days from the anchor hold only two Mondays
        assert _dates(result) == [date(2024, 1, 8), date(2024, 1, 15)]


class TestMonthly:
    def test_skips_months_without_the_anchor_day(self):
        rule = _rule(RecurrenceType.MONTHLY, end_type=RecurrenceEndType.COUNT, end_value=3)
        assert _dates(expand("2024-01-31", "09:00", 1, rule)) == [
            date(2024, 1, 31),
            date(2024, 3, 31),
            date(2024, 5, 31),
        ]

    def test_interval_months(self):
        rule = _rule(RecurrenceType.MONTHLY, interval=3, end_type=RecurrenceEndType.COUNT, end_value=3)
        assert _dates(expand("2024-11-15", "09:00", 1, rule)) == [
            date(2024, 11, 15),
            date(2025, 2, 15),
            date(2025, 5, 15),
        ]

    def test_end_date_stops_even_across_skipped_months(self):
        rule = _rule(RecurrenceType.MONTHLY, end_type=RecurrenceEndType.DATE, end_value=date(2024, 4, 30))
        assert _dates(expand("2024-01-31", "09:00", 1, rule)) == [date(2024, 1, 31), date(2024, 3, 31)]


class TestInputs:
    @pytest.mark.parametrize("start_time", ["25:00", "9:00", "09:60", "", None, "ab:cd"])
    def test_invalid_time_yields_nothing(self, start_time):
        rule = _rule(RecurrenceType.DAILY, end_type=RecurrenceEndType.COUNT, end_value=3)
        assert expand("2024-01-01", start_time, 1, rule) == []

    @pytest.mark.parametrize("duration", [0, -1, None, "abc", float("nan")])
    def test_non_positive_duration_yields_nothing(self, duration):
        rule = _rule(RecurrenceType.DAILY, end_type=RecurrenceEndType.COUNT, end_value=3)
        assert expand("2024-01-01", "09:00", duration, rule) == []

    def test_end_rolls_into_next_day(self):
        occurrence = occurrence_for_date("2024-01-01", "23:30", 1)
        assert occurrence.end == datetime(2024, 1, 2, 0, 30)

    def test_deterministic(self):
        rule = _rule(RecurrenceType.WEEKLY, weekdays={2, 4}, end_type=RecurrenceEndType.COUNT, end_value=6)
        assert expand("2024-02-01", "08:15", 0.75, rule) == expand("2024-02-01", "08:15", 0.75, rule)

    def test_rule_from_dict(self):
        rule = RecurrenceRule.from_dict(
            {"type": "weekly", "interval": 2, "weekdays": [1, 3], "end": {"type": "date", "value": "2024-03-01"}}
        )
        assert rule.type == RecurrenceType.WEEKLY
        assert rule.weekdays == frozenset({1, 3})
        assert rule.end.value == date(2024, 3, 1)


class TestExpandDates:
    def test_one_occurrence_per_distinct_date_in_order(self):
        expander = RecurrenceExpander()
        result = expander.expand_dates(["2024-01-12", "2024-01-10", "2024-01-12T08:00:00"], "09:00", 2)
        assert _dates(result) == [date(2024, 1, 12), date(2024, 1, 10)]
        assert result[1].to_iso() == ("2024-01-10T09:00:00", "2024-01-10T11:00:00")

    def test_invalid_time_yields_nothing(self):
        assert RecurrenceExpander().expand_dates(["2024-01-10"], "9", 2) == []
