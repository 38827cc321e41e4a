"""
Tests for the ScheduleEntry entity and its status lifecycle.
"""

from __future__ import annotations

import pytest

from app.domain.exceptions import ValidationError
from app.domain.schedules import ScheduleEntry
from app.enums import ScheduleStatus


def _entry(**overrides):
    data = {
        "id": "s-1",
        "program_id": "prog-ocean",
        "device_ids": ["dev-1", "dev-2"],
        "start_datetime": "2024-01-10T09:00:00",
        "end_datetime": "2024-01-10T11:00:00",
        "status": "planned",
        "location": "Room 1",
    }
    data.update(overrides)
    return ScheduleEntry.from_dict(data)


class TestScheduleStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("planned", ScheduleStatus.PLANNED),
            ("ACTIVE", ScheduleStatus.ACTIVE),
            ("הסתיים", ScheduleStatus.ENDED),
            ("בוטל", ScheduleStatus.CANCELLED),
            (None, ScheduleStatus.PLANNED),
            ("", ScheduleStatus.PLANNED),
        ],
    )
    def test_coerce(self, raw, expected):
        assert ScheduleStatus.coerce(raw) == expected

    def test_unknown_label(self):
        with pytest.raises(ValueError):
            ScheduleStatus.coerce("postponed")

    def test_terminal_states(self):
        assert ScheduleStatus.ENDED.is_terminal
        assert ScheduleStatus.CANCELLED.is_terminal
        assert not ScheduleStatus.ACTIVE.is_terminal


class TestStatusTransitions:
    def test_forward_path(self):
        entry = _entry().with_status("active").with_status("ended")
        assert entry.status == ScheduleStatus.ENDED

    def test_cancel_from_any_open_state(self):
        assert _entry().with_status("cancelled").is_cancelled
        assert _entry(status="active").with_status("בוטל").is_cancelled

    @pytest.mark.parametrize("current", ["ended", "cancelled"])
    def test_terminal_states_are_final(self, current):
        with pytest.raises(ValidationError):
            _entry(status=current).with_status("planned")

    def test_no_going_back(self):
        with pytest.raises(ValidationError):
            _entry(status="active").with_status("planned")

    def test_same_status_is_allowed(self):
        assert _entry(status="ended").with_status("ended").status == ScheduleStatus.ENDED


class TestSerialization:
    def test_round_trip_keeps_optional_fields_out(self):
        payload = _entry().to_dict()
        assert payload["status"] == "planned"
        assert "institution_id" not in payload
        assert ScheduleEntry.from_dict(payload) == _entry()

    def test_legacy_records(self):
        entry = ScheduleEntry.from_dict(
            {"id": 7, "program_id": "p", "status": "מתוכנן", "custom_location": "Lab", "device_ids": None}
        )
        assert entry.id == "7"
        assert entry.status == ScheduleStatus.PLANNED
        assert entry.location == "Lab"
        assert entry.device_ids == []

    def test_unknown_status_falls_back_to_planned(self):
        assert _entry(status="postponed").status == ScheduleStatus.PLANNED

    def test_window_validity(self):
        assert _entry().has_valid_window()
        assert not _entry(end_datetime="2024-01-10T09:00:00").has_valid_window()
        assert not _entry(start_datetime="soon").has_valid_window()
