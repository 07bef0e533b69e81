"""
Unit tests for device_service.

Tests cover:
- compute_due_dates: calendar-month arithmetic and month-end clamping
- build_service_history_update: cleaning, repair, maintenance, other services
"""

from datetime import date

import pytest

from scheduling.services.device_service import build_service_history_update, compute_due_dates


class TestComputeDueDates:
    """Tests for compute_due_dates."""

    def test_regular_date(self):
        assert compute_due_dates(date(2024, 1, 15)) == {
            "due_3_months": date(2024, 4, 15),
            "due_4_months": date(2024, 5, 15),
            "due_6_months": date(2024, 7, 15),
        }

    def test_month_end_clamped(self):
        due = compute_due_dates(date(2023, 8, 31))
        assert due["due_3_months"] == date(2023, 11, 30)
        assert due["due_6_months"] == date(2024, 2, 29)


class TestBuildServiceHistoryUpdate:
    """Tests for build_service_history_update."""

    def test_cleaning_sets_cleaning_date_and_due_dates(self):
        fields = build_service_history_update("Chemical Cleaning", date(2024, 3, 4))

        assert fields["last_cleaning_date"] == date(2024, 3, 4)
        assert fields["due_4_months"] == date(2024, 7, 4)
        assert "last_repair_date" not in fields

    @pytest.mark.parametrize("service_name", ["Repair", "compressor REPAIR", "Preventive Maintenance"])
    def test_repair_and_maintenance_set_repair_date(self, service_name):
        assert build_service_history_update(service_name, date(2024, 3, 4)) == {
            "last_repair_date": date(2024, 3, 4)
        }

    @pytest.mark.parametrize("service_name", ["Installation", "", None])
    def test_other_services_leave_devices_alone(self, service_name):
        assert build_service_history_update(service_name, date(2024, 3, 4)) == {}
