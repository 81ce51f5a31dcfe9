"""
Tests for preview parsing and the local day-count fallback.
"""

from data.mess_backend import PREVIEW
from messleave.preview import (
    count_leave_days,
    fallback_preview,
    preview_from_response,
    to_date_string,
)


class TestCountLeaveDays:
    def test_across_month_boundary(self):
        assert count_leave_days("2025-10-30", "2025-11-01") == 3

    def test_single_day(self):
        assert count_leave_days("2025-10-30", "2025-10-30") == 1

    def test_end_before_start_never_negative(self):
        assert count_leave_days("2025-11-10", "2025-11-01") == 0

    def test_partial_day_rounds_up(self):
        assert count_leave_days("2025-10-30T00:00:00", "2025-10-31T06:00:00") == 3

    def test_mixed_timezone_awareness(self):
        assert count_leave_days("2025-10-30T00:00:00.000Z", "2025-11-01") == 3


class TestFallbackPreview:
    def test_fallback_values(self):
        preview = fallback_preview("2025-10-30", "2025-11-01")

        assert preview.total_days == 3
        assert preview.meal_breakdown.breakfast == 3
        assert preview.meal_breakdown.lunch == 3
        assert preview.meal_breakdown.dinner == 3
        assert preview.extension_meals == 9
        assert preview.estimated_savings == 0
        assert preview.extend_subscription is True


class TestPreviewFromResponse:
    def test_backend_values_used(self):
        preview = preview_from_response(PREVIEW, "2025-10-30", "2025-11-01")

        assert preview.total_days == 3
        assert preview.meal_breakdown.breakfast == 2
        assert preview.extension_meals == 8
        assert preview.estimated_savings == 240
        assert preview.extend_subscription is True
        assert preview.plan_wise_breakdown[0]["planId"] == "plan-full"

    def test_missing_total_days_falls_back(self):
        body = {"success": True, "data": {"estimatedSavings": 500}}
        preview = preview_from_response(body, "2025-10-30", "2025-11-01")

        assert preview.total_days == 3
        assert preview.estimated_savings == 0

    def test_non_numeric_total_days_falls_back(self):
        body = {"success": True, "data": {"totalDays": "3"}}
        preview = preview_from_response(body, "2025-10-30", "2025-10-30")

        assert preview.total_days == 1

    def test_empty_body_falls_back(self):
        assert preview_from_response({}, "2025-10-30", "2025-10-31").total_days == 2

    def test_missing_plan_breakdown_is_none(self):
        body = {"data": {"totalDays": 2}}
        preview = preview_from_response(body, "2025-10-30", "2025-10-31")

        assert preview.plan_wise_breakdown is None
        assert preview.extend_subscription is False
        assert preview.meal_breakdown.lunch == 0


class TestToDateString:
    def test_iso_timestamp(self):
        assert to_date_string("2025-10-30T00:00:00.000Z") == "2025-10-30"

    def test_offset_converted_to_utc(self):
        assert to_date_string("2025-10-30T00:00:00+05:30") == "2025-10-29"
        assert to_date_string("2025-10-30T23:30:00-02:00") == "2025-10-31"

    def test_naive_value_kept(self):
        assert to_date_string("2025-10-30T23:30:00") == "2025-10-30"

    def test_empty(self):
        assert to_date_string(None) == ""
        assert to_date_string("") == ""

    def test_garbage(self):
        assert to_date_string("not a date") == ""
