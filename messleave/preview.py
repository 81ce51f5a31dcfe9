"""
Leave preview helpers.

The backend owns the real calculation. These helpers turn its response into
a ``PreviewResult`` and fill in a rough local estimate when the backend does
not return a day count.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any

from dateutil import parser
from dateutil.parser import ParserError

from messleave.form_state import MealBreakdown, PreviewResult

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def parse_date(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return parser.parse(value)


def to_date_string(value: str | datetime | None) -> str:
    """
    Format a date-ish value as ``YYYY-MM-DD``; empty input stays empty.

    Timezone-aware values are converted to UTC first, so the date matches the
    UTC calendar day the backend stores.
    """
    if not value:
        return ""
    try:
        parsed = parse_date(value)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.strftime("%Y-%m-%d")
    except (ParserError, ValueError, OverflowError):
        logger.warning(f"Unparseable leave date: {value!r}")
        return ""


def count_leave_days(start_date: str | datetime, end_date: str | datetime) -> int:
    """
    Inclusive day count between two dates, never negative.

    >>> count_leave_days("2025-10-30", "2025-11-01")
    3
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    elapsed_days = (end - start).total_seconds() / SECONDS_PER_DAY
    return max(0, math.ceil(elapsed_days) + 1)


def fallback_preview(start_date: str, end_date: str) -> PreviewResult:
    """Local estimate: every meal of every day counts, nothing is saved."""
    total_days = count_leave_days(start_date, end_date)
    return PreviewResult(
        total_days=total_days,
        meal_breakdown=MealBreakdown(breakfast=total_days, lunch=total_days, dinner=total_days),
        extension_meals=total_days * 3,
        estimated_savings=0,
        extend_subscription=True,
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def preview_from_response(body: dict[str, Any] | None, start_date: str, end_date: str) -> PreviewResult:
    """
    Build a ``PreviewResult`` from ``{data: {totalDays, mealBreakdown, ...}}``.

    Falls back to ``fallback_preview`` when ``totalDays`` is missing or not
    numeric.
    """
    data = (body or {}).get("data") or {}
    if not isinstance(data, dict) or not _is_number(data.get("totalDays")):
        logger.info("Preview response carried no totalDays, using local estimate")
        return fallback_preview(start_date, end_date)

    breakdown = data.get("mealBreakdown") or {}
    plan_wise = data.get("planWiseBreakdown")

    return PreviewResult(
        total_days=data.get("totalDays") or 0,
        meal_breakdown=MealBreakdown(
            breakfast=breakdown.get("breakfast", 0),
            lunch=breakdown.get("lunch", 0),
            dinner=breakdown.get("dinner", 0),
        ),
        extension_meals=data.get("extensionMeals") or 0,
        estimated_savings=data.get("estimatedSavings") or 0,
        extend_subscription=bool(data.get("extendSubscription")),
        plan_wise_breakdown=plan_wise if isinstance(plan_wise, list) else None,
    )
