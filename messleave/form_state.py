"""
Mutable view state for the apply-leave workflow.

Holds what the user entered plus everything derived from server responses.
Replaced field-by-field by ``ApplyLeaveSession``; never persisted.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from dateutil import parser
from pydantic import TypeAdapter, ValidationError

from messleave.models import AvailableMealPlan, MealType, Subscription

# Changing any of these re-runs the preview
PREVIEW_DEPENDENCIES = frozenset(
    {
        "start_date",
        "end_date",
        "selected_meal_plans",
        "start_date_meal_types",
        "end_date_meal_types",
    }
)

# Frozen while an existing leave is being extended
UPDATE_MODE_LOCKED_FIELDS = frozenset(
    {"start_date", "start_date_meal_types", "selected_meal_plans"}
)

EDITABLE_FIELDS = PREVIEW_DEPENDENCIES | {"reason"}

DATE_FIELDS = frozenset({"start_date", "end_date"})
MEAL_TYPE_FIELDS = frozenset({"start_date_meal_types", "end_date_meal_types"})

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_meal_types_adapter = TypeAdapter(list[MealType])
_plan_ids_adapter = TypeAdapter(list[str])


def clean_field_value(name: str, value: Any) -> Any:
    """
    Validate and normalise a value for an editable form field.

    Dates must be ``YYYY-MM-DD`` (or empty to clear), meal-type lists may only
    hold breakfast, lunch and dinner, plan selections are lists of ids and the
    reason is text. ``None`` clears a field.

    Raises:
        ValueError: unknown field or invalid value
    """
    if name not in EDITABLE_FIELDS:
        raise ValueError(f"Unknown form field: {name}")

    if name in DATE_FIELDS:
        if value is None or value == "":
            return ""
        if not isinstance(value, str) or not DATE_PATTERN.match(value):
            raise ValueError(f"{name} must be a YYYY-MM-DD date, got {value!r}")
        try:
            parser.isoparse(value)
        except ValueError as e:
            raise ValueError(f"{name} is not a valid date: {value}") from e
        return value

    if name == "reason":
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError(f"reason must be text, got {value!r}")
        return value

    adapter = _meal_types_adapter if name in MEAL_TYPE_FIELDS else _plan_ids_adapter
    try:
        return list(adapter.validate_python(value or [], strict=True))
    except ValidationError as e:
        raise ValueError(f"Invalid {name}: {value!r}") from e


@dataclass
class Notification:
    show: bool = False
    type: str = "info"
    message: str = ""


@dataclass
class MealBreakdown:
    breakfast: int = 0
    lunch: int = 0
    dinner: int = 0


@dataclass
class PreviewResult:
    total_days: int = 0
    meal_breakdown: MealBreakdown = field(default_factory=MealBreakdown)
    extension_meals: int = 0
    estimated_savings: float = 0
    extend_subscription: bool = False
    plan_wise_breakdown: list[dict[str, Any]] | None = None


@dataclass
class LeaveFormState:
    # user input
    selected_meal_plans: list[str] = field(default_factory=list)
    start_date: str = ""
    end_date: str = ""
    start_date_meal_types: list[str] = field(default_factory=list)
    end_date_meal_types: list[str] = field(default_factory=list)
    reason: str = ""

    # update mode
    update_mode: bool = False
    updating_leave_id: str | None = None
    updating_leave: dict[str, Any] | None = None

    # loaded data
    available_meal_plans: list[AvailableMealPlan] = field(default_factory=list)
    subscriptions: list[Subscription] = field(default_factory=list)
    leave_history: list[dict[str, Any]] = field(default_factory=list)

    # preview
    total_days: int = 0
    meal_breakdown: MealBreakdown = field(default_factory=MealBreakdown)
    extension_meals: int = 0
    estimated_savings: float = 0
    extend_subscription: bool = False
    plan_wise_breakdown: list[dict[str, Any]] = field(default_factory=list)

    # ui flags
    is_loading: bool = False
    is_submitting: bool = False
    notification: Notification = field(default_factory=Notification)

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.selected_meal_plans:
            missing.append("selected_meal_plans")
        if not self.start_date:
            missing.append("start_date")
        if not self.end_date:
            missing.append("end_date")
        return missing

    def is_complete(self) -> bool:
        return len(self.missing_fields()) == 0

    def apply_preview(self, preview: PreviewResult) -> None:
        self.total_days = preview.total_days
        self.meal_breakdown = preview.meal_breakdown
        self.extension_meals = preview.extension_meals
        self.estimated_savings = preview.estimated_savings
        self.extend_subscription = preview.extend_subscription
        if preview.plan_wise_breakdown is not None:
            self.plan_wise_breakdown = preview.plan_wise_breakdown

    def reset_preview(self) -> None:
        self.apply_preview(PreviewResult())

    def notify(self, type_: str, message: str) -> None:
        self.notification = Notification(show=True, type=type_, message=message)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["available_meal_plans"] = [p.to_wire() for p in self.available_meal_plans]
        data["subscriptions"] = [s.to_wire() for s in self.subscriptions]
        return data
