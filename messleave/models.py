"""
Wire models for the mess backend.

Backend JSON is camelCase; Python attributes are snake_case and every model
dumps back with ``by_alias=True`` before it goes on the wire.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MealType = Literal["breakfast", "lunch", "dinner"]

ALL_MEAL_TYPES: list[str] = ["breakfast", "lunch", "dinner"]

DEFAULT_MEAL_OPTIONS: dict[str, bool] = {"breakfast": True, "lunch": True, "dinner": True}

# Rules applied when a plan is returned without its own leave rules
DEFAULT_LEAVE_RULES: dict[str, Any] = {
    "maxLeaveMeals": 30,
    "requireTwoHourNotice": True,
    "noticeHours": 2,
    "minConsecutiveDays": 2,
    "extendSubscription": True,
    "autoApproval": True,
    "leaveLimitsEnabled": True,
    "consecutiveLeaveEnabled": True,
    "maxLeaveMealsEnabled": True,
}


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AvailableMealPlan(WireModel):
    """Read-only projection of a subscribed plan the user may take leave from."""

    id: str = Field(..., alias="_id")
    name: str | None = None
    pricing: Any = None
    meal_options: dict[str, bool] = Field(
        default_factory=lambda: dict(DEFAULT_MEAL_OPTIONS), alias="mealOptions"
    )
    leave_rules: dict[str, Any] = Field(
        default_factory=lambda: dict(DEFAULT_LEAVE_RULES), alias="leaveRules"
    )
    status: str = "active"


class Subscription(WireModel):
    mess_id: str | None = Field(None, alias="messId")
    meal_plan_ids: list[str] = Field(default_factory=list, alias="mealPlanIds")
    subscription_start_date: str | None = Field(None, alias="subscriptionStartDate")
    subscription_end_date: str | None = Field(None, alias="subscriptionEndDate")
    status: str = "active"


class PreviewPayload(WireModel):
    """Body of ``POST /user/leave-requests/preview``."""

    meal_plan_ids: list[str] = Field(..., alias="mealPlanIds")
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")
    # Middle days always count all three meals
    meal_types: list[str] = Field(default_factory=lambda: list(ALL_MEAL_TYPES), alias="mealTypes")
    start_date_meal_types: list[str] = Field(default_factory=list, alias="startDateMealTypes")
    end_date_meal_types: list[str] = Field(default_factory=list, alias="endDateMealTypes")


class CreateLeavePayload(PreviewPayload):
    """Body of ``POST /user/leave-requests``."""

    reason: str = ""


class ExtendLeavePayload(WireModel):
    """Body of ``POST /user/leave-requests/{id}/extend``."""

    new_end_date: str = Field(..., alias="newEndDate")
    reason: str = ""
