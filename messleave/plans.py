"""
Projection of backend mess details and leave history into workflow data.

Pure functions only: nothing here talks to the network.
"""

import logging
from typing import Any

from messleave.models import (
    DEFAULT_LEAVE_RULES,
    DEFAULT_MEAL_OPTIONS,
    AvailableMealPlan,
    Subscription,
)

logger = logging.getLogger(__name__)

STATUS_FIELDS = ("status", "subscriptionStatus", "approvalStatus", "membershipStatus", "joinStatus")
PENDING_STATUSES = frozenset({"pending", "awaiting", "in_review", "requested"})
APPROVED_STATUSES = frozenset({"active", "approved", "ongoing"})


def is_plan_approved_for_leave(plan: dict[str, Any] | None) -> bool:
    """
    Decide whether leave may be taken against a subscribed plan.

    Any pending-like status rejects, any approved-like status accepts.
    A plan with no status field at all is accepted; a plan whose statuses
    are all unrecognised is rejected.
    """
    if not plan:
        return False

    statuses = [str(plan[key]).lower() for key in STATUS_FIELDS if plan.get(key)]

    if any(status in PENDING_STATUSES for status in statuses):
        return False

    if any(status in APPROVED_STATUSES for status in statuses):
        return True

    return len(statuses) == 0


def project_meal_plans(
    mess_details: dict[str, Any] | None,
) -> tuple[list[AvailableMealPlan], list[Subscription]]:
    """
    Flatten ``{success, data: {messes: [{messId, mealPlans}]}}`` into the
    plans the user can take leave from, plus one subscription per plan.
    """
    plans: list[AvailableMealPlan] = []
    subscriptions: list[Subscription] = []

    if not mess_details or not mess_details.get("success"):
        return plans, subscriptions

    messes = (mess_details.get("data") or {}).get("messes") or []
    for mess in messes:
        for plan in mess.get("mealPlans") or []:
            if not is_plan_approved_for_leave(plan):
                logger.debug(f"Skipping plan {plan.get('id')}: not approved for leave")
                continue

            plan_id = str(plan.get("id") or plan.get("_id"))
            status = plan.get("status") or plan.get("subscriptionStatus") or "active"

            plans.append(
                AvailableMealPlan(
                    id=plan_id,
                    name=plan.get("name"),
                    pricing=plan.get("pricing"),
                    meal_options=plan.get("mealOptions") or dict(DEFAULT_MEAL_OPTIONS),
                    leave_rules=plan.get("leaveRules") or dict(DEFAULT_LEAVE_RULES),
                    status=status,
                )
            )
            subscriptions.append(
                Subscription(
                    mess_id=mess.get("messId"),
                    meal_plan_ids=[plan_id],
                    subscription_start_date=plan.get("subscriptionStartDate"),
                    subscription_end_date=plan.get("subscriptionEndDate"),
                    status=status,
                )
            )

    return plans, subscriptions


def dedupe_leave_history(raw_history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Keep the first entry per ``_id``; entries without an id, or that are not objects, are dropped."""
    seen: set[str] = set()
    history = []
    for item in raw_history or []:
        if not isinstance(item, dict) or not item.get("_id"):
            continue
        key = str(item["_id"])
        if key in seen:
            continue
        seen.add(key)
        history.append(item)
    return history


def plan_ref_id(ref: Any) -> str:
    """Id of a ``mealPlanIds`` element, which may be a bare id or an object."""
    if isinstance(ref, dict):
        return str(ref.get("_id") or ref.get("id"))
    return str(ref)


def enrich_leave_history(
    history: list[dict[str, Any]], plans: list[AvailableMealPlan]
) -> list[dict[str, Any]]:
    """Replace known plan references with ``{"_id", "name"}`` objects."""
    names = {plan.id: plan.name for plan in plans}

    enriched = []
    for item in history:
        refs = item.get("mealPlanIds")
        if isinstance(refs, list):
            new_refs = []
            for ref in refs:
                key = plan_ref_id(ref)
                name = names.get(key)
                new_refs.append({"_id": key, "name": name} if name else ref)
            item = {**item, "mealPlanIds": new_refs}
        enriched.append(item)
    return enriched


def filter_selected_plans(selected: list[str], plans: list[AvailableMealPlan]) -> list[str]:
    available = {plan.id for plan in plans}
    return [plan_id for plan_id in selected if plan_id in available]


def can_cancel(leave: dict[str, Any]) -> bool:
    return leave.get("status") not in ("cancelled", "rejected")


def can_update(leave: dict[str, Any]) -> bool:
    return leave.get("status") == "approved"
