"""
Apply-leave workflow.

``ApplyLeaveSession`` owns one user's leave form: it loads the plans the user
may take leave from, keeps the server preview in sync with the form, submits
create/extend requests and cancels existing leaves. Every backend failure is
caught here and surfaced through ``state.notification``; nothing raises to the
caller except programming errors such as an unknown form field.
"""

import asyncio
import logging
from typing import Any

from messleave.api_client import ApiError, MessApiClient
from messleave.circuit_breaker import CircuitBreakerOpenError
from messleave.form_state import (
    PREVIEW_DEPENDENCIES,
    UPDATE_MODE_LOCKED_FIELDS,
    LeaveFormState,
    clean_field_value,
)
from messleave.models import ALL_MEAL_TYPES, CreateLeavePayload, ExtendLeavePayload, PreviewPayload
from messleave.observability import trace_span
from messleave.plans import (
    can_update,
    dedupe_leave_history,
    enrich_leave_history,
    filter_selected_plans,
    plan_ref_id,
    project_meal_plans,
)
from messleave.preview import preview_from_response, to_date_string

logger = logging.getLogger(__name__)

BACKEND_ERRORS = (ApiError, CircuitBreakerOpenError)

SUBMIT_FAILED_MESSAGE = "Failed to submit leave request"
CANCEL_FAILED_MESSAGE = "Failed to cancel leave"

CREATE_MESSAGES = {
    "approved": "Leave request auto-approved! Subscription has been extended.",
    "rejected": "Leave request rejected. Please review the reason.",
    None: "Leave request submitted and pending approval",
}
UPDATE_MESSAGES = {
    "approved": "Leave updated and auto-approved! Subscription has been recalculated.",
    "rejected": "Leave updated but rejected. Please review the reason.",
    None: "Leave updated! Request is pending approval with recalculated values.",
}


def submission_message(newest_status: str | None, update_mode: bool) -> str:
    messages = UPDATE_MESSAGES if update_mode else CREATE_MESSAGES
    return messages.get(newest_status, messages[None])


def _error_message(error: Exception, fallback: str) -> str:
    if isinstance(error, ApiError) and error.server_message:
        return error.server_message
    return fallback


class ApplyLeaveSession:
    """
    Client-side state container for the apply-leave form.

    Single writer: drive one session from one event loop. Two guards keep
    concurrent calls honest:
    - ``_submit_in_flight`` blocks a second submission while one is pending
    - ``_preview_seq`` drops preview responses overtaken by a newer request
    """

    def __init__(self, client: MessApiClient):
        self.client = client
        self.state = LeaveFormState()

        self._submit_in_flight = False
        self._preview_seq = 0
        self._previous_end_date = ""

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    async def _fetch_history(self) -> list[dict[str, Any]]:
        body = await self.client.list_leave_requests()
        if not body.get("success"):
            return []
        return dedupe_leave_history(body.get("data") or [])

    def _apply_plans(self, mess_details: dict[str, Any] | None) -> None:
        plans, subscriptions = project_meal_plans(mess_details)
        self.state.available_meal_plans = plans
        self.state.subscriptions = subscriptions
        self.state.selected_meal_plans = filter_selected_plans(self.state.selected_meal_plans, plans)

    async def load(self) -> LeaveFormState:
        """Fetch mess details and leave history and populate the form."""
        self.state.is_loading = True
        try:
            with trace_span("load_apply_leave"):
                mess_result, history_result = await asyncio.gather(
                    self.client.get_user_mess_details(),
                    self._fetch_history(),
                    return_exceptions=True,
                )

            if isinstance(mess_result, BaseException):
                if not isinstance(mess_result, BACKEND_ERRORS):
                    raise mess_result
                logger.error(f"Failed to load mess details: {mess_result}")
                mess_result = None

            if isinstance(history_result, BaseException):
                if not isinstance(history_result, BACKEND_ERRORS):
                    raise history_result
                logger.warning(f"Failed to load leave history: {history_result}")
                history_result = []

            self._apply_plans(mess_result)
            self.state.leave_history = enrich_leave_history(
                history_result, self.state.available_meal_plans
            )
        finally:
            self.state.is_loading = False

        logger.info(
            f"Loaded {len(self.state.available_meal_plans)} plans and "
            f"{len(self.state.leave_history)} leave entries"
        )
        return self.state

    async def refresh_subscriptions(self) -> None:
        """Re-read plans and subscription dates; failures are logged and ignored."""
        try:
            mess_details = await self.client.get_user_mess_details()
        except BACKEND_ERRORS as e:
            logger.warning(f"Subscription refresh failed: {e}")
            return
        self._apply_plans(mess_details)

    # ------------------------------------------------------------------
    # Form editing and preview
    # ------------------------------------------------------------------

    async def update_field(self, name: str, value: Any) -> LeaveFormState:
        """
        Set one form field and re-run the preview if it feeds the preview.

        In update mode the start date, start-day meals and plan selection are
        frozen; writes to them are ignored. Invalid values raise ValueError
        and leave the form untouched.
        """
        value = clean_field_value(name, value)

        if self.state.update_mode and name in UPDATE_MODE_LOCKED_FIELDS:
            logger.info(f"Ignoring change to {name}: locked while updating a leave")
            return self.state

        setattr(self.state, name, value)

        if name in PREVIEW_DEPENDENCIES:
            await self.recalculate_preview()
        return self.state

    async def update_selected_meal_plans(self, plan_ids: list[str]) -> LeaveFormState:
        return await self.update_field("selected_meal_plans", plan_ids)

    def hide_notification(self) -> None:
        self.state.notification.show = False

    def _default_end_day_meals(self) -> None:
        # A new end date with no end-day meals picked counts the whole end day
        if self.state.end_date and self.state.end_date != self._previous_end_date:
            self._previous_end_date = self.state.end_date
            if not self.state.end_date_meal_types:
                self.state.end_date_meal_types = list(ALL_MEAL_TYPES)

    async def recalculate_preview(self) -> None:
        """Ask the backend what the current form would cost or save."""
        self._default_end_day_meals()

        state = self.state
        self._preview_seq += 1
        seq = self._preview_seq

        if not state.is_complete():
            state.reset_preview()
            return

        payload = PreviewPayload(
            meal_plan_ids=list(state.selected_meal_plans),
            start_date=state.start_date,
            end_date=state.end_date,
            start_date_meal_types=list(state.start_date_meal_types),
            end_date_meal_types=list(state.end_date_meal_types),
        )

        try:
            with trace_span("preview_leave_request", plans=len(payload.meal_plan_ids)):
                body = await self.client.preview_leave_request(payload.to_wire())
        except BACKEND_ERRORS as e:
            logger.warning(f"Preview failed, keeping previous values: {e}")
            return

        if seq != self._preview_seq:
            logger.debug(f"Discarding stale preview response {seq} (latest {self._preview_seq})")
            return

        state.apply_preview(preview_from_response(body, payload.start_date, payload.end_date))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _validate_submission(self) -> bool:
        if not self.state.selected_meal_plans:
            self.state.notify("error", "Please select at least one meal plan")
            return False
        if not self.state.start_date or not self.state.end_date:
            self.state.notify("error", "Please select start and end dates")
            return False
        return True

    def _submission_payload(self, update_mode: bool) -> CreateLeavePayload | ExtendLeavePayload:
        state = self.state
        if update_mode:
            return ExtendLeavePayload(new_end_date=state.end_date, reason=state.reason)
        return CreateLeavePayload(
            meal_plan_ids=list(state.selected_meal_plans),
            start_date=state.start_date,
            end_date=state.end_date,
            start_date_meal_types=list(state.start_date_meal_types),
            end_date_meal_types=list(state.end_date_meal_types),
            reason=state.reason,
        )

    async def submit_leave_request(self) -> bool:
        """
        Create a new leave, or extend the one being updated.

        Returns True when the backend accepted the request. A call made
        while another submission is still pending does nothing. The
        in-flight guard is released however the submission ends.
        """
        if not self._validate_submission():
            return False

        if self._submit_in_flight or self.state.is_submitting:
            logger.info("Submission already in flight, ignoring duplicate")
            return False

        state = self.state
        update_mode = bool(state.update_mode and state.updating_leave_id)
        payload = self._submission_payload(update_mode)

        self._submit_in_flight = True
        state.is_submitting = True
        try:
            return await self._submit(payload, update_mode)
        finally:
            self._submit_in_flight = False
            state.is_submitting = False

    async def _submit(self, payload: CreateLeavePayload | ExtendLeavePayload, update_mode: bool) -> bool:
        state = self.state
        try:
            with trace_span("submit_leave_request", update=update_mode):
                if update_mode:
                    await self.client.extend_leave_request(state.updating_leave_id, payload.to_wire())
                else:
                    await self.client.create_leave_request(payload.to_wire())
        except BACKEND_ERRORS as e:
            logger.error(f"Leave submission failed: {e}")
            state.is_submitting = False
            state.notify("error", _error_message(e, SUBMIT_FAILED_MESSAGE))
            return False

        try:
            history = await self._fetch_history()
        except BACKEND_ERRORS as e:
            logger.error(f"Failed to reload leave history: {e}")
            history = []
        history = enrich_leave_history(history, state.available_meal_plans)

        newest_status = history[0].get("status") if history else None

        state.is_submitting = False
        state.notify("success", submission_message(newest_status, update_mode))
        if history:
            state.leave_history = history
        state.update_mode = False
        state.updating_leave_id = None
        state.updating_leave = None

        await self.refresh_subscriptions()

        logger.info(f"Leave request submitted (update={update_mode}, status={newest_status})")
        return True

    # ------------------------------------------------------------------
    # Update mode and cancellation
    # ------------------------------------------------------------------

    async def start_update_mode(self, leave: dict[str, Any]) -> bool:
        """
        Load an approved leave into the form so its end date can be moved.

        The original start date stays fixed, so the preview always runs from
        the first day of the leave to the new end date.
        """
        if not can_update(leave):
            self.state.notify("error", "Only approved leaves can be updated")
            return False

        state = self.state
        state.update_mode = True
        state.updating_leave_id = leave.get("_id")
        state.updating_leave = leave
        state.selected_meal_plans = [plan_ref_id(ref) for ref in leave.get("mealPlanIds") or []]
        state.start_date = to_date_string(leave.get("startDate"))
        state.end_date = to_date_string(leave.get("endDate"))
        state.start_date_meal_types = list(leave.get("startDateMealTypes") or ALL_MEAL_TYPES)
        state.end_date_meal_types = list(leave.get("endDateMealTypes") or ALL_MEAL_TYPES)
        state.reason = leave.get("reason") or ""

        # Surface the latest extended subscription end date while editing
        await self.refresh_subscriptions()
        await self.recalculate_preview()
        return True

    def cancel_update_mode(self) -> None:
        self.state.update_mode = False
        self.state.updating_leave_id = None
        self.state.updating_leave = None

    async def cancel_leave_request(self, leave_id: str) -> bool:
        """Cancel a leave and swap in the server's updated record."""
        try:
            with trace_span("cancel_leave_request", leave=leave_id):
                body = await self.client.cancel_leave_request(leave_id)
        except BACKEND_ERRORS as e:
            logger.error(f"Leave cancellation failed: {e}")
            self.state.notify("error", _error_message(e, CANCEL_FAILED_MESSAGE))
            return False

        updated = body.get("data") if isinstance(body.get("data"), dict) else None

        if updated and updated.get("extendSubscription"):
            message = "Leave cancelled. Subscription extension reverted to original end date."
        else:
            message = "Leave cancelled successfully"
        self.state.notify("success", message)

        if updated and updated.get("_id"):
            self.state.leave_history = [
                updated if item.get("_id") == updated["_id"] else item
                for item in self.state.leave_history
            ]
        return True
