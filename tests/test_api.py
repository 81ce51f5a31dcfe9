"""
Tests for FastAPI endpoints.
"""

from unittest.mock import patch

SESSION = "/sessions/user-1"
AUTH = {"Authorization": "Bearer user-token"}


class TestServiceEndpoints:
    def test_root_endpoint(self, test_client):
        response = test_client.get("/")
        assert response.status_code == 200
        assert "Mess Leave API" in response.json()["message"]

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["api_circuit_breaker"]["state"] == "closed"

    def test_metrics_endpoint(self, test_client):
        test_client.get(SESSION, headers=AUTH)

        data = test_client.get("/metrics").json()

        assert data["active_sessions"] == 1
        assert "circuit_breaker" in data

    def test_openapi_docs_available(self, test_client):
        assert test_client.get("/openapi.json").status_code == 200
        assert test_client.get("/docs").status_code == 200


class TestLeaveEndpoints:
    def test_load_session(self, test_client, backend):
        response = test_client.post(f"{SESSION}/load", headers=AUTH)

        assert response.status_code == 200
        state = response.json()["state"]
        assert [p["_id"] for p in state["available_meal_plans"]] == ["plan-full", "plan-lunch"]
        assert state["leave_history"][0]["canUpdate"] is True
        assert state["leave_history"][1]["canUpdate"] is False
        assert state["leave_history"][1]["canCancel"] is True
        assert backend.requests[0].headers["Authorization"] == "Bearer user-token"

    def test_form_update_runs_preview(self, test_client):
        for field, value in [
            ("selected_meal_plans", ["plan-full"]),
            ("start_date", "2025-10-30"),
            ("end_date", "2025-11-01"),
        ]:
            response = test_client.patch(
                f"{SESSION}/form", json={"field": field, "value": value}, headers=AUTH
            )
            assert response.status_code == 200

        state = response.json()["state"]
        assert state["total_days"] == 3
        assert state["end_date_meal_types"] == ["breakfast", "lunch", "dinner"]

    def test_unknown_form_field(self, test_client):
        response = test_client.patch(f"{SESSION}/form", json={"field": "isAdmin", "value": True})
        assert response.status_code == 422

    def test_invalid_form_value_leaves_state(self, test_client):
        response = test_client.patch(
            f"{SESSION}/form", json={"field": "end_date", "value": 20251101}, headers=AUTH
        )
        assert response.status_code == 422

        state = test_client.get(SESSION, headers=AUTH).json()["state"]
        assert state["end_date"] == ""

    def test_submit_validation_error(self, test_client):
        response = test_client.post(f"{SESSION}/submit")

        notification = response.json()["state"]["notification"]
        assert notification == {
            "show": True,
            "type": "error",
            "message": "Please select at least one meal plan",
        }

    def test_hide_notification(self, test_client):
        test_client.post(f"{SESSION}/submit")

        response = test_client.post(f"{SESSION}/notification/hide")

        assert response.json()["state"]["notification"]["show"] is False

    def test_update_mode_round_trip(self, test_client):
        leave = {
            "_id": "leave-2",
            "status": "approved",
            "mealPlanIds": ["plan-full"],
            "startDate": "2025-10-30",
            "endDate": "2025-10-31",
        }

        state = test_client.post(f"{SESSION}/update-mode", json={"leave": leave}).json()["state"]
        assert state["update_mode"] is True
        assert state["updating_leave_id"] == "leave-2"

        state = test_client.delete(f"{SESSION}/update-mode").json()["state"]
        assert state["update_mode"] is False
        assert state["start_date"] == "2025-10-30"

    def test_cancel_leave(self, test_client, backend):
        backend.responses[("DELETE", "/api/user/leave-requests/leave-1")] = {
            "success": True,
            "data": {"_id": "leave-1", "status": "cancelled"},
        }
        test_client.post(f"{SESSION}/load")

        state = test_client.delete(f"{SESSION}/leaves/leave-1").json()["state"]

        assert state["leave_history"][1]["status"] == "cancelled"
        assert state["leave_history"][1]["canCancel"] is False
        assert state["notification"]["message"] == "Leave cancelled successfully"

    def test_reset_session(self, test_client):
        test_client.get(SESSION)

        response = test_client.delete(SESSION)

        assert response.status_code == 200
        assert response.json()["removed"] is True

    def test_load_error_handling(self, test_client):
        with patch(
            "messleave.apply_leave.ApplyLeaveSession.load", side_effect=Exception("Test error")
        ):
            response = test_client.post(f"{SESSION}/load")

        assert response.status_code == 500

    def test_each_caller_uses_own_token(self, test_client, backend):
        test_client.post(f"{SESSION}/load", headers={"Authorization": "Bearer alice"})
        seen = len(backend.requests)

        test_client.post(f"{SESSION}/load", headers={"Authorization": "Bearer mallory"})

        tokens = {r.headers.get("Authorization") for r in backend.requests[seen:]}
        assert tokens == {"Bearer mallory"}

    def test_other_caller_does_not_see_form(self, test_client):
        test_client.patch(
            f"{SESSION}/form",
            json={"field": "reason", "value": "Exams"},
            headers={"Authorization": "Bearer alice"},
        )

        response = test_client.get(SESSION, headers={"Authorization": "Bearer mallory"})

        assert response.json()["state"]["reason"] == ""
