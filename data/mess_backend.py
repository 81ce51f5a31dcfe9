"""
Mock mess backend for development and testing.
Serves canned responses for the endpoints the leave workflow consumes and
records every request it receives.
"""

import json
from copy import deepcopy

import httpx

MESS_DETAILS = {
    "success": True,
    "data": {
        "messes": [
            {
                "messId": "mess-1",
                "mealPlans": [
                    {
                        "id": "plan-full",
                        "name": "Full Board Monthly",
                        "pricing": {"amount": 3000, "period": "month"},
                        "status": "active",
                        "subscriptionStartDate": "2025-10-01",
                        "subscriptionEndDate": "2025-10-31",
                    },
                    {
                        "id": "plan-lunch",
                        "name": "Lunch Only",
                        "pricing": {"amount": 1200, "period": "month"},
                        "mealOptions": {"breakfast": False, "lunch": True, "dinner": False},
                        "leaveRules": {"maxLeaveMeals": 10, "autoApproval": False},
                    },
                    {
                        "id": "plan-pending",
                        "name": "Dinner Plan",
                        "subscriptionStatus": "pending",
                    },
                ],
            }
        ]
    },
}

LEAVE_HISTORY = [
    {
        "_id": "leave-2",
        "status": "approved",
        "mealPlanIds": ["plan-full"],
        "startDate": "2025-10-30T00:00:00.000Z",
        "endDate": "2025-10-31T00:00:00.000Z",
        "startDateMealTypes": ["lunch", "dinner"],
        "endDateMealTypes": [],
        "reason": "Trip home",
        "extendSubscription": True,
    },
    {
        "_id": "leave-1",
        "status": "pending",
        "mealPlanIds": [{"_id": "plan-lunch"}, "plan-gone"],
        "startDate": "2025-10-10",
        "endDate": "2025-10-11",
    },
    {
        "_id": "leave-2",
        "status": "approved",
        "mealPlanIds": ["plan-full"],
        "startDate": "2025-10-30",
        "endDate": "2025-10-31",
    },
]

PREVIEW = {
    "success": True,
    "data": {
        "totalDays": 3,
        "mealBreakdown": {"breakfast": 2, "lunch": 3, "dinner": 3},
        "extensionMeals": 8,
        "estimatedSavings": 240,
        "extendSubscription": True,
        "planWiseBreakdown": [{"planId": "plan-full", "newSubscriptionEndDate": "2025-11-08"}],
    },
}


class MockMessBackend:
    """
    In-memory stand-in for the mess REST API.

    Override ``responses[(method, path)]`` with a dict (JSON body, status 200),
    a ``(status, body)`` tuple, an ``httpx.Response`` or an exception instance.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses = {
            ("GET", "/api/mess/search/user-details"): deepcopy(MESS_DETAILS),
            ("GET", "/api/user/leave-requests"): {"success": True, "data": deepcopy(LEAVE_HISTORY)},
            ("POST", "/api/user/leave-requests/preview"): deepcopy(PREVIEW),
            ("POST", "/api/user/leave-requests"): {"success": True, "data": {"_id": "leave-3"}},
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get((request.method, request.url.path))

        if response is None:
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        if isinstance(response, tuple):
            status_code, body = response
            return httpx.Response(status_code, json=body)
        return httpx.Response(200, json=response)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return json.loads(request.content)
