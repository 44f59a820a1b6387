"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from cadence.core.errors import (
    CadenceException,
    CalendarEventNotFoundError,
    GoalNotFoundError,
    InvalidGoalDefinitionError,
    NotAScheduleGoalError,
    QuestNotFoundError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_base_is_internal_error(self):
        err = CadenceException("boom")
        assert err.http_status == 500
        assert err.to_dict() == {"code": "INTERNAL_ERROR", "message": "boom"}

    def test_goal_not_found(self):
        err = GoalNotFoundError(42)
        assert err.http_status == 404
        assert err.code == "GOAL_NOT_FOUND"
        assert err.to_dict()["details"] == {"goal_id": 42}

    def test_quest_not_found(self):
        err = QuestNotFoundError(7)
        assert err.http_status == 404
        assert err.code == "QUEST_NOT_FOUND"

    def test_calendar_event_not_found(self):
        err = CalendarEventNotFoundError(goal_id=1, event_id=9)
        assert err.code == "CALENDAR_EVENT_NOT_FOUND"
        assert err.details == {"goal_id": 1, "event_id": 9}

    def test_invalid_goal_definition_carries_reasons(self):
        err = InvalidGoalDefinitionError(["A goal title is required."])
        assert err.http_status == 422
        assert err.details["reasons"] == ["A goal title is required."]
        assert "title" in err.message

    def test_not_a_schedule_goal(self):
        err = NotAScheduleGoalError(3, "frequency")
        assert err.http_status == 409
        assert "frequency" in err.message


# ---------------------------------------------------------------------------
# Envelope through the API
# ---------------------------------------------------------------------------

class TestErrorEnvelope:
    def test_missing_goal(self, client):
        r = client.get("/goals/999999")
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "GOAL_NOT_FOUND"
        assert body["details"]["goal_id"] == 999999

    def test_invalid_definition_lists_reasons(self, client):
        r = client.post("/goals", json={"title": "Run", "goal_type": "schedule"})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "INVALID_GOAL_DEFINITION"
        assert len(body["details"]["reasons"]) >= 2

    def test_request_validation_error(self, client):
        r = client.post("/goals", json={"goal_type": "weekly"})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {e["field"] for e in body["details"]["errors"]}
        assert "title" in fields
        assert "goal_type" in fields

    def test_bad_toggle_date(self, client):
        r = client.post("/goals", json={
            "title": "Run", "goal_type": "schedule", "start_date": "2031-03-03",
            "end_date": "2031-03-16", "weekdays": [1], "time": "07:00",
        })
        goal_id = r.json()["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2031-13-01"})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_schedule_edit_on_frequency_goal(self, client):
        r = client.post("/goals", json={
            "title": "Gym", "goal_type": "frequency", "start_date": "2031-03-03",
            "end_date": "2031-03-16", "per_week": 2,
        })
        goal_id = r.json()["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2031-03-04"})
        assert r.status_code == 409
        assert r.json()["code"] == "NOT_A_SCHEDULE_GOAL"

    def test_missing_quest(self, client):
        r = client.patch("/quests/999999", json={"status": "completed"})
        assert r.status_code == 404
        assert r.json()["code"] == "QUEST_NOT_FOUND"
