"""
Endpoint tests for the goals and quests routers.

Scenario: 2025-01-06 (Monday) .. 2025-01-19, Mon/Wed/Fri at 07:00.
Every test creates its own goal, so no state is shared between tests.
"""
from __future__ import annotations

SCHEDULE_GOAL = {
    "title": "Morning run",
    "goal_type": "schedule",
    "start_date": "2025-01-06",
    "end_date": "2025-01-19",
    "weekdays": [1, 3, 5],
    "time": "07:00",
    "verification_methods": ["time"],
}


def _create(client, **overrides) -> dict:
    payload = {**SCHEDULE_GOAL, **overrides}
    r = client.post("/goals", json=payload)
    assert r.status_code == 201, r.text
    return r.json()


def _verify(client, goal_id: int, ts: str, status: str = "success", **extra):
    r = client.post(f"/goals/{goal_id}/verifications", json={"timestamp": ts, "status": status, **extra})
    assert r.status_code == 201, r.text
    return r.json()


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestPreview:
    def test_valid_schedule_preview(self, client):
        r = client.post("/goals/preview", json=SCHEDULE_GOAL)
        assert r.status_code == 200
        body = r.json()
        assert body["is_valid"] is True
        assert len(body["quests"]) == 6
        assert body["occurrences"][0] == {
            "date": "2025-01-06", "time": "07:00", "day_name": "Monday", "week_number": 1,
        }

    def test_invalid_preview_returns_reasons(self, client):
        r = client.post("/goals/preview", json={**SCHEDULE_GOAL, "weekdays": []})
        assert r.status_code == 200
        body = r.json()
        assert body["is_valid"] is False
        assert body["errors"]
        assert body["quests"] == []

    def test_preview_stores_nothing(self, client, db):
        from cadence.models.goal import Goal

        before = db.query(Goal).count()
        client.post("/goals/preview", json=SCHEDULE_GOAL)
        assert db.query(Goal).count() == before


class TestCreateGoal:
    def test_schedule_goal_and_quests(self, client):
        body = _create(client)
        goal = body["goal"]
        assert goal["weekly_weekdays"] == [1, 3, 5]
        assert goal["weekly_time_settings"] == {"1": ["07:00"], "3": ["07:00"], "5": ["07:00"]}
        assert len(body["quests"]) == 6
        assert body["truncated"] is False
        first = body["quests"][0]
        assert first["status"] == "pending"
        assert first["target_date"] == "2025-01-06"
        assert [rule["type"] for rule in first["verification_rules"]] == ["time", "manual"]

    def test_quest_limit(self, client):
        body = _create(client, start_date="2025-01-01", end_date="2025-12-31", weekdays=list(range(7)))
        assert len(body["quests"]) == 100
        assert body["truncated"] is True
        assert body["quests"][-1]["target_date"] == "2025-04-10"

    def test_frequency_goal(self, client):
        body = _create(client, goal_type="frequency", per_week=3, weekdays=[], time=None)
        assert len(body["quests"]) == 6
        assert [q["week_number"] for q in body["quests"]] == [1, 1, 1, 2, 2, 2]

    def test_frequency_count_is_capped(self, client):
        r = client.post("/goals", json={**SCHEDULE_GOAL, "goal_type": "frequency", "per_week": 8})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_GOAL_DEFINITION"
        assert "Frequency goals allow at most 7 per week." in r.json()["details"]["reasons"]

    def test_frequency_quest_limit(self, client):
        body = _create(
            client, goal_type="frequency", per_week=7, weekdays=[], time=None,
            start_date="2025-01-01", end_date="2030-12-31",
        )
        assert len(body["quests"]) == 100
        assert body["truncated"] is True

    def test_malformed_override_dates(self, client):
        r = client.post("/goals/preview", json={**SCHEDULE_GOAL, "include_dates": ["2025-1-7"]})
        assert r.status_code == 200
        assert r.json()["is_valid"] is False
        assert r.json()["quests"] == []

        r = client.post("/goals", json={**SCHEDULE_GOAL, "exclude_dates": ["next friday"]})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_GOAL_DEFINITION"
        assert "Include and exclude dates must use the YYYY-MM-DD format." in r.json()["details"]["reasons"]

    def test_weekly_time_settings_need_weekday_keys(self, client):
        r = client.post("/goals", json={**SCHEDULE_GOAL, "weekly_time_settings": {"mon": ["08:00"]}})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_GOAL_DEFINITION"
        assert "Weekly time settings must be keyed by weekday 0-6." in r.json()["details"]["reasons"]

    def test_milestone_goal(self, client):
        body = _create(
            client, goal_type="milestone", start_date="2025-01-01", end_date="2025-01-31",
            milestones=["kickoff", "mid", "finish"],
        )
        assert [q["target_date"] for q in body["quests"]] == ["2025-01-01", "2025-01-16", "2025-01-31"]

    def test_get_and_delete(self, client):
        goal_id = _create(client)["goal"]["id"]
        assert client.get(f"/goals/{goal_id}").status_code == 200
        _verify(client, goal_id, "2025-01-06T07:00:00+09:00")
        assert client.delete(f"/goals/{goal_id}").status_code == 204
        assert client.get(f"/goals/{goal_id}").status_code == 404
        assert client.get(f"/goals/{goal_id}/quests").status_code == 404


class TestScheduleEdits:
    def test_schedule_requirement(self, client):
        goal_id = _create(client)["goal"]["id"]
        body = client.get(f"/goals/{goal_id}/schedule").json()
        assert body["required_total"] == 6
        assert [w["total"] for w in body["weeks"]] == [3, 3]
        assert len(body["sessions"]) == 6

    def test_short_period_requires_nothing(self, client):
        goal_id = _create(client, start_date="2025-01-01", end_date="2025-01-05")["goal"]["id"]
        body = client.get(f"/goals/{goal_id}/schedule").json()
        assert body["required_total"] == 0
        assert body["weeks"] == []

    def test_toggling_every_monday_drops_the_weekday(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2025-01-06"})
        assert r.json()["exclude_dates"] == ["2025-01-06"]
        r = client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2025-01-13"})
        goal = r.json()
        assert goal["weekly_weekdays"] == [3, 5]
        assert goal["exclude_dates"] == []
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 4

    def test_toggle_weekday(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/toggle-weekday", json={"weekday": 2})
        assert r.json()["weekly_weekdays"] == [1, 2, 3, 5]
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 8

    def test_weekday_times(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.put(f"/goals/{goal_id}/weekdays/3/times", json={"times": ["19:00", "07:00"]})
        assert r.status_code == 200
        assert r.json()["weekly_time_settings"]["3"] == ["07:00", "19:00"]
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 8

    def test_weekday_out_of_range(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.put(f"/goals/{goal_id}/weekdays/7/times", json={"times": []})
        assert r.status_code == 422

    def test_override_calendar_event(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/calendar-events", json={"date": "2025-01-07", "time": "09:00"})
        assert r.status_code == 201
        event_id = r.json()["id"]
        assert r.json()["source"] == "override"
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 7

        assert client.delete(f"/goals/{goal_id}/calendar-events/{event_id}").status_code == 204
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 6

    def test_weekly_mirror_event_changes_nothing(self, client):
        goal_id = _create(client)["goal"]["id"]
        client.post(
            f"/goals/{goal_id}/calendar-events",
            json={"date": "2025-01-07", "time": "09:00", "source": "weekly"},
        )
        assert client.get(f"/goals/{goal_id}/schedule").json()["required_total"] == 6

    def test_delete_unknown_event(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.delete(f"/goals/{goal_id}/calendar-events/999999")
        assert r.status_code == 404
        assert r.json()["code"] == "CALENDAR_EVENT_NOT_FOUND"


class TestAchievement:
    def test_successes_capped_per_date(self, client):
        goal_id = _create(client)["goal"]["id"]
        _verify(client, goal_id, "2025-01-06T07:05:00+09:00")
        _verify(client, goal_id, "2025-01-06T07:30:00+09:00")
        _verify(client, goal_id, "2025-01-07T07:00:00+09:00")
        body = client.get(f"/goals/{goal_id}/achievement").json()
        assert body["required_total"] == 6
        assert body["total_achieved"] == 1
        assert body["achievement_percent"] == 17
        assert body["policy"] == "count_each"

    def test_timestamp_grouped_in_app_timezone(self, client):
        goal_id = _create(client)["goal"]["id"]
        # 22:30 UTC on the 5th is the morning of the 6th in Seoul
        _verify(client, goal_id, "2025-01-05T22:30:00Z")
        body = client.get(f"/goals/{goal_id}/achievement").json()
        assert body["total_achieved"] == 1

    def test_one_per_date_policy(self, client):
        goal_id = _create(client)["goal"]["id"]
        client.put(f"/goals/{goal_id}/weekdays/1/times", json={"times": ["07:00", "19:00"]})
        _verify(client, goal_id, "2025-01-06T07:00:00+09:00")
        _verify(client, goal_id, "2025-01-06T19:00:00+09:00")
        each = client.get(f"/goals/{goal_id}/achievement").json()
        once = client.get(f"/goals/{goal_id}/achievement", params={"policy": "one_per_date"}).json()
        assert each["total_achieved"] == 2
        assert once["total_achieved"] == 1
        assert once["policy"] == "one_per_date"

    def test_frequency_weeks(self, client):
        goal_id = _create(client, goal_type="frequency", per_week=2, weekdays=[], time=None)["goal"]["id"]
        _verify(client, goal_id, "2025-01-06T12:00:00+09:00")
        _verify(client, goal_id, "2025-01-07T12:00:00+09:00")
        body = client.get(f"/goals/{goal_id}/achievement").json()
        assert body["required_total"] == 4
        assert body["total_achieved"] == 2
        assert body["achievement_percent"] == 50
        assert body["frequency"]["reason"] == "1/2 weeks passed"

    def test_verification_for_foreign_quest(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.post(
            f"/goals/{goal_id}/verifications",
            json={"timestamp": "2025-01-06T07:00:00+09:00", "status": "success", "quest_id": 999999},
        )
        assert r.status_code == 404
        assert r.json()["code"] == "QUEST_NOT_FOUND"


class TestQuests:
    def test_list_is_chronological(self, client):
        goal_id = _create(client)["goal"]["id"]
        body = client.get(f"/goals/{goal_id}/quests").json()
        assert body["total"] == 6
        dates = [q["target_date"] for q in body["items"]]
        assert dates == sorted(dates)

    def test_status_update(self, client):
        quest = _create(client)["quests"][0]
        r = client.patch(f"/quests/{quest['id']}", json={"status": "completed"})
        assert r.status_code == 200
        assert r.json()["status"] == "completed"

    def test_invalid_status(self, client):
        quest = _create(client)["quests"][0]
        r = client.patch(f"/quests/{quest['id']}", json={"status": "done"})
        assert r.status_code == 422

    def test_regenerate_after_schedule_edit(self, client):
        body = _create(client)
        goal_id = body["goal"]["id"]
        monday = body["quests"][0]
        wednesday = body["quests"][1]
        client.patch(f"/quests/{monday['id']}", json={"status": "completed"})

        # Monday 6 and Wednesday 8 leave the schedule, Tuesday 7 joins it
        client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2025-01-06"})
        client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2025-01-08"})
        client.post(f"/goals/{goal_id}/toggle-date", json={"date": "2025-01-07"})

        r = client.post(f"/goals/{goal_id}/quests/regenerate")
        assert r.status_code == 200
        result = r.json()
        assert [q["target_date"] for q in result["created"]] == ["2025-01-07"]
        assert [q["id"] for q in result["retired"]] == [wednesday["id"]]
        assert result["retired"][0]["status"] == "skipped"
        assert result["kept"] == 5

        quests = {q["id"]: q for q in client.get(f"/goals/{goal_id}/quests").json()["items"]}
        assert quests[monday["id"]]["status"] == "completed"

    def test_regenerate_keeps_weekdays_without_times_manual(self, client):
        goal_id = _create(client)["goal"]["id"]
        r = client.post(f"/goals/{goal_id}/toggle-weekday", json={"weekday": 2})
        assert "2" not in r.json()["weekly_time_settings"]

        result = client.post(f"/goals/{goal_id}/quests/regenerate").json()
        assert [q["target_date"] for q in result["created"]] == ["2025-01-07", "2025-01-14"]
        for quest in result["created"]:
            assert quest["time"] is None
            assert quest["verification_rules"][0] == {"type": "time", "required": True, "config": {}}

    def test_regenerate_twice_is_a_no_op(self, client):
        goal_id = _create(client)["goal"]["id"]
        client.post(f"/goals/{goal_id}/quests/regenerate")
        result = client.post(f"/goals/{goal_id}/quests/regenerate").json()
        assert result["created"] == []
        assert result["retired"] == []
        assert result["kept"] == 6
