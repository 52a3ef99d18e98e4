from __future__ import annotations

from datetime import datetime

import pytest
from conftest import API, create_tracker, signup

from spentiva.db import models
from spentiva.services import reports


@pytest.mark.parametrize(
    "args, now, expected",
    [
        # 2024-01-01 is a Monday
        (("daily", 9), datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 1, 9, 0)),
        (("daily", 9), datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 2, 9, 0)),
        (("weekly", 9, 3), datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 3, 9, 0)),
        (("weekly", 9, 1), datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 8, 9, 0)),
        (("weekly", 9, 0), datetime(2024, 1, 1, 8, 0), datetime(2024, 1, 7, 9, 0)),
        (("monthly", 9, None, 15), datetime(2024, 1, 10, 8, 0), datetime(2024, 1, 15, 9, 0)),
        (("monthly", 9, None, 15), datetime(2024, 1, 20, 8, 0), datetime(2024, 2, 15, 9, 0)),
    ],
)
def test_compute_next_run_in_utc(args, now, expected):
    frequency, hour, *rest = args
    dow = rest[0] if rest else None
    dom = rest[1] if len(rest) > 1 else None
    assert reports.compute_next_run(frequency, hour, dow, dom, tz="UTC", now=now) == expected


def test_compute_next_run_uses_schedule_timezone():
    # 05:30 in Kolkata; 09:00 local is 03:30 UTC the same day
    now = datetime(2024, 1, 1, 0, 0)
    assert reports.compute_next_run("daily", 9, tz="Asia/Kolkata", now=now) == datetime(2024, 1, 1, 3, 30)


def test_compute_next_run_rejects_unknown_frequency():
    with pytest.raises(ValueError):
        reports.compute_next_run("hourly", 9, tz="UTC", now=datetime(2024, 1, 1))


def test_schedule_crud(client, user):
    tracker = create_tracker(client, user["headers"], name="Home")

    missing_day = client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "weekly"},
        headers=user["headers"],
    )
    assert missing_day.status_code == 400
    assert missing_day.json()["message"] == "dayOfWeek is required for weekly reports"

    created = client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "daily", "hour": 8, "timezone": "UTC"},
        headers=user["headers"],
    )
    assert created.status_code == 200
    schedule = created.json()["data"]["schedule"]
    assert schedule["trackerName"] == "Home"
    assert schedule["userEmail"] == user["email"]
    assert schedule["enabled"] is True
    assert schedule["nextRunAt"]

    dup = client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "daily"},
        headers=user["headers"],
    )
    assert dup.status_code == 400

    bad_update = client.put(
        f"{API}/report-schedule/update/{schedule['id']}", json={"frequency": "monthly"}, headers=user["headers"]
    )
    assert bad_update.status_code == 400
    assert bad_update.json()["message"] == "dayOfMonth is required for monthly reports"

    updated = client.put(
        f"{API}/report-schedule/update/{schedule['id']}",
        json={"frequency": "monthly", "dayOfMonth": 5, "enabled": False},
        headers=user["headers"],
    )
    assert updated.status_code == 200
    data = updated.json()["data"]["schedule"]
    assert data["frequency"] == "monthly"
    assert data["dayOfMonth"] == 5
    assert data["enabled"] is False

    by_tracker = client.get(f"{API}/report-schedule/tracker/{tracker['id']}", headers=user["headers"])
    assert by_tracker.json()["data"]["schedule"]["id"] == schedule["id"]
    assert len(client.get(f"{API}/report-schedule/all", headers=user["headers"]).json()["data"]["schedules"]) == 1

    assert client.delete(f"{API}/report-schedule/delete/{schedule['id']}", headers=user["headers"]).status_code == 200
    gone = client.delete(f"{API}/report-schedule/delete/{schedule['id']}", headers=user["headers"])
    assert gone.status_code == 400
    assert gone.json()["message"] == "Schedule not found"


def test_schedule_rejects_unknown_timezone(client, user):
    tracker = create_tracker(client, user["headers"])
    resp = client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "daily", "timezone": "Mars/Olympus"},
        headers=user["headers"],
    )
    assert resp.status_code == 422


def test_tracker_rename_updates_schedule_name(client, db_session, user):
    tracker = create_tracker(client, user["headers"], name="Before")
    client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "daily"},
        headers=user["headers"],
    )
    client.put(f"{API}/tracker/update/{tracker['id']}", json={"name": "After"}, headers=user["headers"])

    schedule = client.get(f"{API}/report-schedule/tracker/{tracker['id']}", headers=user["headers"]).json()["data"]["schedule"]
    assert schedule["trackerName"] == "After"


def test_run_due_reports_sends_and_advances(client, db_session, user, outbox):
    tracker = create_tracker(client, user["headers"], name="Home")
    client.post(
        f"{API}/expense/create",
        json={
            "trackerId": tracker["id"],
            "expenses": [{"amount": 75, "category": "Food & Dining", "subcategory": "Groceries", "categoryId": 1}],
        },
        headers=user["headers"],
    )
    now = datetime.utcnow()
    due = models.ReportSchedule(
        user_id=user["id"],
        user_email=user["email"],
        tracker_id=tracker["id"],
        tracker_name="Home",
        frequency=models.ReportFrequency.daily,
        hour=9,
        timezone="UTC",
        enabled=True,
        next_run_at=datetime(2000, 1, 1),
    )
    db_session.add(due)
    db_session.commit()
    outbox.clear()

    assert reports.run_due_reports(db_session, now=now) == 1
    assert outbox[0]["to"] == user["email"]
    assert outbox[0]["subject"] == "Daily report - Home"
    assert "Food &amp; Dining" in outbox[0]["body"]

    db_session.refresh(due)
    assert due.last_sent_at == now
    assert due.next_run_at > now

    # nothing is due any more
    assert reports.run_due_reports(db_session, now=now) == 0


def test_disabled_schedules_are_skipped(db_session, client, user, outbox):
    tracker = create_tracker(client, user["headers"])
    db_session.add(
        models.ReportSchedule(
            user_id=user["id"],
            user_email=user["email"],
            tracker_id=tracker["id"],
            tracker_name=tracker["name"],
            frequency=models.ReportFrequency.daily,
            hour=9,
            timezone="UTC",
            enabled=False,
            next_run_at=datetime(2000, 1, 1),
        )
    )
    db_session.commit()
    outbox.clear()

    assert reports.run_due_reports(db_session) == 0
    assert outbox == []


def _shared_reader_schedule(client, user):
    tracker = create_tracker(client, user["headers"], name="Family")
    bob_headers, bob = signup(client, email="bob@example.com", name="Bob")
    client.post(f"{API}/tracker/share/{tracker['id']}", json={"email": "bob@example.com", "role": "viewer"}, headers=user["headers"])
    client.post(f"{API}/tracker/respond-invite/{tracker['id']}", json={"action": "accept"}, headers=bob_headers)
    created = client.post(
        f"{API}/report-schedule/create",
        json={"trackerId": tracker["id"], "frequency": "daily", "timezone": "UTC"},
        headers=bob_headers,
    )
    assert created.status_code == 200
    return tracker, bob, created.json()["data"]["schedule"]["id"]


def test_unshare_removes_reader_schedules(client, db_session, user, outbox):
    tracker, bob, _ = _shared_reader_schedule(client, user)

    resp = client.post(f"{API}/tracker/unshare/{tracker['id']}", json={"email": "bob@example.com"}, headers=user["headers"])
    assert resp.status_code == 200
    assert db_session.query(models.ReportSchedule).filter(models.ReportSchedule.user_id == bob["id"]).count() == 0

    outbox.clear()
    assert reports.run_due_reports(db_session, now=datetime(2100, 1, 1)) == 0
    assert outbox == []


def test_due_report_is_not_sent_after_access_is_lost(client, db_session, user, outbox):
    tracker, bob, schedule_id = _shared_reader_schedule(client, user)
    share = db_session.query(models.TrackerShare).filter(models.TrackerShare.tracker_id == tracker["id"]).one()
    db_session.delete(share)
    db_session.commit()
    outbox.clear()

    assert reports.run_due_reports(db_session, now=datetime(2100, 1, 1)) == 0
    assert outbox == []
    schedule = db_session.get(models.ReportSchedule, schedule_id)
    assert schedule.enabled is False
