from __future__ import annotations

from datetime import date, datetime, timedelta

from conftest import API, create_tracker

from spentiva.db import models
from spentiva.services import usage_logs


def _log(client, headers, tracker, role="user", content="hello there", tokens=5, timestamp=None):
    body = {
        "trackerSnapshot": {"trackerId": tracker["id"], "trackerName": tracker["name"], "trackerType": tracker["type"]},
        "messageRole": role,
        "messageContent": content,
        "tokenCount": tokens,
    }
    if timestamp:
        body["timestamp"] = timestamp
    resp = client.post(f"{API}/usage-logs/", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["log"]


def test_estimate_tokens():
    assert usage_logs.estimate_tokens("") == 0
    assert usage_logs.estimate_tokens("one") == 1
    assert usage_logs.estimate_tokens("one two three") == 4


def test_create_log_updates_daily_aggregate(client, db_session, user):
    tracker = create_tracker(client, user["headers"])
    log = _log(client, user["headers"], tracker, tokens=7)
    _log(client, user["headers"], tracker, role="assistant", tokens=3)

    assert log["trackerSnapshot"]["trackerName"] == tracker["name"]
    assert log["trackerSnapshot"]["isDeleted"] is False
    day = db_session.query(models.Usage).one()
    assert (day.total_messages, day.user_messages, day.ai_messages, day.total_tokens) == (2, 1, 1, 10)

    listed = client.get(f"{API}/usage-logs/", params={"trackerId": tracker["id"]}, headers=user["headers"])
    assert listed.json()["data"]["count"] == 2


def test_overview_and_graphs(client, user):
    home = create_tracker(client, user["headers"], name="Home")
    work = create_tracker(client, user["headers"], name="Work", type="business")
    _log(client, user["headers"], home)
    _log(client, user["headers"], work)
    _log(client, user["headers"], work, role="assistant")

    overview = client.get(f"{API}/usage/overview", headers=user["headers"]).json()["data"]
    assert overview["overall"] == {"totalMessages": 3, "totalTokens": 15, "userMessages": 2, "aiMessages": 1}
    assert [t["trackerName"] for t in overview["byTracker"]] == ["Work", "Home"]
    assert len(overview["recentActivity"]) == 30
    assert overview["recentActivity"][-1]["messages"] == 3

    graphs = client.get(f"{API}/usage/graphs", headers=user["headers"]).json()["data"]
    assert sum(p["tokens"] for p in graphs["daily"]) == 15


def test_daily_series_is_zero_filled(db_session, client, user):
    tracker = create_tracker(client, user["headers"])
    snapshot = usage_logs.create_tracker_snapshot(db_session.get(models.Tracker, tracker["id"]))
    today = date(2024, 5, 10)
    usage_logs.create_log(db_session, user["id"], snapshot, "user", "a", 2, timestamp=datetime(2024, 5, 8, 12))
    db_session.commit()

    series = usage_logs.daily_series(db_session, user["id"], days=3, today=today)
    assert series == [
        {"label": "2024-05-08", "messages": 1, "tokens": 2},
        {"label": "2024-05-09", "messages": 0, "tokens": 0},
        {"label": "2024-05-10", "messages": 0, "tokens": 0},
    ]


def test_tracker_stats_survive_tracker_deletion(client, user):
    tracker = create_tracker(client, user["headers"], name="Trip")
    _log(client, user["headers"], tracker)

    client.delete(f"{API}/tracker/delete/{tracker['id']}", headers=user["headers"])

    stats = client.get(f"{API}/usage/tracker/{tracker['id']}/stats", headers=user["headers"]).json()["data"]
    assert stats["tracker"]["trackerName"] == "Trip"
    assert stats["tracker"]["isDeleted"] is True
    assert stats["stats"]["totalMessages"] == 1
    assert len(stats["messages"]) == 1


def test_tracker_stats_without_usage(client, user):
    tracker = create_tracker(client, user["headers"], name="Fresh")
    stats = client.get(f"{API}/usage/tracker/{tracker['id']}/stats", headers=user["headers"]).json()["data"]
    assert stats["tracker"]["trackerName"] == "Fresh"
    assert stats["stats"]["totalMessages"] == 0

    unknown = client.get(f"{API}/usage/tracker/999999/stats", headers=user["headers"])
    assert unknown.status_code == 400


def test_tracker_logs_are_paginated(client, user):
    tracker = create_tracker(client, user["headers"])
    for i in range(3):
        _log(client, user["headers"], tracker, content=f"message {i}")

    page = client.get(
        f"{API}/usage/tracker/{tracker['id']}/logs", params={"limit": 2, "offset": 0}, headers=user["headers"]
    ).json()["data"]
    assert page["totalCount"] == 3
    assert page["hasMore"] is True
    assert len(page["logs"]) == 2

    rest = client.get(
        f"{API}/usage/tracker/{tracker['id']}/logs", params={"limit": 2, "offset": 2}, headers=user["headers"]
    ).json()["data"]
    assert rest["hasMore"] is False


def test_cleanup_and_delete(client, user):
    tracker = create_tracker(client, user["headers"])
    old = (datetime.utcnow() - timedelta(days=120)).isoformat()
    _log(client, user["headers"], tracker, timestamp=old)
    _log(client, user["headers"], tracker)

    cleaned = client.delete(f"{API}/usage-logs/cleanup", params={"daysOld": 90}, headers=user["headers"])
    assert cleaned.json()["data"] == {"deletedCount": 1}
    assert cleaned.json()["message"] == "Deleted 1 logs older than 90 days"

    by_tracker = client.delete(f"{API}/usage-logs/tracker/{tracker['id']}", headers=user["headers"]).json()["data"]
    assert by_tracker["usageLogsDeleted"] == 1
    assert by_tracker["dailyUsageDeleted"] == 2
    assert by_tracker["totalDeleted"] == 3

    everything = client.delete(f"{API}/usage-logs/user", headers=user["headers"]).json()["data"]
    assert everything["totalDeleted"] == 0
