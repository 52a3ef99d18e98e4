from __future__ import annotations

from datetime import datetime

import pytest
from conftest import API, create_tracker, signup

from spentiva.services import analytics


def _expense(amount, category="Food & Dining", sub="Groceries", method="UPI", ts=None, type="expense", category_id=1):
    row = {
        "amount": amount,
        "category": category,
        "subcategory": sub,
        "categoryId": category_id,
        "paymentMethod": method,
        "type": type,
    }
    if ts:
        row["timestamp"] = ts
    return row


@pytest.fixture()
def seeded(client, user):
    tracker = create_tracker(client, user["headers"])
    rows = [
        _expense(100),
        _expense(300, category="Transportation", sub="Fuel", method="Cash", category_id=2),
        _expense(200, method="Cash"),
        _expense(5000, category="Income", sub="Salary", type="income"),
    ]
    resp = client.post(f"{API}/expense/create", json={"trackerId": tracker["id"], "expenses": rows}, headers=user["headers"])
    assert resp.status_code == 200
    return tracker


def test_get_date_range_named_filters():
    now = datetime(2024, 3, 15, 12, 30)

    start, end = analytics.get_date_range("today", now=now)
    assert start == datetime(2024, 3, 15)
    assert end.date() == now.date() and end.hour == 23

    start, end = analytics.get_date_range("lastMonth", now=now)
    assert start == datetime(2024, 2, 1)
    assert end.date() == datetime(2024, 2, 29).date()

    start, end = analytics.get_date_range("thisYear", now=now)
    assert start == datetime(2024, 1, 1) and end == now

    assert analytics.get_date_range("all", now=now) == (None, now)
    assert analytics.get_date_range(None, now=now) == (datetime(2024, 3, 1), now)

    start, end = analytics.get_date_range("lastMonth", now=datetime(2024, 1, 5))
    assert start == datetime(2023, 12, 1)


def test_custom_range_covers_whole_end_day():
    start, end = analytics.get_date_range("custom", "2024-01-01", "2024-01-31")
    assert start == datetime(2024, 1, 1)
    assert end.date() == datetime(2024, 1, 31).date() and end.hour == 23


def test_summary_counts_only_expenses(client, user, seeded):
    data = client.get(f"{API}/analytics/summary", params={"trackerId": seeded["id"]}, headers=user["headers"]).json()["data"]
    assert data == {"totalExpenses": 600.0, "transactionCount": 3, "averageExpense": 200.0}


def test_by_category_and_payment_method(client, user, seeded):
    params = {"trackerId": seeded["id"], "filter": "thisMonth"}
    cats = client.get(f"{API}/analytics/by-category", params=params, headers=user["headers"]).json()["data"]
    # equal totals, so order between the two is not fixed
    assert sorted(cats, key=lambda c: c["category"]) == [
        {"category": "Food & Dining", "total": 300.0, "count": 2},
        {"category": "Transportation", "total": 300.0, "count": 1},
    ]

    methods = client.get(f"{API}/analytics/by-expense-from", params=params, headers=user["headers"]).json()["data"]
    assert methods[0] == {"paymentMethod": "Cash", "total": 500.0, "count": 2}

    filtered = client.get(
        f"{API}/analytics/summary", params={**params, "categoryId": 2}, headers=user["headers"]
    ).json()["data"]
    assert filtered["totalExpenses"] == 300.0


def test_by_month_and_total(client, user):
    tracker = create_tracker(client, user["headers"])
    rows = [_expense(10, ts="2023-02-10T10:00:00"), _expense(20, ts="2023-02-20T10:00:00"), _expense(5, ts="2023-07-01T10:00:00")]
    client.post(f"{API}/expense/create", json={"trackerId": tracker["id"], "expenses": rows}, headers=user["headers"])

    months = client.get(
        f"{API}/analytics/by-month", params={"year": 2023, "trackerId": tracker["id"]}, headers=user["headers"]
    ).json()["data"]
    assert months == [{"month": 2, "total": 30.0, "count": 2}, {"month": 7, "total": 5.0, "count": 1}]

    total = client.get(f"{API}/analytics/total", params={"trackerId": tracker["id"]}, headers=user["headers"]).json()["data"]
    assert total == {"total": 35.0}

    this_month = client.get(
        f"{API}/analytics/total", params={"trackerId": tracker["id"], "filter": "thisMonth"}, headers=user["headers"]
    ).json()["data"]
    assert this_month == {"total": 0.0}


def test_without_tracker_aggregates_all_readable(client, user, seeded):
    other = create_tracker(client, user["headers"], name="Second")
    client.post(f"{API}/expense/create", json={"trackerId": other["id"], "expenses": [_expense(50)]}, headers=user["headers"])

    data = client.get(f"{API}/analytics/summary", headers=user["headers"]).json()["data"]
    assert data["totalExpenses"] == 650.0

    eve_headers, _ = signup(client, email="eve@example.com", name="Eve")
    empty = client.get(f"{API}/analytics/summary", headers=eve_headers).json()["data"]
    assert empty == {"totalExpenses": 0, "transactionCount": 0, "averageExpense": 0}


def test_invalid_filter_is_rejected(client, user):
    resp = client.get(f"{API}/analytics/summary", params={"filter": "fortnight"}, headers=user["headers"])
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid filter: fortnight"


def test_email_report_is_queued(client, user, seeded, outbox):
    outbox.clear()
    resp = client.post(
        f"{API}/analytics/email-report", json={"trackerId": seeded["id"], "filter": "thisMonth"}, headers=user["headers"]
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"email": user["email"], "filter": "thisMonth"}
    assert outbox[0]["to"] == user["email"]
    assert "600.00" in outbox[0]["body"]
