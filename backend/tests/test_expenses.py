from __future__ import annotations

from conftest import API, create_tracker, signup

from spentiva.db import models


def _categories(client, headers, tracker_id):
    resp = client.get(f"{API}/category/all", params={"trackerId": tracker_id}, headers=headers)
    return {c["name"]: c for c in resp.json()["data"]["categories"]}


def _create(client, headers, tracker_id, *rows):
    return client.post(f"{API}/expense/create", json={"trackerId": tracker_id, "expenses": list(rows)}, headers=headers)


def _row(amount=100, **extra):
    row = {"amount": amount, "category": "Food & Dining", "subcategory": "Groceries", "categoryId": 1}
    row.update(extra)
    return row


def test_batch_create_and_list(client, user):
    tracker = create_tracker(client, user["headers"])

    resp = _create(
        client, user["headers"], tracker["id"],
        _row(250.5, paymentMethod="UPI", timestamp="2024-03-01T10:00:00Z"),
        _row(40, type="income"),
    )
    assert resp.status_code == 200
    assert resp.json()["message"] == "2 expense(s) created successfully"
    first, second = resp.json()["data"]["expenses"]
    assert first["amount"] == 250.5
    assert first["paymentMethod"] == "UPI"
    assert first["currency"] == "INR"
    assert first["timestamp"].startswith("2024-03-01T10:00:00")
    assert first["createdByName"] == "Alice"
    assert second["type"] == "income"
    assert second["paymentMethod"] == "User not provided payment method"

    listed = client.get(f"{API}/expense/all", params={"trackerId": tracker["id"], "limit": 1}, headers=user["headers"])
    data = listed.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
    # newest timestamp first
    assert data["expenses"][0]["id"] == second["id"]


def test_batch_create_is_all_or_nothing(client, db_session, user):
    tracker = create_tracker(client, user["headers"])

    resp = _create(client, user["headers"], tracker["id"], _row(10), _row(-5))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Expense at index 1: Amount must be non-negative"
    assert db_session.query(models.Expense).count() == 0

    resp = _create(client, user["headers"], tracker["id"], {"amount": 5, "category": "Food & Dining"})
    assert resp.status_code == 400
    assert resp.json()["message"].startswith("Expense at index 0: Missing required fields")

    resp = _create(client, user["headers"], tracker["id"], _row("abc"))
    assert resp.json()["message"] == "Expense at index 0: Amount must be a number"


def test_batch_create_rejects_bad_shapes(client, user):
    tracker = create_tracker(client, user["headers"])

    empty = _create(client, user["headers"], tracker["id"])
    assert empty.status_code == 400
    assert empty.json()["message"] == "Expenses array cannot be empty"

    not_list = client.post(
        f"{API}/expense/create", json={"trackerId": tracker["id"], "expenses": {"amount": 1}}, headers=user["headers"]
    )
    assert not_list.status_code == 400
    assert not_list.json()["message"] == "Expenses must be an array"

    nested = _create(client, user["headers"], tracker["id"], _row(10), _row(20, description={"note": "x"}))
    assert nested.status_code == 400
    assert nested.json()["message"] == "Expense at index 1: description must be a string"

    listed = _create(client, user["headers"], tracker["id"], _row(10, paymentMethod=["UPI"]))
    assert listed.json()["message"] == "Expense at index 0: paymentMethod must be a string"

    rows = client.get(f"{API}/expense/all", params={"trackerId": tracker["id"]}, headers=user["headers"])
    assert rows.json()["data"]["pagination"]["total"] == 0


def test_shared_editor_creates_and_owner_is_notified(client, user, outbox):
    tracker = create_tracker(client, user["headers"], name="Family")
    bob_headers, _ = signup(client, email="bob@example.com", name="Bob")
    client.post(f"{API}/tracker/share/{tracker['id']}", json={"email": "bob@example.com", "role": "editor"}, headers=user["headers"])
    client.post(f"{API}/tracker/respond-invite/{tracker['id']}", json={"action": "accept"}, headers=bob_headers)
    outbox.clear()

    resp = _create(client, bob_headers, tracker["id"], _row(300))
    assert resp.status_code == 200
    assert [m["to"] for m in outbox] == [user["email"]]
    assert "Family" in outbox[0]["subject"]

    outbox.clear()
    _create(client, user["headers"], tracker["id"], _row(20))
    assert [m["to"] for m in outbox] == ["bob@example.com"]


def test_get_update_delete_expense(client, user):
    tracker = create_tracker(client, user["headers"])
    expense = _create(client, user["headers"], tracker["id"], _row(99)).json()["data"]["expenses"][0]

    got = client.get(f"{API}/expense/{expense['id']}", headers=user["headers"])
    assert got.json()["data"]["expense"]["amount"] == 99

    updated = client.put(
        f"{API}/expense/{expense['id']}",
        json={"amount": 120, "description": "weekly shop"},
        headers=user["headers"],
    )
    assert updated.status_code == 200
    data = updated.json()["data"]["expense"]
    assert data["amount"] == 120
    assert data["description"] == "weekly shop"
    assert data["lastUpdatedByName"] == "Alice"

    assert client.delete(f"{API}/expense/{expense['id']}", headers=user["headers"]).status_code == 200
    missing = client.get(f"{API}/expense/{expense['id']}", headers=user["headers"])
    assert missing.status_code == 404
    assert missing.json()["message"] == "Expense not found"


def test_bulk_delete_skips_foreign_rows(client, user):
    mine = create_tracker(client, user["headers"])
    eve_headers, _ = signup(client, email="eve@example.com", name="Eve")
    theirs = create_tracker(client, eve_headers)

    a, b = _create(client, user["headers"], mine["id"], _row(1), _row(2)).json()["data"]["expenses"]
    foreign = _create(client, eve_headers, theirs["id"], _row(3)).json()["data"]["expenses"][0]

    resp = client.post(
        f"{API}/expense/bulk-delete", json={"ids": [a["id"], b["id"], foreign["id"]]}, headers=user["headers"]
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"deletedCount": 2}
    assert client.get(f"{API}/expense/{foreign['id']}", headers=eve_headers).status_code == 200


def test_parse_returns_drafts_and_logs_usage(client, db_session, user):
    tracker = create_tracker(client, user["headers"])
    cats = _categories(client, user["headers"], tracker["id"])

    resp = client.post(
        f"{API}/expense/parse",
        json={"input": "spent 50 on lunch, taxi 150 cash", "trackerId": tracker["id"]},
        headers=user["headers"],
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    lunch, taxi = data["expenses"]
    assert lunch["amount"] == 50
    assert lunch["categoryId"] == cats["Food & Dining"]["id"]
    assert lunch["subcategory"] == "Restaurants"
    assert taxi["subcategory"] == "Taxi/Uber"
    assert taxi["paymentMethod"] == "Cash"
    assert data["usage"]["totalTokens"] == data["usage"]["userTokens"] + data["usage"]["aiTokens"]

    roles = [log.message_role.value for log in db_session.query(models.UsageLog).order_by(models.UsageLog.id)]
    assert roles == ["user", "assistant"]
    day = db_session.query(models.Usage).one()
    assert (day.total_messages, day.user_messages, day.ai_messages) == (2, 1, 1)


def test_parse_reports_missing_categories(client, db_session, user):
    tracker = create_tracker(client, user["headers"])

    resp = client.post(
        f"{API}/expense/parse",
        json={"input": "spent 500 on xyzzy", "trackerId": tracker["id"]},
        headers=user["headers"],
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Please add these categories first: xyzzy"
    assert body["data"] == {"missingCategories": ["xyzzy"]}
    # the exchange is still recorded
    assert db_session.query(models.UsageLog).count() == 2
