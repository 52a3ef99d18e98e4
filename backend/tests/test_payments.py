from __future__ import annotations

from datetime import datetime, timedelta

from conftest import API, payment_body, signup

from spentiva.db import models


def test_create_payment_starts_initiated(client, user):
    resp = client.post(f"{API}/payment/", json=payment_body(), headers=user["headers"])
    assert resp.status_code == 200
    p = resp.json()["data"]["payment"]
    assert p["paymentState"] == "initiated"
    assert p["paymentStateReason"] == "Payment initiated"
    assert p["paymentCountry"] == "IN"
    assert p["userId"] == user["id"]
    assert p["cardStore"]["last4"] == "4242"
    assert p["paymentDate"] is None

    dup = client.post(f"{API}/payment/", json=payment_body(), headers=user["headers"])
    assert dup.status_code == 400
    assert dup.json()["message"] == "Payment with this ID already exists"


def test_non_admin_cannot_pay_for_someone_else(client, user, admin):
    resp = client.post(f"{API}/payment/", json=payment_body(userId=admin["id"]), headers=user["headers"])
    assert resp.status_code == 403

    on_behalf = client.post(f"{API}/payment/", json=payment_body("pay_2", userId=user["id"]), headers=admin["headers"])
    assert on_behalf.status_code == 200
    assert on_behalf.json()["data"]["payment"]["userId"] == user["id"]


def test_owner_cannot_settle_own_payment(client, user):
    client.post(f"{API}/payment/", json=payment_body(amount=0.01, userSelectedPlan="businesspro"), headers=user["headers"])

    for state in ("success", "processing", "failed"):
        resp = client.patch(f"{API}/payment/pay_1/state", json={"state": state, "reason": "x"}, headers=user["headers"])
        assert resp.status_code == 403
        assert resp.json()["message"] == f"Only an admin can mark a payment as {state}"

    me = client.get(f"{API}/auth/me", headers=user["headers"]).json()["data"]["user"]
    assert me["accountType"] == "free"

    cancel = client.patch(
        f"{API}/payment/pay_1/state", json={"state": "cancelled", "reason": "changed mind"}, headers=user["headers"]
    )
    assert cancel.status_code == 200
    assert cancel.json()["data"]["payment"]["paymentState"] == "cancelled"


def test_success_upgrades_account_and_is_terminal(client, user, admin):
    client.post(f"{API}/payment/", json=payment_body(userSelectedPlan="businesspro"), headers=user["headers"])

    ok = client.patch(
        f"{API}/payment/pay_1/state", json={"state": "success", "reason": "Captured"}, headers=admin["headers"]
    )
    assert ok.status_code == 200
    p = ok.json()["data"]["payment"]
    assert p["paymentState"] == "success"
    assert p["paymentDate"] is not None

    me = client.get(f"{API}/auth/me", headers=user["headers"]).json()["data"]["user"]
    assert me["accountType"] == "businesspro"

    back = client.patch(
        f"{API}/payment/pay_1/state", json={"state": "processing", "reason": "retry"}, headers=admin["headers"]
    )
    assert back.status_code == 400
    assert back.json()["message"] == "Cannot change payment state from success to processing"

    cancel = client.patch(
        f"{API}/payment/pay_1/state", json={"state": "cancelled", "reason": "refunded"}, headers=user["headers"]
    )
    assert cancel.status_code == 400

    by_admin = client.patch(
        f"{API}/payment/pay_1/state", json={"state": "cancelled", "reason": "refunded"}, headers=admin["headers"]
    )
    assert by_admin.status_code == 200


def test_payments_are_private(client, user):
    client.post(f"{API}/payment/", json=payment_body(), headers=user["headers"])
    eve_headers, eve = signup(client, email="eve@example.com", name="Eve")

    assert client.get(f"{API}/payment/pay_1", headers=eve_headers).status_code == 404
    assert client.get(f"{API}/payment/user/{user['id']}", headers=eve_headers).status_code == 403

    mine = client.get(f"{API}/payment/user/{user['id']}", headers=user["headers"])
    assert mine.json()["data"]["count"] == 1

    assert client.get(f"{API}/payment/", headers=user["headers"]).status_code == 403


def test_admin_listing_and_stats(client, user, admin):
    client.post(f"{API}/payment/", json=payment_body("a", amount=100), headers=user["headers"])
    client.post(f"{API}/payment/", json=payment_body("b", amount=250), headers=user["headers"])
    client.post(f"{API}/payment/", json=payment_body("c", amount=50), headers=user["headers"])
    client.patch(f"{API}/payment/a/state", json={"state": "success", "reason": "ok"}, headers=admin["headers"])
    client.patch(f"{API}/payment/b/state", json={"state": "failed", "reason": "declined"}, headers=admin["headers"])

    stats = client.get(f"{API}/payment/stats", headers=admin["headers"]).json()["data"]
    assert stats == {
        "totalPayments": 3,
        "totalAmount": 100.0,
        "successPayments": 1,
        "failedPayments": 1,
        "pendingPayments": 1,
    }

    listed = client.get(f"{API}/payment/", params={"state": "failed"}, headers=admin["headers"]).json()["data"]
    assert listed["total"] == 1
    assert listed["payments"][0]["paymentId"] == "b"


def test_expire_pending_payments(client, db_session, user, admin):
    client.post(f"{API}/payment/", json=payment_body("old"), headers=user["headers"])
    client.post(f"{API}/payment/", json=payment_body("fresh"), headers=user["headers"])
    old = db_session.query(models.Payment).filter(models.Payment.payment_id == "old").one()
    old.created_at = datetime.utcnow() - timedelta(hours=2)
    db_session.commit()

    resp = client.post(f"{API}/payment/expire-pending", params={"expiryMinutes": 30}, headers=admin["headers"])
    assert resp.status_code == 200
    assert resp.json()["data"] == {"expiredCount": 1}

    old_state = client.get(f"{API}/payment/old", headers=user["headers"]).json()["data"]["payment"]
    assert old_state["paymentState"] == "expired"
    assert old_state["paymentStateReason"] == "Payment expired after 30 minutes"
    fresh = client.get(f"{API}/payment/fresh", headers=user["headers"]).json()["data"]["payment"]
    assert fresh["paymentState"] == "initiated"


def test_delete_payment(client, user):
    client.post(f"{API}/payment/", json=payment_body(), headers=user["headers"])
    assert client.delete(f"{API}/payment/pay_1", headers=user["headers"]).status_code == 200
    assert client.get(f"{API}/payment/pay_1", headers=user["headers"]).status_code == 404
