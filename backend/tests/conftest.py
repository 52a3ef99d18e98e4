from __future__ import annotations

import os
import tempfile

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REPORT_SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="spentiva-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import spentiva.db.models  # noqa: F401  # Ensure models are registered with metadata
from spentiva.db import models
from spentiva.db.base import Base
from spentiva.db.session import get_db
from spentiva.main import app
from spentiva.services import mailer

API = "/v1/api"


@pytest.fixture(scope="session")
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def outbox(monkeypatch):
    """Captures every email instead of talking to SMTP."""
    sent = []

    def fake_send(to, subject, html_body):
        sent.append({"to": to, "subject": subject, "body": html_body})
        return True

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return sent


def signup(client, email="alice@example.com", name="Alice", password="secret123"):
    resp = client.post(f"{API}/auth/signup", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 200, resp.text
    body = resp.json()["data"]
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


def make_admin(db_session, user_id):
    user = db_session.get(models.User, user_id)
    user.role = models.UserRole.admin
    db_session.commit()
    return user


def create_tracker(client, headers, name="Home", type="personal", currency="INR"):
    resp = client.post(f"{API}/tracker/create", json={"name": name, "type": type, "currency": currency}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["tracker"]


def latest_otp(db_session, email, purpose):
    return (
        db_session.query(models.Otp)
        .filter(models.Otp.identifier == email, models.Otp.purpose == purpose, models.Otp.verified.is_(False))
        .order_by(models.Otp.id.desc())
        .first()
    )


@pytest.fixture()
def user(client):
    headers, data = signup(client)
    return {"headers": headers, **data}


@pytest.fixture()
def admin(client, db_session):
    headers, data = signup(client, email="admin@example.com", name="Admin")
    make_admin(db_session, data["id"])
    return {"headers": headers, **data}


def payment_body(payment_id="pay_1", **extra):
    body = {
        "paymentId": payment_id,
        "paymentUsing": "Credit Card",
        "cardStore": {"token": "tok_x", "last4": "4242", "brand": "visa", "expiryMonth": 12, "expiryYear": 2030},
        "userSelectedPlan": "pro",
        "planDuration": "monthly",
        "paymentCountry": "in",
        "amount": 499,
        "currency": "INR",
        "paymentType": "subscription",
    }
    body.update(extra)
    return body
