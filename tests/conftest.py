"""Shared fixtures: a Flask app on a throwaway SQLite file and a registered user."""

from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import update

from balance_tracker.auth import register_user
from balance_tracker.config import AppConfig
from balance_tracker.db import drop_db
from balance_tracker.models import User, db
from balance_tracker.webapp import create_app

USERNAME = "alice"
PASSWORD = "Secret_123"
SECURITY_ANSWER = "Fluffy"


@pytest.fixture
def app(tmp_path):
    cfg = AppConfig(database_url=f"sqlite:///{tmp_path / 'test.db'}", secret_key="test-secret")
    app = create_app(cfg, overrides={"TESTING": True})
    yield app
    with app.app_context():
        db.session.remove()
        drop_db()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that call the core functions directly."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def backdate(app):
    """Return a helper that rewrites ``created_at`` of a row."""

    def _backdate(model, obj_id: int, when: dt.datetime) -> None:
        db.session.execute(update(model).where(model.id == obj_id).values(created_at=when))
        db.session.commit()

    return _backdate


@pytest.fixture
def user_id(app):
    with app.app_context():
        user = register_user(USERNAME, PASSWORD, "Alice", "alice@example.com", "Pet name?", SECURITY_ANSWER)
        uid = user.id
        db.session.execute(update(User).where(User.id == uid).values(created_at=dt.datetime(2025, 1, 15, 9, 0)))
        db.session.commit()
    return uid


@pytest.fixture
def logged_in_client(client, user_id):
    resp = client.post("/auth/login", json={"username": USERNAME, "password": PASSWORD})
    assert resp.status_code == 200
    return client
