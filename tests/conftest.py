import os

# must be set before the app module builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-for-signing-tokens-0123"
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("CLIENT_ORIGINS", None)

import pytest

from app import app as flask_app
from models import db


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, username="alice", email="alice@example.com", password="secret", **extra):
    payload = {"username": username, "email": email, "password": password, **extra}
    return client.post("/api/users/register", json=payload)


@pytest.fixture
def user(client):
    resp = register(client, firstName="Alice", lastName="Green")
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def auth_headers(client, user):
    resp = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}
