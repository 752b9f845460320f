import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from locbase.main import app
from locbase.database import Base, build_engine, get_db

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email: str | None = None, password: str = "secret"):
    """Register a fresh user and return (headers, user id)."""

    email = email or f"user-{uuid.uuid4()}@example.com"
    resp = client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    me = client.get("/api/auth/me", headers=headers)
    return headers, me.json()["id"]


def create_project(client, headers, languages=(("en", "English"), ("de", "German"), ("fr", "French"))):
    """Create a project with ``languages``; the first one becomes the base language."""

    resp = client.post("/api/projects", json={"name": "Web app"}, headers=headers)
    assert resp.status_code == 200, resp.text
    project = resp.json()
    langs = {}
    for tag, name in languages:
        r = client.post(
            f"/api/projects/{project['id']}/languages",
            json={"tag": tag, "name": name},
            headers=headers,
        )
        assert r.status_code == 200, r.text
        langs[tag] = r.json()
    return project, langs


def grant(client, headers, project_id, user_id, permission_type, **language_ids):
    payload = {"user_id": user_id, "type": permission_type}
    payload.update(language_ids)
    resp = client.put(f"/api/projects/{project_id}/permissions", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def set_translations(client, headers, project_id, key, translations, **extra):
    payload = {"key": key, "translations": translations}
    payload.update(extra)
    return client.post(f"/api/projects/{project_id}/translations", json=payload, headers=headers)


@pytest.fixture
def owner(client):
    return register(client)


@pytest.fixture
def project(client, owner):
    headers, _ = owner
    return create_project(client, headers)
