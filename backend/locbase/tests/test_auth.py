import uuid

from .conftest import client
from locbase.auth import get_password_hash, verify_password


def test_register_and_login(client):
    email = f"{uuid.uuid4()}@example.com"
    resp = client.post("/api/auth/register", json={"email": email, "password": "secret", "full_name": "Ada"})
    assert resp.status_code == 200
    assert resp.json()["token_type"] == "bearer"

    dup = client.post("/api/auth/register", json={"email": email, "password": "secret"})
    assert dup.status_code == 400

    login = client.post("/api/auth/login", json={"email": email, "password": "secret"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == email
    assert me.json()["full_name"] == "Ada"


def test_login_with_wrong_password(client):
    email = f"{uuid.uuid4()}@example.com"
    client.post("/api/auth/register", json={"email": email, "password": "secret"})
    resp = client.post("/api/auth/login", json={"email": email, "password": "wrong"})
    assert resp.status_code == 401


def test_invalid_token(client):
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert client.get("/api/auth/me").status_code == 401


def test_password_hashing():
    hashed = get_password_hash("secret")
    assert hashed.startswith("pbkdf2_sha256$")
    assert hashed != get_password_hash("secret")
    assert verify_password("secret", hashed)
    assert not verify_password("other", hashed)
    assert not verify_password("secret", "garbage")


def test_metrics_endpoint(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "request_count" in resp.text
