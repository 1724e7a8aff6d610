import uuid

import pytest


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/memories"),
        ("get", "/api/memories/stats"),
        ("get", "/api/albums"),
        ("post", "/api/albums"),
        ("get", "/api/admin/stats"),
        ("post", "/api/ai/generate-video"),
    ],
)
def test_protected_routes_require_token(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json() == {"error": "No token provided"}


def test_invalid_token_is_rejected(client):
    response = client.get("/api/memories", headers={"Authorization": "Bearer not-a-real-token"})
    assert response.status_code == 401
    assert "error" in response.json()


def test_non_bearer_scheme_is_rejected(client):
    response = client.get("/api/memories", headers={"Authorization": "Basic abc"})
    assert response.status_code == 401


def test_valid_token_without_profile_is_forbidden(client, identity):
    token = identity.issue(uuid.uuid4(), "ghost@example.com")
    response = client.get("/api/memories", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403
    assert response.json() == {"error": "Profile not found"}


def test_register_creates_profile_and_login_returns_session(client, identity):
    response = client.post(
        "/api/auth/register",
        json={"email": "ada@example.com", "password": "hunter22", "name": "Ada"},
    )
    assert response.status_code == 201
    assert identity.created[0]["email"] == "ada@example.com"

    login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "hunter22"})
    assert login.status_code == 200
    body = login.json()
    assert body["access_token"]
    assert body["user"]["email"] == "ada@example.com"
    assert body["user"]["name"] == "Ada"
    assert body["user"]["role"] == "user"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]
    assert me.json()["role"] == "user"


def test_register_duplicate_email_is_bad_request(client):
    payload = {"email": "dup@example.com", "password": "pw123456", "name": "Dup"}
    assert client.post("/api/auth/register", json=payload).status_code == 201
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    assert "already been registered" in response.json()["error"]


def test_login_with_bad_credentials(client):
    response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid login credentials"}


def test_login_is_rate_limited(client):
    payload = {"email": "nobody@example.com", "password": "x"}
    statuses = [client.post("/api/auth/login", json=payload).status_code for _ in range(11)]
    assert statuses[0] == 401
    assert statuses[-1] == 429
