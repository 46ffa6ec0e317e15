from datetime import timedelta

from conftest import API, Api, register
from security import create_access_token


def test_register_returns_token_and_me_returns_user(client):
    token = register(client)
    resp = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["email"] == "alice@example.com"
    assert body["data"]["role"] == "user"
    assert "password_hash" not in body["data"]


def test_register_duplicate_email(client):
    register(client)
    resp = client.post(
        f"{API}/auth/register", json={"name": "Again", "email": "alice@example.com", "password": "secret123"}
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Email already registered"}


def test_register_validation_error_is_400(client):
    resp = client.post(f"{API}/auth/register", json={"name": "A", "email": "a@example.com", "password": "123"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "password" in body["error"]


def test_login(client):
    register(client)
    resp = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert resp.status_code == 200
    assert resp.json()["token"]

    bad = client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "Invalid credentials"


def test_missing_token(client):
    resp = client.get(f"{API}/accounts")
    assert resp.status_code == 401
    assert resp.json()["error"] == "Not authorized to access this route"


def test_invalid_token(client):
    resp = client.get(f"{API}/budgets", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid token"


def test_expired_token(api):
    user_id = api.get("/auth/me").json()["data"]["id"]
    expired = create_access_token({"sub": str(user_id)}, expires_delta=timedelta(seconds=-5))
    resp = api.client.get(f"{API}/transactions", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Token expired"


def test_token_for_unknown_user(client):
    token = create_access_token({"sub": "9999"})
    resp = client.get(f"{API}/categories", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "No user found with this id"


def test_update_details(api, other_api):
    resp = api.put("/auth/updatedetails", {"name": "Alice Smith"})
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Alice Smith"
    assert resp.json()["data"]["email"] == "alice@example.com"

    taken = api.put("/auth/updatedetails", {"email": "bob@example.com"})
    assert taken.status_code == 400


def test_update_password(api):
    wrong = api.put("/auth/updatepassword", {"current_password": "bad", "new_password": "newsecret"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "Password is incorrect"

    resp = api.put("/auth/updatepassword", {"current_password": "secret123", "new_password": "newsecret"})
    assert resp.status_code == 200
    fresh = Api(api.client, resp.json()["token"])
    assert fresh.get("/auth/me").status_code == 200

    login = api.client.post(f"{API}/auth/login", json={"email": "alice@example.com", "password": "newsecret"})
    assert login.status_code == 200
