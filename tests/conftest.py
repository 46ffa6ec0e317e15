import asyncio
import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="finance-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_tmp, "test.db")
os.environ["UPLOAD_FOLDER"] = os.path.join(_tmp, "uploads")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
for key in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
    os.environ[key] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
from main import app  # noqa: E402

API = "/api/v1"


class Api:
    """Thin wrapper that prefixes paths and sends the user's bearer token."""

    def __init__(self, client, token):
        self.client = client
        self.token = token

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}

    def get(self, path, **kwargs):
        return self.client.get(API + path, headers=self.headers, **kwargs)

    def post(self, path, json=None, **kwargs):
        return self.client.post(API + path, json=json, headers=self.headers, **kwargs)

    def put(self, path, json=None, **kwargs):
        return self.client.put(API + path, json=json, headers=self.headers, **kwargs)

    def delete(self, path, **kwargs):
        return self.client.delete(API + path, headers=self.headers, **kwargs)

    def account(self, name="Checking", type="checking", balance=0.0, **extra):
        resp = self.post("/accounts", {"name": name, "type": type, "balance": balance, **extra})
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def transaction(self, account_id, type="expense", amount=10.0, category="Food", **extra):
        payload = {"account_id": account_id, "type": type, "amount": amount, "category": category, **extra}
        resp = self.post("/transactions", payload)
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def balance(self, account_id):
        return self.get(f"/accounts/{account_id}").json()["data"]["balance"]


def register(client, email="alice@example.com", name="Alice", password="secret123"):
    resp = client.post(f"{API}/auth/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["token"]


@pytest.fixture
def client():
    asyncio.run(database.drop_models())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api(client):
    return Api(client, register(client))


@pytest.fixture
def other_api(client):
    return Api(client, register(client, email="bob@example.com", name="Bob"))
