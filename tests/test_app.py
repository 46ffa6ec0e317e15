def test_root_and_health(client):
    assert client.get("/").status_code == 200
    health = client.get("/health").json()
    assert health["status"] == "success"
    assert health["database"] == "available"
    assert health["using_sqlite_fallback"] is True


def test_unknown_route(client):
    resp = client.get("/api/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Cannot find /api/v1/nothing-here on this server"}


def test_error_bodies_share_one_shape(client):
    from schemas import ErrorOut

    unauthorized = client.get("/api/v1/accounts")
    invalid = client.post("/api/v1/auth/register", json={"email": "not-an-email"})
    for resp in (unauthorized, invalid):
        body = resp.json()
        assert set(body) == set(ErrorOut.model_fields)
        assert body["success"] is False
