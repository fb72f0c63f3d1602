from fastapi.testclient import TestClient

from edurecords import crud


def test_unhandled_error_uses_server_error_envelope(app, admin_headers, monkeypatch):
    def broken_listing(db):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(crud, "get_batches", broken_listing)
    # The catch-all handler answers, then Starlette re-raises for the server log
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get("/api/batches", headers=admin_headers)

    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}

def test_http_errors_use_message_envelope(client, admin_headers):
    response = client.get("/api/teachers/999", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"message": "Teacher not found"}

def test_unauthenticated_keeps_bearer_challenge(client):
    response = client.get("/api/batches")
    assert response.status_code == 401
    assert set(response.json()) == {"message"}
    assert response.headers["www-authenticate"] == "Bearer"

def test_request_validation_errors_are_flattened(client, admin_headers):
    response = client.post("/api/batches", json={"name": "A"}, headers=admin_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert "course" in body["fields"]
