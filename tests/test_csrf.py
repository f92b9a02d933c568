import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from marketplace.csrf import CSRFMiddleware, is_path_exempt


@pytest.fixture()
def client():
    app = FastAPI()
    app.add_middleware(CSRFMiddleware)

    @app.post("/api/things")
    def create_thing():
        return {"ok": True}

    @app.get("/api/things")
    def list_things():
        return []

    return TestClient(app)


def test_same_origin_post_is_allowed(client):
    assert client.post("/api/things", headers={"Origin": "http://testserver"}).status_code == 200


def test_cross_origin_post_is_rejected(client):
    response = client.post("/api/things", headers={"Origin": "https://evil.example"})

    assert response.status_code == 403
    assert response.json()["success"] is False


def test_referer_is_checked_when_origin_is_absent(client):
    ok = client.post("/api/things", headers={"Referer": "http://testserver/dashboard"})
    bad = client.post("/api/things", headers={"Referer": "https://evil.example/page"})

    assert ok.status_code == 200
    assert bad.status_code == 403


def test_origin_takes_precedence_over_referer(client):
    response = client.post(
        "/api/things",
        headers={"Origin": "https://evil.example", "Referer": "http://testserver/"},
    )

    assert response.status_code == 403


def test_requests_without_origin_headers_pass(client):
    assert client.post("/api/things").status_code == 200


def test_safe_methods_are_not_checked(client):
    assert client.get("/api/things", headers={"Origin": "https://evil.example"}).status_code == 200


def test_exempt_paths():
    assert is_path_exempt("/api/cron/verify-companies")
    assert is_path_exempt("/health")
    assert not is_path_exempt("/api/admin/providers/1/verification")
