import pytest
from fastapi.testclient import TestClient

from api.app.core.cors import OriginPolicy
from api.app.main import create_app
from tests.fakes import make_settings


def test_policy_allows_listed_origins_only():
    policy = OriginPolicy.build(["https://app.flutterflow.io", "http://localhost:3000/"])
    assert policy.is_allowed("https://app.flutterflow.io")
    assert policy.is_allowed("http://localhost:3000")
    assert policy.is_allowed("HTTPS://APP.FLUTTERFLOW.IO/")
    assert not policy.is_allowed("https://evil.example.com")


@pytest.mark.parametrize("origin", [None, ""])
def test_policy_allows_requests_without_origin(origin):
    assert OriginPolicy.build([]).is_allowed(origin)


def test_development_allows_everything():
    policy = OriginPolicy.from_settings(make_settings(env_name="development", allowed_origins=""))
    assert policy.allow_all
    assert policy.is_allowed("https://anything.example.com")


def test_default_origins():
    policy = OriginPolicy.from_settings(make_settings())
    assert not policy.allow_all
    assert policy.is_allowed("https://r2-image-compressor.onrender.com")


def test_disallowed_origin_is_rejected(client):
    resp = client.get("/healthz", headers={"Origin": "https://evil.example.com"})
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "error": "Not allowed by CORS"}


def test_allowed_origin_gets_cors_headers(client):
    resp = client.get("/healthz", headers={"Origin": "https://app.flutterflow.io"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://app.flutterflow.io"


def test_preflight_for_allowed_origin(client):
    resp = client.options(
        "/",
        headers={
            "Origin": "https://app.flutterflow.io",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://app.flutterflow.io"
    assert "POST" in resp.headers["access-control-allow-methods"]


def test_preflight_for_disallowed_origin(client):
    resp = client.options(
        "/",
        headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert resp.status_code == 403


def test_dev_mode_echoes_any_origin():
    app = create_app(make_settings(env_name="development"))
    with TestClient(app) as dev_client:
        resp = dev_client.get("/healthz", headers={"Origin": "https://preview.example.dev"})
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://preview.example.dev"
