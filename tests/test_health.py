import time


def test_healthz(client):
    before = int(time.time() * 1000)
    resp = client.get("/healthz")

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["ts"] >= before


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.text == "R2 image compressor is running."


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Not Found"}
