from fastapi.testclient import TestClient

from mobileproxy.app.main import create_app


def test_health(client):
    client.post("/chat", json={"message": "hi", "userId": "u1"})

    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["components"]["rate_limiter"] == {"tracked_keys": 1, "max_per_window": 3}
    assert data["components"]["cache"] == {"entries": 1}
    assert data["components"]["generative"] == {"configured": True}


def test_health_before_startup():
    resp = TestClient(create_app()).get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "starting", "components": {}}


def test_unknown_route():
    resp = TestClient(create_app()).get("/nope")

    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_lifespan_builds_and_clears_state():
    app = create_app()

    with TestClient(app) as client:
        assert app.state.proxy is not None
        assert client.get("/health").json()["status"] == "ok"

    assert app.state.proxy is None
