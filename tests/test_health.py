# tests/test_health.py
from fastapi.testclient import TestClient
from ridemap.main import app


client = TestClient(app)


def test_health_check():
    response = client.get("/health/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "app" in data
    assert "version" in data
    assert "environment" in data
    assert isinstance(data["routing_key_configured"], bool)
