"""
Tests for the main application endpoints.
"""

def test_root_endpoint(client):
    """
    Test the root endpoint returns a welcome message.
    """
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert data["version"] == "1.0.0"


def test_health_check(client):
    """
    Test the health check endpoint returns a healthy status.
    """
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "database" in data


def test_responses_carry_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert "X-Process-Time" in response.headers


def test_unknown_token_is_reported_in_envelope(client):
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 200
    assert response.json() == {
        "success": False,
        "message": "Invalid or expired token",
        "code": "not_authenticated"
    }
