"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from realite.main import app

client = TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "realite-engine"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when all services are healthy."""
    with (
        patch("realite.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("realite.routes.health.db_health_check", new=AsyncMock(return_value={"healthy": True})),
        patch("realite.routes.health.settings.JWT_SECRET", "test-secret"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["redis"]["ok"] is True
    assert checks["database"]["ok"] is True
    assert checks["configuration"]["ok"] is True
    assert isinstance(checks["redis"]["latency_ms"], (int, float))
    assert isinstance(checks["database"]["latency_ms"], (int, float))


def test_readyz_endpoint_redis_unhealthy():
    """Test readiness endpoint when Redis is down."""
    with (
        patch("realite.routes.health.fast_redis.ping", new=AsyncMock(return_value=False)),
        patch("realite.routes.health.db_health_check", new=AsyncMock(return_value={"healthy": True})),
        patch("realite.routes.health.settings.JWT_SECRET", "test-secret"),
    ):
        response = client.get("/readyz")

    # Should still return 200, but overall_ok should be False
    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_endpoint_database_unhealthy():
    """Test readiness endpoint when Postgres is down."""
    with (
        patch("realite.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch(
            "realite.routes.health.db_health_check",
            new=AsyncMock(return_value={"healthy": False, "error": "Connection failed"}),
        ),
        patch("realite.routes.health.settings.JWT_SECRET", "test-secret"),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["ok"] is False
    assert data["checks"]["database"]["error"] == "Connection failed"


def test_readyz_endpoint_database_check_raises():
    with (
        patch("realite.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("realite.routes.health.db_health_check", new=AsyncMock(side_effect=RuntimeError("pool closed"))),
        patch("realite.routes.health.settings.JWT_SECRET", "test-secret"),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "RuntimeError: pool closed"


def test_readyz_endpoint_missing_jwt_secret():
    """Test readiness endpoint when JWT secret is missing."""
    with (
        patch("realite.routes.health.fast_redis.ping", new=AsyncMock(return_value=True)),
        patch("realite.routes.health.db_health_check", new=AsyncMock(return_value={"healthy": True})),
        patch("realite.routes.health.settings.JWT_SECRET", None),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["configuration"]["ok"] is False
    assert "JWT_SECRET not set" in data["checks"]["configuration"]["issues"]
