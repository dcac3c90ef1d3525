"""Tests for /admin endpoint.

Configuration visibility for operators.
"""

import pytest
from fastapi.testclient import TestClient


class TestAdminEndpoint:
    """Tests for /admin configuration endpoint."""

    def test_admin_returns_all_config_categories(self):
        """Admin endpoint returns all configuration categories."""
        from app.main import app
        client = TestClient(app)

        response = client.get("/admin")
        assert response.status_code == 200

        data = response.json()
        for category in ("normative", "configurable", "policy", "verifier", "operational", "environment"):
            assert category in data

    def test_admin_normative_config(self):
        """Admin endpoint returns circuit constants."""
        from app.main import app
        client = TestClient(app)

        normative = client.get("/admin").json()["normative"]
        assert normative["attestation_id"].isdigit()
        assert normative["pubkey_word_size_bits"] == 64
        assert normative["pubkey_word_count"] == 32
        assert {"circuit": "prove", "version": 1, "arity": 45} in normative["circuits"]

    def test_admin_verifier_config(self):
        """Admin endpoint returns the relying party configuration."""
        from app.main import app
        client = TestClient(app)

        verifier = client.get("/admin").json()["verifier"]
        assert "scope" in verifier
        assert isinstance(verifier["requirements"], list)
        assert isinstance(verifier["dev_mode"], bool)
        assert verifier["rpc_url"].startswith("https://")

    def test_admin_config_types(self):
        """Configuration values have expected types."""
        from app.main import app
        client = TestClient(app)

        data = client.get("/admin").json()
        assert isinstance(data["configurable"]["cert_clock_skew_seconds"], int)
        assert isinstance(data["policy"]["dev_mode_enforce_validity"], bool)
        assert isinstance(data["policy"]["require_trust_anchors"], bool)
        assert isinstance(data["operational"]["vkey_dir"], str)
        assert data["operational"]["admin_endpoint_enabled"] is True


class TestAdminEndpointDisabled:
    """Tests for admin endpoint when disabled."""

    def test_admin_disabled_returns_404(self, monkeypatch):
        """Admin endpoint returns 404 when ADMIN_ENDPOINT_ENABLED=false."""
        monkeypatch.setenv("ADMIN_ENDPOINT_ENABLED", "false")

        # Reload config and main to pick up the new env var
        import importlib
        import app.core.config
        importlib.reload(app.core.config)
        import app.main
        importlib.reload(app.main)

        try:
            client = TestClient(app.main.app)
            response = client.get("/admin")
            assert response.status_code == 404
            assert "disabled" in response.json()["detail"].lower()

            response = client.post("/admin/log-level", json={"level": "DEBUG"})
            assert response.status_code == 404
        finally:
            monkeypatch.setenv("ADMIN_ENDPOINT_ENABLED", "true")
            importlib.reload(app.core.config)
            importlib.reload(app.main)


class TestLogLevelEndpoint:
    """Tests for POST /admin/log-level endpoint."""

    @pytest.mark.parametrize("level,expected", [
        ("DEBUG", "DEBUG"),
        ("info", "INFO"),
        ("WARNING", "WARNING"),
        ("error", "ERROR"),
    ])
    def test_set_log_level(self, level, expected):
        from app.main import app
        client = TestClient(app)

        response = client.post("/admin/log-level", json={"level": level})
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["log_level"] == expected
        client.post("/admin/log-level", json={"level": "INFO"})

    def test_set_log_level_invalid_returns_400(self):
        """Invalid log level returns 400."""
        from app.main import app
        client = TestClient(app)

        response = client.post("/admin/log-level", json={"level": "INVALID"})
        assert response.status_code == 400
        assert "Invalid log level" in response.json()["detail"]

    def test_log_level_reflected_in_admin(self):
        """Changed log level is reflected in /admin response."""
        from app.main import app
        client = TestClient(app)

        client.post("/admin/log-level", json={"level": "DEBUG"})
        data = client.get("/admin").json()
        assert data["environment"]["log_level_name"] == "DEBUG"

        client.post("/admin/log-level", json={"level": "INFO"})
