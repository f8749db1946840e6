"""
Tests for request logging and log configuration.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.middleware.logging import (
    RequestLoggingMiddleware,
    StructuredFormatter,
    mask_headers,
    setup_logging,
    should_log_request,
)


class TestHeaderMasking:
    """Test masking of credential headers."""

    def test_authorization_keeps_scheme(self):
        masked = mask_headers({"Authorization": "Bearer eyJhbGciOi"})

        assert masked["Authorization"] == "Bearer [REDACTED]"

    @pytest.mark.parametrize("header", ["Cookie", "X-Api-Key", "X-Session-Id", "X-Auth-Token"])
    def test_sensitive_headers_redacted(self, header):
        assert mask_headers({header: "value-123"})[header] == "[REDACTED]"

    def test_identity_header_kept(self):
        headers = {"X-Identity-User-Id": "ext-42", "Content-Type": "application/json"}

        assert mask_headers(headers) == headers


class TestShouldLogRequest:
    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/api/v1/applications", True),
        ("/api/v1/notes/abc", True),
    ])
    def test_paths(self, path, expected):
        assert should_log_request(path) is expected


class TestStructuredFormatter:
    def test_formats_json_line(self):
        record = logging.LogRecord(
            "api.services.applications", logging.INFO, __file__, 1, "Application %s created", ("app-1",), None
        )

        data = json.loads(StructuredFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "api.services.applications"
        assert data["message"] == "Application app-1 created"
        assert "timestamp" in data

    def test_includes_exception(self):
        try:
            raise ValueError("broken")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "broken"


class TestSetupLogging:
    def test_json_handler_installed(self):
        root = logging.getLogger()
        original_handlers = root.handlers[:]
        original_level = root.level
        try:
            setup_logging(log_level="DEBUG", json_logs=True)

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers = original_handlers
            root.setLevel(original_level)

    def test_plain_handler_installed(self):
        root = logging.getLogger()
        original_handlers = root.handlers[:]
        original_level = root.level
        try:
            setup_logging(log_level="WARNING", json_logs=False)

            assert root.level == logging.WARNING
            assert not isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers = original_handlers
            root.setLevel(original_level)


class TestRequestLoggingMiddleware:
    """Test request logging middleware."""

    @pytest.fixture
    def app(self):
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware, identity_header="X-Identity-User-Id")

        @app.get("/test")
        async def test_endpoint():
            return {"message": "success"}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        @app.get("/missing")
        async def missing():
            from fastapi import HTTPException

            raise HTTPException(status_code=404, detail="gone")

        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_request_completed_logged(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            mock_logger.isEnabledFor.return_value = False
            response = client.get("/test", headers={"X-Identity-User-Id": "ext-7"})

        assert response.status_code == 200
        logged = json.loads(mock_logger.info.call_args.args[0])
        assert logged["event"] == "request_completed"
        assert logged["status_code"] == 200
        assert logged["identity"] == "ext-7"
        assert "duration_ms" in logged

    def test_request_id_generated(self, client):
        response = client.get("/test")

        assert response.headers["x-request-id"]

    def test_request_id_preserved(self, client):
        response = client.get("/test", headers={"x-request-id": "custom-request-id-123"})

        assert response.headers["x-request-id"] == "custom-request-id-123"

    def test_health_check_not_logged(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            response = client.get("/health")

        assert response.status_code == 200
        assert not mock_logger.info.called
        assert "x-request-id" in response.headers

    def test_client_errors_logged_as_warning(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            mock_logger.isEnabledFor.return_value = False
            client.get("/missing")

        assert mock_logger.warning.called
        assert not mock_logger.info.called
