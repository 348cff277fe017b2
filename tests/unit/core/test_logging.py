"""
Tests for logging middleware.
Covers field masking, header masking, request ID propagation and log setup.
"""

import pytest
import json
import logging
import sys
from unittest.mock import Mock, patch
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from core.middleware.logging import (
    is_sensitive_field,
    mask_sensitive_data,
    mask_headers,
    should_log_request,
    get_client_ip,
    StructuredFormatter,
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)


class TestSensitiveFieldDetection:
    """Test sensitive field name detection."""

    @pytest.mark.parametrize("field_name,expected", [
        ("password", True),
        ("Password", True),
        ("passwd", True),
        ("access_token", True),
        ("api_key", True),
        ("apiKey", True),
        ("client_secret", True),
        ("Authorization", True),
        ("cookie", True),
        ("session_id", True),
        ("email", False),
        ("agentId", False),
        ("hrIds", False),
        ("candidateIds", False),
        ("notes", False),
    ])
    def test_sensitive_field_patterns(self, field_name, expected):
        assert is_sensitive_field(field_name) == expected


class TestDataMasking:
    def test_nested_structures(self):
        data = {
            "agentId": 1,
            "auth": {"token": "abc", "scopes": ["admin"]},
            "items": [{"password": "x", "id": 2}],
        }

        masked = mask_sensitive_data(data)

        assert masked["agentId"] == 1
        assert masked["auth"]["token"] == "[REDACTED]"
        assert masked["auth"]["scopes"] == ["admin"]
        assert masked["items"][0] == {"password": "[REDACTED]", "id": 2}

    def test_input_not_mutated(self):
        data = {"password": "x"}

        mask_sensitive_data(data)

        assert data == {"password": "x"}

    def test_max_depth_protection(self):
        nested = current = {}
        for _ in range(15):
            current["child"] = {}
            current = current["child"]

        masked = mask_sensitive_data(nested, max_depth=3)

        assert "[MAX_DEPTH_EXCEEDED]" in json.dumps(masked)

    @pytest.mark.parametrize("value", [None, 42, "plain", 1.5])
    def test_scalars_pass_through(self, value):
        assert mask_sensitive_data(value) == value


class TestHeaderMasking:
    def test_authorization_keeps_scheme(self):
        masked = mask_headers({"authorization": "Bearer eyJhbGciOi"})

        assert masked["authorization"] == "Bearer [REDACTED]"

    def test_cookie_and_api_key(self):
        masked = mask_headers({"cookie": "sid=1", "x-api-key": "k", "user-agent": "pytest"})

        assert masked["cookie"] == "[REDACTED]"
        assert masked["x-api-key"] == "[REDACTED]"
        assert masked["user-agent"] == "pytest"


class TestRequestHelpers:
    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/api/v1/users/agent-assignments", True),
    ])
    def test_should_log_request(self, path, expected):
        assert should_log_request(path) is expected

    def test_forwarded_for_header(self):
        request = Mock()
        request.headers = {"x-forwarded-for": "203.0.113.5, 10.0.0.1"}

        assert get_client_ip(request) == "203.0.113.5"

    def test_direct_client_ip(self):
        request = Mock()
        request.headers = {}
        request.client.host = "192.0.2.10"

        assert get_client_ip(request) == "192.0.2.10"

    def test_no_client_info(self):
        request = Mock()
        request.headers = {}
        request.client = None

        assert get_client_ip(request) == "unknown"


class TestStructuredLoggingMiddleware:
    """Test structured logging middleware."""

    @pytest.fixture
    def app(self):
        app = FastAPI()
        app.add_middleware(
            StructuredLoggingMiddleware,
            log_request_body=True,
            max_body_size=1024,
        )

        @app.get("/test")
        async def test_endpoint(request: Request):
            return {"request_id": request.state.request_id}

        @app.post("/assign")
        async def assign_endpoint(request: Request):
            await request.json()
            return {"received": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def _logged_events(self, mock_logger) -> list[dict]:
        calls = (
            mock_logger.info.call_args_list
            + mock_logger.warning.call_args_list
            + mock_logger.error.call_args_list
        )
        return [json.loads(call.args[0]) for call in calls]

    def test_request_start_and_completion_logged(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            response = client.get("/test")

        assert response.status_code == 200
        events = self._logged_events(mock_logger)
        assert [e["event"] for e in events] == ["request_started", "request_completed"]
        assert events[1]["status_code"] == 200
        assert "duration_ms" in events[1]

    def test_request_id_generated_and_exposed(self, client):
        response = client.get("/test")

        request_id = response.headers["x-request-id"]
        assert request_id
        assert response.json()["request_id"] == request_id

    def test_request_id_preserved(self, client):
        response = client.get("/test", headers={"x-request-id": "custom-id-123"})

        assert response.headers["x-request-id"] == "custom-id-123"
        assert response.json()["request_id"] == "custom-id-123"

    def test_health_check_not_logged(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            client.get("/health")

        assert not mock_logger.info.called

    def test_request_body_logged_with_masking(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            response = client.post(
                "/assign",
                json={"agentId": 1, "hrIds": [2], "token": "secret-value"},
                headers={"Authorization": "Bearer abc.def"},
            )

        assert response.status_code == 200
        started = self._logged_events(mock_logger)[0]
        assert started["body"] == {"agentId": 1, "hrIds": [2], "token": "[REDACTED]"}
        assert started["headers"]["authorization"] == "Bearer [REDACTED]"

    def test_client_errors_logged_as_warning(self, client):
        with patch("core.middleware.logging.logger") as mock_logger:
            response = client.get("/missing")

        assert response.status_code == 404
        assert mock_logger.warning.called


class TestStructuredFormatter:
    def test_includes_context_fields(self):
        record = logging.LogRecord("svc", logging.INFO, __file__, 1, "merged", None, None)
        record.agent_id = 7
        record.request_id = "rid"

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "merged"
        assert data["level"] == "INFO"
        assert data["agent_id"] == 7
        assert data["request_id"] == "rid"
        assert "actor_id" not in data

    def test_exception_info(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "svc", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"


class TestLoggingSetup:
    def test_setup_logging_json_format(self):
        setup_logging(log_level="DEBUG", json_logs=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_setup_logging_text_format(self):
        setup_logging(log_level="INFO", json_logs=False)

        root = logging.getLogger()
        assert not isinstance(root.handlers[0].formatter, StructuredFormatter)

    def test_get_logger(self):
        assert get_logger("agent-roster").name == "agent-roster"
