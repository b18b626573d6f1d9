"""Tests for structured logging."""

from __future__ import annotations

import json
import logging

from tenant_operator.logging import log_ownership_change, log_resource_event, sanitize_secrets


class TestStructuredLogging:
    """Test cases for structured resource events."""

    def test_log_resource_event(self, caplog):
        """Test that events are logged as JSON with their context."""
        logger = logging.getLogger("tenant_operator.test")
        with caplog.at_level(logging.INFO, logger="tenant_operator.test"):
            log_resource_event(
                logger,
                controller="tenant-operator",
                resource_kind="Tenant",
                resource_name="t1",
                namespace="ns1",
                uid="u1",
                event="reconciled",
                reason="Ready",
                message="Tenant reconciled",
                namespaces=["ns1"],
                password="hunter2",
            )

        data = json.loads(caplog.records[-1].getMessage())
        assert data["resource"] == "Tenant"
        assert data["namespaces"] == ["ns1"]
        assert data["password"] == "***REDACTED***"

    def test_sanitize_secrets_copies(self):
        """Test that sanitizing does not mutate the input."""
        data = {"token": "abc", "name": "t1"}
        result = sanitize_secrets(data)
        assert result == {"token": "***REDACTED***", "name": "t1"}
        assert data["token"] == "abc"

    def test_log_ownership_change(self, caplog):
        """Test the action derived from previous and new owner."""
        logger = logging.getLogger("tenant_operator.test")
        with caplog.at_level(logging.INFO, logger="tenant_operator.test"):
            log_ownership_change(logger, "ns2", "resource-management", "ns1", "ns3")
            log_ownership_change(logger, "ns2", "app-management", "ns1", "")
            log_ownership_change(logger, "ns2", "appset-management", "", "ns3")

        actions = [json.loads(r.getMessage())["action"] for r in caplog.records[-3:]]
        assert actions == ["moved", "released", "claimed"]
