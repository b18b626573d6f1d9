"""Unit tests for condition utilities."""

from __future__ import annotations

from tenant_operator.constants import (
    REASON_NAMESPACE_DISALLOWED,
    REASON_NAMESPACE_PERMITTED,
)
from tenant_operator.utils.conditions import (
    remove_condition,
    set_dependency_not_ready_condition,
    set_namespace_management_condition,
    set_ready_condition,
    set_sso_condition,
    update_condition,
)


class TestConditions:
    """Test condition utilities."""

    def test_update_condition_new(self) -> None:
        """Test adding a new condition."""
        result = update_condition([], "TestCondition", "True", "TestReason", "Test message", observed_generation=1)

        assert len(result) == 1
        assert result[0]["type"] == "TestCondition"
        assert result[0]["status"] == "True"
        assert result[0]["observedGeneration"] == 1

    def test_update_condition_keeps_transition_time(self) -> None:
        """Test that lastTransitionTime only moves when the status changes."""
        conditions = [
            {
                "type": "Ready",
                "status": "True",
                "reason": "Ready",
                "message": "old",
                "lastTransitionTime": "2023-01-01T00:00:00Z",
            }
        ]

        same = update_condition(list(conditions), "Ready", "True", "Ready", "new")
        assert same[0]["lastTransitionTime"] == "2023-01-01T00:00:00Z"
        assert same[0]["message"] == "new"

        flipped = update_condition(list(conditions), "Ready", "False", "NotReady", "broken")
        assert flipped[0]["lastTransitionTime"] != "2023-01-01T00:00:00Z"

    def test_remove_condition(self) -> None:
        """Test dropping a condition type."""
        conditions = set_dependency_not_ready_condition([], "waiting")
        conditions = set_ready_condition(conditions, False, "waiting")

        result = remove_condition(conditions, "DependencyNotReady")

        assert [c["type"] for c in result] == ["Ready"]

    def test_set_ready_condition_reasons(self) -> None:
        """Test default and explicit Ready reasons."""
        assert set_ready_condition([], True, "ok")[0]["reason"] == "Ready"
        assert set_ready_condition([], False, "no")[0]["reason"] == "NotReady"
        assert set_ready_condition([], False, "no", reason="ValidationFailed")[0]["reason"] == "ValidationFailed"

    def test_namespace_management_condition(self) -> None:
        """Test that only a permitted namespace reports True."""
        permitted = set_namespace_management_condition([], REASON_NAMESPACE_PERMITTED, "ok", 1)
        disallowed = set_namespace_management_condition([], REASON_NAMESPACE_DISALLOWED, "no", 1)

        assert permitted[0]["status"] == "True"
        assert disallowed[0]["status"] == "False"
        assert disallowed[0]["reason"] == REASON_NAMESPACE_DISALLOWED

    def test_sso_condition(self) -> None:
        """Test the SSO condition."""
        result = set_sso_condition([], False, "SSODisabled", "removed")
        assert result[0]["type"] == "SSO"
        assert result[0]["status"] == "False"
