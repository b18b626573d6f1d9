"""Tests for namespace and tenant event predicates."""

from __future__ import annotations

import pytest

from tenant_operator.constants import (
    ANNOTATION_RECONCILE_REQUESTED,
    LABEL_APPS_MANAGED_BY,
    LABEL_APPSETS_MANAGED_BY,
    LABEL_MANAGED_BY,
    TRANSITION_SSO_REMOVED,
)
from tenant_operator.predicates import (
    detect_tenant_transitions,
    namespace_create_predicate,
    namespace_delete_predicate,
    namespace_update_predicate,
    rbac_type_for_label,
    tenant_update_relevant,
)
from tenant_operator.tracker import ManagedNsOpts


class TestRbacTypeMapping:
    """Test cases for label key to RBAC type mapping."""

    def test_mapping(self):
        """Test that every management label maps to a distinct RBAC type."""
        assert rbac_type_for_label(LABEL_MANAGED_BY) == "resource-management"
        assert rbac_type_for_label(LABEL_APPS_MANAGED_BY) == "app-management"
        assert rbac_type_for_label(LABEL_APPSETS_MANAGED_BY) == "appset-management"

    def test_unknown_label(self):
        """Test that a non-management label raises KeyError."""
        with pytest.raises(KeyError):
            rbac_type_for_label("team")


class TestCreatePredicate:
    """Test cases for namespace creation."""

    def test_unmanaged_namespace_is_skipped(self, tracker):
        """Test that a namespace without the managed-by label is ignored."""
        assert namespace_create_predicate("ns", {LABEL_APPS_MANAGED_BY: "ns1"}, tracker) is False
        assert tracker.pending("ns") == []

    def test_managed_namespace_records_claims(self, tracker):
        """Test that every present management label is recorded as a new claim."""
        labels = {LABEL_MANAGED_BY: "ns1", LABEL_APPS_MANAGED_BY: "ns3"}

        assert namespace_create_predicate("ns2", labels, tracker) is True
        assert tracker.pending("ns2") == [
            ManagedNsOpts("resource-management", "", "ns1"),
            ManagedNsOpts("app-management", "", "ns3"),
        ]

    def test_none_labels(self, tracker):
        """Test that missing labels are handled."""
        assert namespace_create_predicate("ns", None, tracker) is False


class TestUpdatePredicate:
    """Test cases for namespace label updates."""

    def test_owner_change(self, tracker):
        """Test that changing the owner records previous and new owner."""
        changed = namespace_update_predicate(
            "ns2", {LABEL_MANAGED_BY: "ns1"}, {LABEL_MANAGED_BY: "ns3"}, tracker
        )

        assert changed is True
        assert tracker.pending("ns2") == [ManagedNsOpts("resource-management", "ns1", "ns3")]

    def test_label_removed(self, tracker):
        """Test that removing a label records a release."""
        changed = namespace_update_predicate("ns2", {LABEL_APPSETS_MANAGED_BY: "ns1"}, {}, tracker)

        assert changed is True
        assert tracker.pending("ns2") == [ManagedNsOpts("appset-management", "ns1", "")]

    def test_label_added(self, tracker):
        """Test that adding a label records a claim."""
        assert namespace_update_predicate("ns2", {}, {LABEL_MANAGED_BY: "ns1"}, tracker) is True
        assert tracker.pending("ns2") == [ManagedNsOpts("resource-management", "", "ns1")]

    def test_unrelated_change(self, tracker):
        """Test that changes of other labels are ignored."""
        old = {LABEL_MANAGED_BY: "ns1", "team": "a"}
        new = {LABEL_MANAGED_BY: "ns1", "team": "b"}

        assert namespace_update_predicate("ns2", old, new, tracker) is False
        assert tracker.pending("ns2") == []

    def test_multiple_labels(self, tracker):
        """Test that each transitioning label is recorded."""
        old = {LABEL_MANAGED_BY: "ns1", LABEL_APPS_MANAGED_BY: "ns1"}
        new = {LABEL_APPS_MANAGED_BY: "ns4"}

        assert namespace_update_predicate("ns2", old, new, tracker) is True
        assert tracker.pending("ns2") == [
            ManagedNsOpts("resource-management", "ns1", ""),
            ManagedNsOpts("app-management", "ns1", "ns4"),
        ]


class TestDeletePredicate:
    """Test cases for namespace deletion."""

    def test_labels_released(self, tracker):
        """Test that every management label is released on deletion."""
        labels = {LABEL_MANAGED_BY: "ns1", LABEL_APPSETS_MANAGED_BY: "ns3"}

        assert namespace_delete_predicate("ns2", labels, False, tracker) is True
        assert tracker.pending("ns2") == [
            ManagedNsOpts("resource-management", "ns1", ""),
            ManagedNsOpts("appset-management", "ns3", ""),
        ]

    def test_namespace_with_tenants(self, tracker):
        """Test that a namespace hosting tenants is relevant without labels."""
        assert namespace_delete_predicate("ns1", {}, True, tracker) is True
        assert tracker.pending("ns1") == []

    def test_irrelevant_namespace(self, tracker):
        """Test that an unlabeled namespace without tenants is skipped."""
        assert namespace_delete_predicate("ns1", {"team": "a"}, False, tracker) is False


class TestTenantPredicates:
    """Test cases for tenant update filters."""

    def test_generation_changed(self):
        """Test that a spec change passes the filter."""
        old = {"metadata": {"generation": 1}}
        new = {"metadata": {"generation": 2}}
        assert tenant_update_relevant(old, new) is True

    def test_status_only_update(self):
        """Test that a status-only update is filtered out."""
        old = {"metadata": {"generation": 3}}
        new = {"metadata": {"generation": 3}}
        assert tenant_update_relevant(old, new) is False

    def test_reconcile_requested(self):
        """Test that a new reconcile request passes without a generation bump."""
        old = {"metadata": {"generation": 3, "annotations": {}}}
        new = {
            "metadata": {
                "generation": 3,
                "annotations": {ANNOTATION_RECONCILE_REQUESTED: "2026-01-01T00:00:00+00:00"},
            }
        }
        assert tenant_update_relevant(old, new) is True

    def test_deleting_tenant(self):
        """Test that a tenant being deleted is filtered out."""
        old = {"metadata": {"generation": 1}}
        new = {"metadata": {"generation": 2, "deletionTimestamp": "2026-01-01T00:00:00Z"}}
        assert tenant_update_relevant(old, new) is False

    def test_sso_removed(self):
        """Test that dropping the sso block is detected."""
        transitions = detect_tenant_transitions({"sso": {"provider": "dex"}}, {})
        assert transitions == {TRANSITION_SSO_REMOVED}

    @pytest.mark.parametrize(
        "old_spec,new_spec",
        [
            ({}, {}),
            ({}, {"sso": {"provider": "dex"}}),
            ({"sso": {"provider": "dex"}}, {"sso": {"provider": "keycloak"}}),
            (None, None),
        ],
    )
    def test_no_transition(self, old_spec, new_spec):
        """Test specs without special transitions."""
        assert detect_tenant_transitions(old_spec, new_spec) == set()
