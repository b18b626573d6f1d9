"""Tenant Operator - namespace ownership, RBAC and secret lifecycle for multi-tenant delivery instances."""

__version__ = "0.1.0"
