"""Shared authorization and pause utilities."""

from ecoflow.governance.roles import NULL_IDENTITY, RoleConfig, is_null_identity

__all__ = ["NULL_IDENTITY", "RoleConfig", "is_null_identity"]
