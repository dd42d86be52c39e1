"""Configuration policy — JSON parameters resolved into typed values."""

from ecoflow.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
