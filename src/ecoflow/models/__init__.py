"""Core data models for EcoFlow."""

from ecoflow.models.market import (
    MAX_AMOUNT,
    EscrowHold,
    Offer,
    OfferState,
    Settlement,
)

__all__ = [
    "MAX_AMOUNT",
    "EscrowHold",
    "Offer",
    "OfferState",
    "Settlement",
]
