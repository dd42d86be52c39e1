"""Energy marketplace — offers, escrow holds, and settlement.

Sellers list offers, buyers lock the price in escrow, and the seller,
oracle or admin settles the escrow exactly once. All value movement goes
through the credit ledger's transfer capability.
"""

from ecoflow.market.engine import OfferEscrowEngine
from ecoflow.market.escrow import EscrowBook
from ecoflow.market.offer_state_machine import OfferStateMachine

__all__ = ["EscrowBook", "OfferEscrowEngine", "OfferStateMachine"]
