"""Market models — energy offers and the escrow holds funding them.

Offer lifecycle (derived from buyer / claimed / expiry, never stored):
    OPEN → PURCHASED → SETTLED
    OPEN → EXPIRED   (no further transitions; stays queryable)

An offer is consumed by exactly one purchase: once it has a buyer it
cannot be bought again or reassigned. SETTLED is terminal.

All amounts are ints. Quantities are energy units; prices are credits
per unit.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


# Amounts are bounded to uint128
MAX_AMOUNT = 2 ** 128 - 1


class OfferState(str, enum.Enum):
    """Lifecycle state of an offer."""
    OPEN = "open"
    EXPIRED = "expired"
    PURCHASED = "purchased"
    SETTLED = "settled"


class Settlement(str, enum.Enum):
    """How a settled offer's escrow was released."""
    DELIVERED = "delivered"
    REFUNDED = "refunded"
    PAID_ON_DISPUTE = "paid_on_dispute"


@dataclass
class Offer:
    """A seller-posted listing of a fixed quantity at a fixed unit price.

    Keyed by (seller, offer_id). Mutable: buyer and claimed change as
    the offer moves through its lifecycle.
    """
    seller: str
    offer_id: int
    quantity: int
    unit_price: int
    expiry: int
    created_height: int = 0
    buyer: Optional[str] = None
    claimed: bool = False
    purchased_height: Optional[int] = None
    settled_height: Optional[int] = None
    settlement: Optional[Settlement] = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.seller, self.offer_id)

    @property
    def total_price(self) -> int:
        return self.quantity * self.unit_price

    def is_expired_at(self, height: int) -> bool:
        return height >= self.expiry

    def to_dict(self) -> dict[str, object]:
        return {
            "seller": self.seller,
            "offer_id": self.offer_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "expiry": self.expiry,
            "created_height": self.created_height,
            "buyer": self.buyer,
            "claimed": self.claimed,
            "purchased_height": self.purchased_height,
            "settled_height": self.settled_height,
            "settlement": self.settlement.value if self.settlement else None,
        }


@dataclass(frozen=True)
class EscrowHold:
    """Funds locked against one purchased, unsettled offer.

    Keyed by (buyer, offer_id). The amount is frozen at purchase time.
    """
    buyer: str
    seller: str
    offer_id: int
    amount: int
    locked_height: int = 0

    @property
    def key(self) -> tuple[str, int]:
        return (self.buyer, self.offer_id)
