"""Escrow book — the holds backing purchased, unsettled offers.

A hold is created exactly once at purchase and released exactly once at
settlement or dispute resolution; it is never partially released. The
book only tracks amounts; the funds themselves sit in the engine's
custodial ledger account, so at all times:

    ledger.balance_of(custody) == escrow_book.total()

The escrow book is a pure record keeper — no value movement, no event
logging. Both are handled by the engine.
"""

from __future__ import annotations

from typing import Dict, Iterator, Optional

from ecoflow.errors import EscrowFailure
from ecoflow.models.market import EscrowHold


class EscrowBook:
    """Holds keyed by (buyer, offer_id).

    Usage:
        book = EscrowBook()
        book.lock(EscrowHold("bob", "alice", 1, 500))
        hold = book.release("bob", 1)
    """

    def __init__(self) -> None:
        self._holds: Dict[tuple[str, int], EscrowHold] = {}

    def can_lock(self, buyer: str, offer_id: int) -> bool:
        return (buyer, offer_id) not in self._holds

    def lock(self, hold: EscrowHold) -> EscrowHold:
        if hold.amount <= 0:
            raise EscrowFailure("Escrow amount must be positive")
        if hold.key in self._holds:
            raise EscrowFailure(
                f"Escrow already held for buyer {hold.buyer} offer {hold.offer_id}"
            )
        self._holds[hold.key] = hold
        return hold

    def require(self, buyer: str, offer_id: int) -> EscrowHold:
        """Return the hold, or raise EscrowFailure if missing or non-positive."""
        hold = self._holds.get((buyer, offer_id))
        if hold is None or hold.amount <= 0:
            raise EscrowFailure(
                f"No funded escrow for buyer {buyer} offer {offer_id}"
            )
        return hold

    def release(self, buyer: str, offer_id: int) -> EscrowHold:
        hold = self.require(buyer, offer_id)
        del self._holds[hold.key]
        return hold

    def get(self, buyer: str, offer_id: int) -> Optional[EscrowHold]:
        return self._holds.get((buyer, offer_id))

    def total(self) -> int:
        return sum(h.amount for h in self._holds.values())

    def __len__(self) -> int:
        return len(self._holds)

    def __iter__(self) -> Iterator[EscrowHold]:
        return iter(list(self._holds.values()))
