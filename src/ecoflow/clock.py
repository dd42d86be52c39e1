"""Block clock — the environment-supplied logical time.

Offer expiry is compared against block height, never wall-clock time.
Height only moves forward.
"""

from __future__ import annotations


class BlockClock:
    """Monotonic block-height counter.

    Usage:
        clock = BlockClock()
        engine = OfferEscrowEngine(..., clock=clock.now)
        clock.advance(10)
    """

    def __init__(self, height: int = 0) -> None:
        if height < 0:
            raise ValueError("Block height cannot be negative")
        self._height = height

    def now(self) -> int:
        return self._height

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError(f"Cannot advance by a negative block count: {blocks}")
        self._height += blocks
        return self._height

    def advance_to(self, height: int) -> int:
        if height < self._height:
            raise ValueError(
                f"Block height cannot go backwards ({self._height} → {height})"
            )
        self._height = height
        return self._height
