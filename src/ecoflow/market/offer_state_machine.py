"""Offer state machine — enforces valid lifecycle transitions.

Offer lifecycle:
    OPEN → PURCHASED → SETTLED
    OPEN → EXPIRED

State semantics:
- OPEN: listed, no buyer, expiry not yet reached.
- EXPIRED: no buyer and expiry reached. Still queryable, never buyable.
- PURCHASED: buyer set, escrow hold funded, not yet settled.
- SETTLED: terminal — escrow released to seller or buyer.

States are derived from the offer's buyer / claimed fields and the
current block height; they are never stored.
"""

from __future__ import annotations

from ecoflow.models.market import Offer, OfferState


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: dict[OfferState, set[OfferState]] = {
    OfferState.OPEN: {OfferState.PURCHASED, OfferState.EXPIRED},
    OfferState.PURCHASED: {OfferState.SETTLED},
    # Terminal states: no outgoing transitions
    OfferState.EXPIRED: set(),
    OfferState.SETTLED: set(),
}


class OfferStateMachine:
    """Derives offer states and validates transitions.

    Pure computation: side effects (value movement, event logging) are
    handled by the engine.
    """

    @staticmethod
    def current_state(offer: Offer, height: int) -> OfferState:
        if offer.claimed:
            return OfferState.SETTLED
        if offer.buyer is not None:
            return OfferState.PURCHASED
        if offer.is_expired_at(height):
            return OfferState.EXPIRED
        return OfferState.OPEN

    @staticmethod
    def validate_transition(
        offer: Offer,
        target: OfferState,
        height: int,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = OfferStateMachine.current_state(offer, height)
        allowed = _TRANSITIONS.get(current, set())

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid offer transition for {offer.seller}#{offer.offer_id}: "
                f"{current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def is_terminal(state: OfferState) -> bool:
        return state in (OfferState.SETTLED, OfferState.EXPIRED)

    @staticmethod
    def valid_transitions(state: OfferState) -> set[OfferState]:
        return set(_TRANSITIONS.get(state, set()))
