"""Tests for offer state machine — lifecycle transitions."""

import pytest

from ecoflow.market.offer_state_machine import OfferStateMachine
from ecoflow.models.market import Offer, OfferState


def _make_offer(buyer: str | None = None, claimed: bool = False, expiry: int = 100) -> Offer:
    return Offer(
        seller="alice",
        offer_id=1,
        quantity=10,
        unit_price=3,
        expiry=expiry,
        buyer=buyer,
        claimed=claimed,
    )


class TestDerivedState:
    def test_open_before_expiry(self) -> None:
        assert OfferStateMachine.current_state(_make_offer(), 99) == OfferState.OPEN

    def test_expired_at_expiry_height(self) -> None:
        assert OfferStateMachine.current_state(_make_offer(), 100) == OfferState.EXPIRED

    def test_purchased_ignores_expiry(self) -> None:
        offer = _make_offer(buyer="bob")
        assert OfferStateMachine.current_state(offer, 500) == OfferState.PURCHASED

    def test_claimed_is_settled(self) -> None:
        offer = _make_offer(buyer="bob", claimed=True)
        assert OfferStateMachine.current_state(offer, 0) == OfferState.SETTLED


class TestTransitions:
    def test_open_to_purchased(self) -> None:
        assert OfferStateMachine.validate_transition(_make_offer(), OfferState.PURCHASED, 0) == []

    def test_purchased_to_settled(self) -> None:
        offer = _make_offer(buyer="bob")
        assert OfferStateMachine.validate_transition(offer, OfferState.SETTLED, 0) == []

    def test_expired_cannot_be_purchased(self) -> None:
        errors = OfferStateMachine.validate_transition(_make_offer(), OfferState.PURCHASED, 100)
        assert len(errors) == 1
        assert "expired" in errors[0]

    def test_purchased_cannot_be_purchased_again(self) -> None:
        offer = _make_offer(buyer="bob")
        assert OfferStateMachine.validate_transition(offer, OfferState.PURCHASED, 0)

    def test_open_cannot_settle(self) -> None:
        assert OfferStateMachine.validate_transition(_make_offer(), OfferState.SETTLED, 0)

    def test_settled_has_no_exit(self) -> None:
        offer = _make_offer(buyer="bob", claimed=True)
        for target in OfferState:
            assert OfferStateMachine.validate_transition(offer, target, 0)


class TestTerminal:
    @pytest.mark.parametrize("state", [OfferState.SETTLED, OfferState.EXPIRED])
    def test_terminal_states(self, state: OfferState) -> None:
        assert OfferStateMachine.is_terminal(state)
        assert OfferStateMachine.valid_transitions(state) == set()

    def test_open_is_not_terminal(self) -> None:
        assert not OfferStateMachine.is_terminal(OfferState.OPEN)
        assert OfferStateMachine.valid_transitions(OfferState.OPEN) == {
            OfferState.PURCHASED, OfferState.EXPIRED,
        }
