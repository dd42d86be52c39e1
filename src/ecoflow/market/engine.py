"""Offer & escrow engine — listings, purchases, and exactly-once settlement.

Sellers list energy offers; buyers purchase them by locking
quantity × unit_price credits in escrow; the seller or the oracle
confirms delivery (funds go to the seller), or the admin resolves a
dispute (funds go to the buyer or the seller). Settlement is terminal.

Value never moves here directly. Every movement is a call to the
injected TransferCapability, with the engine's own custodial identity on
one side:
    purchase:   buyer   → custody
    settlement: custody → seller | buyer

Every operation validates first and writes last. If the ledger refuses
a movement, the engine raises EscrowFailure and its own state is
untouched.

The market pause gates listing, purchase and delivery confirmation. It
never gates dispute resolution, so funds already in escrow cannot be
stranded while trading is halted. The ledger pause is separate and does
block releases; an operator unpauses the ledger before resolving.

The custodial identity can neither list nor buy.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from ecoflow.errors import (
    AlreadyClaimed,
    BatchLimitExceeded,
    EcoFlowError,
    EscrowFailure,
    Expired,
    InvalidAmount,
    LengthMismatch,
    NotAuthorized,
    OfferNotFound,
    ZeroAddress,
)
from ecoflow.governance.roles import RoleConfig, is_null_identity
from ecoflow.ledger.capability import TransferCapability
from ecoflow.market.escrow import EscrowBook
from ecoflow.market.offer_state_machine import OfferStateMachine
from ecoflow.models.market import (
    MAX_AMOUNT,
    EscrowHold,
    Offer,
    OfferState,
    Settlement,
)
from ecoflow.persistence.audit import AuditEmitter
from ecoflow.persistence.event_log import EventKind

logger = logging.getLogger(__name__)

DEFAULT_BATCH_BUY_LIMIT = 3


class OfferEscrowEngine:
    """Two-party escrowed offer marketplace.

    Usage:
        rail = ledger.custody_rail("ecoflow.escrow")
        engine = OfferEscrowEngine(roles, rail, custody="ecoflow.escrow",
                                   clock=clock.now)
        offer_id = engine.create_offer("alice", quantity=100, unit_price=5, expiry=1000)
        engine.buy_offer("bob", "alice", offer_id)
        engine.confirm_delivery("alice", "alice", offer_id)
    """

    def __init__(
        self,
        roles: RoleConfig,
        ledger: TransferCapability,
        custody: str,
        clock: Callable[[], int],
        batch_buy_limit: int = DEFAULT_BATCH_BUY_LIMIT,
        audit: Optional[AuditEmitter] = None,
    ) -> None:
        if is_null_identity(custody):
            raise ZeroAddress("Custodial identity must not be null")
        if batch_buy_limit < 1:
            raise ValueError("batch_buy_limit must be at least 1")
        self._roles = roles
        self._ledger = ledger
        self._custody = custody
        self._clock = clock
        self._batch_buy_limit = batch_buy_limit
        self._audit = audit or AuditEmitter(clock=clock)
        self._offers: Dict[tuple[str, int], Offer] = {}
        self._offer_counters: Dict[str, int] = {}
        self._escrow = EscrowBook()

    # ------------------------------------------------------------------
    # Offer lifecycle
    # ------------------------------------------------------------------

    def create_offer(
        self,
        seller: str,
        quantity: int,
        unit_price: int,
        expiry: int,
    ) -> int:
        """List a new offer. Returns its seller-scoped id (1, 2, 3, ...)."""
        self._roles.require_not_paused()
        if seller == self._custody:
            raise NotAuthorized("The custodial account cannot list offers")
        for name, value in (("quantity", quantity), ("unit_price", unit_price)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidAmount(f"{name} must be an integer, got {value!r}")
            if not 0 < value <= MAX_AMOUNT:
                raise InvalidAmount(f"{name} must be in (0, {MAX_AMOUNT}], got {value}")
        if isinstance(expiry, bool) or not isinstance(expiry, int):
            raise InvalidAmount(f"expiry must be an integer height, got {expiry!r}")
        now = self._clock()
        if expiry <= now:
            raise Expired(f"Expiry {expiry} must be after current height {now}")

        offer_id = self._offer_counters.get(seller, 0) + 1
        offer = Offer(
            seller=seller,
            offer_id=offer_id,
            quantity=quantity,
            unit_price=unit_price,
            expiry=expiry,
            created_height=now,
        )
        self._offer_counters[seller] = offer_id
        self._offers[offer.key] = offer

        logger.info("Offer %s#%d listed: %d @ %d until %d",
                    seller, offer_id, quantity, unit_price, expiry)
        self._audit.emit(
            EventKind.OFFER_CREATED, seller,
            seller=seller, offer_id=offer_id, quantity=quantity,
            unit_price=unit_price, expiry=expiry,
        )
        return offer_id

    def buy_offer(self, buyer: str, seller: str, offer_id: int) -> int:
        """Purchase an open offer, locking its full price in escrow.

        Returns the escrowed amount.
        """
        self._roles.require_not_paused()
        if buyer == self._custody:
            raise NotAuthorized("The custodial account cannot buy offers")
        offer = self._require_offer(seller, offer_id)
        now = self._clock()

        errors = OfferStateMachine.validate_transition(offer, OfferState.PURCHASED, now)
        if errors:
            state = OfferStateMachine.current_state(offer, now)
            if state == OfferState.EXPIRED:
                raise Expired(f"Offer {seller}#{offer_id} expired at {offer.expiry}")
            raise AlreadyClaimed(errors[0])

        total = offer.total_price
        if total > MAX_AMOUNT:
            raise InvalidAmount(f"Total price {total} overflows {MAX_AMOUNT}")
        if not self._escrow.can_lock(buyer, offer_id):
            raise EscrowFailure(
                f"Buyer {buyer} already holds escrow under offer id {offer_id}"
            )

        with self._audit.caused_by(EventKind.OFFER_BOUGHT):
            self._move(buyer, self._custody, total)

        offer.buyer = buyer
        offer.purchased_height = now
        self._escrow.lock(EscrowHold(
            buyer=buyer, seller=seller, offer_id=offer_id,
            amount=total, locked_height=now,
        ))

        logger.info("Offer %s#%d bought by %s; %d in escrow", seller, offer_id, buyer, total)
        self._audit.emit(
            EventKind.OFFER_BOUGHT, buyer,
            buyer=buyer, seller=seller, offer_id=offer_id, amount=total,
        )
        return total

    def confirm_delivery(self, caller: str, seller: str, offer_id: int) -> int:
        """Release escrow to the seller. Caller must be the seller or oracle.

        Returns the released amount.
        """
        if caller != seller and caller != self._roles.oracle:
            raise NotAuthorized(
                f"Only the seller or oracle may confirm delivery, not {caller}"
            )
        self._roles.require_not_paused()
        offer, hold = self._require_settleable(seller, offer_id)

        with self._audit.caused_by(EventKind.DELIVERY_CONFIRMED):
            self._move(self._custody, seller, hold.amount)
        self._settle(offer, Settlement.DELIVERED)

        logger.info("Delivery confirmed for %s#%d by %s; %d released to seller",
                    seller, offer_id, caller, hold.amount)
        self._audit.emit(
            EventKind.DELIVERY_CONFIRMED, caller,
            seller=seller, offer_id=offer_id, buyer=hold.buyer, amount=hold.amount,
        )
        return hold.amount

    def resolve_dispute(
        self,
        caller: str,
        seller: str,
        offer_id: int,
        refund_buyer: bool,
    ) -> int:
        """Admin arbitration: release escrow to buyer (refund) or seller.

        Not gated by the market pause. The release still goes through the
        ledger, so a paused ledger refuses it with EscrowFailure and the
        hold stays in place; unpause the ledger first, then resolve.
        Returns the released amount.
        """
        self._roles.require_admin(caller)
        offer, hold = self._require_settleable(seller, offer_id)
        recipient = hold.buyer if refund_buyer else seller

        with self._audit.caused_by(EventKind.DISPUTE_RESOLVED):
            self._move(self._custody, recipient, hold.amount)
        self._settle(
            offer,
            Settlement.REFUNDED if refund_buyer else Settlement.PAID_ON_DISPUTE,
        )

        logger.info("Dispute on %s#%d resolved by %s; %d released to %s",
                    seller, offer_id, caller, hold.amount, recipient)
        self._audit.emit(
            EventKind.DISPUTE_RESOLVED, caller,
            seller=seller, offer_id=offer_id, buyer=hold.buyer,
            refund_buyer=bool(refund_buyer), recipient=recipient, amount=hold.amount,
        )
        return hold.amount

    def batch_buy(
        self,
        buyer: str,
        sellers: Sequence[str],
        offer_ids: Sequence[int],
    ) -> List[int]:
        """Buy several offers in order, stopping at the first failure.

        Not atomic: purchases made before the failing entry stay committed
        and the failing entry's error is raised. Returns the escrowed
        amounts when every entry succeeds.
        """
        if max(len(sellers), len(offer_ids)) > self._batch_buy_limit:
            raise BatchLimitExceeded(
                f"Batch of {max(len(sellers), len(offer_ids))} exceeds "
                f"limit {self._batch_buy_limit}"
            )
        if len(sellers) != len(offer_ids):
            raise LengthMismatch(
                f"{len(sellers)} sellers but {len(offer_ids)} offer ids"
            )

        amounts: List[int] = []
        for seller, offer_id in zip(sellers, offer_ids):
            try:
                amounts.append(self.buy_offer(buyer, seller, offer_id))
            except EcoFlowError:
                logger.warning(
                    "Batch buy for %s stopped at %s#%s after %d committed purchase(s)",
                    buyer, seller, offer_id, len(amounts),
                )
                raise
        return amounts

    # ------------------------------------------------------------------
    # Administration (never blocked by pause)
    # ------------------------------------------------------------------

    def set_admin(self, caller: str, new_admin: str) -> None:
        self._roles.set_admin(caller, new_admin)
        self._config_changed(caller, "admin", new_admin)

    def set_oracle(self, caller: str, new_oracle: str) -> None:
        self._roles.set_oracle(caller, new_oracle)
        self._config_changed(caller, "oracle", new_oracle)

    def set_token_authority(self, caller: str, new_authority: str) -> None:
        self._roles.set_token_authority(caller, new_authority)
        self._config_changed(caller, "token_authority", new_authority)

    def set_paused(self, caller: str, paused: bool) -> bool:
        result = self._roles.set_paused(caller, paused)
        self._config_changed(caller, "paused", result)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_offer(self, seller: str, offer_id: int) -> Optional[Offer]:
        """Return a copy of the offer, or None."""
        offer = self._offers.get((seller, offer_id))
        return replace(offer) if offer is not None else None

    def get_escrow(self, buyer: str, offer_id: int) -> Optional[int]:
        hold = self._escrow.get(buyer, offer_id)
        return hold.amount if hold is not None else None

    def get_offer_counter(self, seller: str) -> int:
        return self._offer_counters.get(seller, 0)

    def offer_state(self, seller: str, offer_id: int) -> Optional[OfferState]:
        offer = self._offers.get((seller, offer_id))
        if offer is None:
            return None
        return OfferStateMachine.current_state(offer, self._clock())

    def offers(self) -> List[Offer]:
        return [replace(o) for o in self._offers.values()]

    def open_offers(self) -> List[Offer]:
        now = self._clock()
        return [
            replace(o) for o in self._offers.values()
            if OfferStateMachine.current_state(o, now) == OfferState.OPEN
        ]

    def escrow_holds(self) -> List[EscrowHold]:
        return list(self._escrow)

    def escrow_total(self) -> int:
        return self._escrow.total()

    @property
    def custody(self) -> str:
        return self._custody

    @property
    def batch_buy_limit(self) -> int:
        return self._batch_buy_limit

    @property
    def admin(self) -> str:
        return self._roles.admin

    @property
    def oracle(self) -> str:
        return self._roles.oracle

    @property
    def token_authority(self) -> str:
        return self._roles.token_authority

    @property
    def paused(self) -> bool:
        return self._roles.paused

    @property
    def audit_degraded(self) -> bool:
        return self._audit.degraded

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_offer(self, seller: str, offer_id: int) -> Offer:
        offer = self._offers.get((seller, offer_id))
        if offer is None:
            raise OfferNotFound(f"Offer not found: {seller}#{offer_id}")
        return offer

    def _require_settleable(self, seller: str, offer_id: int) -> tuple[Offer, EscrowHold]:
        """Shared settlement preconditions: exists, unclaimed, bought, funded."""
        offer = self._require_offer(seller, offer_id)
        now = self._clock()
        errors = OfferStateMachine.validate_transition(offer, OfferState.SETTLED, now)
        if errors:
            if offer.claimed:
                raise AlreadyClaimed(errors[0])
            raise OfferNotFound(f"Offer {seller}#{offer_id} has no buyer")

        hold = self._escrow.require(offer.buyer, offer_id)
        if hold.seller != seller:
            raise EscrowFailure(
                f"Escrow for {offer.buyer}#{offer_id} does not fund {seller}'s offer"
            )
        return offer, hold

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        try:
            self._ledger.transfer(sender, recipient, amount)
        except EcoFlowError as e:
            logger.warning("Ledger refused %d from %s to %s: %s", amount, sender, recipient, e)
            raise EscrowFailure(f"Ledger transfer failed: {e}") from e

    def _settle(self, offer: Offer, settlement: Settlement) -> None:
        self._escrow.release(offer.buyer, offer.offer_id)
        offer.claimed = True
        offer.settled_height = self._clock()
        offer.settlement = settlement

    def _config_changed(self, caller: str, setting: str, value: object) -> None:
        logger.info("Market %s set to %s by %s", setting, value, caller)
        self._audit.emit(
            EventKind.CONFIG_CHANGED, caller,
            component="market", setting=setting, value=value,
        )
