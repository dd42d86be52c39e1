"""EcoFlow service — unified facade over the credit ledger and the energy market.

This is the primary interface for programmatic access to EcoFlow.
It wires the subsystems together:
- Credit ledger (mint, burn, transfer, allowances, staking)
- Offer & escrow engine (list, buy, confirm delivery, resolve disputes)
- Block clock (logical time for offer expiry)
- Event log (audit trail, indexer feed, replay source)

All operations produce typed results: a domain rejection becomes a
ServiceResult with success=False and the error kind and code, never an
exception. The ledger and the engine share one audit emitter, so a
single event log carries the full, ordered history and can rebuild the
state via from_event_log().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from ecoflow import __version__
from ecoflow.clock import BlockClock
from ecoflow.errors import EcoFlowError, ErrorKind
from ecoflow.ledger.credit_ledger import CreditLedger
from ecoflow.market.engine import OfferEscrowEngine
from ecoflow.market.offer_state_machine import OfferStateMachine
from ecoflow.models.market import Offer
from ecoflow.persistence.audit import AuditEmitter
from ecoflow.persistence.event_log import EventKind, EventLog, EventRecord
from ecoflow.policy.resolver import PolicyResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    error_code: Optional[int] = None
    data: dict[str, Any] = field(default_factory=dict)


class EcoFlowService:
    """Ledger + market facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        service = EcoFlowService(resolver)

        service.mint(authority, "alice", 1_000)
        result = service.create_offer("alice", quantity=100, unit_price=5, expiry=50)
        service.buy_offer("bob", "alice", result.data["offer_id"])
        service.confirm_delivery("alice", "alice", result.data["offer_id"])

    Persistence (optional):
        log = EventLog(storage_path=data_dir / "events.jsonl")
        service = EcoFlowService.from_event_log(resolver, log)
        # State is rebuilt from the log; new events are appended to it.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        event_log: Optional[EventLog] = None,
        clock: Optional[BlockClock] = None,
    ) -> None:
        self._resolver = resolver
        self._clock = clock or BlockClock(resolver.initial_height())
        self._audit = AuditEmitter(event_log, clock=self._clock.now)
        self._ledger = CreditLedger(
            resolver.ledger_roles(),
            max_supply=resolver.max_supply(),
            oracle_can_mint=resolver.oracle_can_mint(),
            audit=self._audit,
        )
        self._engine = OfferEscrowEngine(
            resolver.market_roles(),
            ledger=self._ledger.custody_rail(resolver.custody_identity()),
            custody=resolver.custody_identity(),
            clock=self._clock.now,
            batch_buy_limit=resolver.batch_buy_limit(),
            audit=self._audit,
        )

    @classmethod
    def from_event_log(
        cls,
        resolver: PolicyResolver,
        event_log: EventLog,
    ) -> EcoFlowService:
        """Rebuild state by re-running every recorded operation in order.

        Each operation runs at its recorded block height. Transfers that
        were caused by an escrow transition are skipped; re-running the
        transition reproduces them. Raises ValueError if any recorded
        operation fails to re-apply (the log does not match the config).
        """
        service = cls(resolver)
        for event in event_log.events():
            service._replay(event)
        service._audit.attach(event_log)
        logger.info(
            "Replayed %d events up to height %d", event_log.count, service.height,
        )
        return service

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    @property
    def height(self) -> int:
        return self._clock.height

    def advance_to(self, height: int) -> ServiceResult:
        """Move logical time forward. Height never goes backwards."""
        try:
            self._clock.advance_to(height)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(success=True, data={"height": self._clock.height})

    # ------------------------------------------------------------------
    # Ledger operations
    # ------------------------------------------------------------------

    def mint(self, caller: str, recipient: str, amount: int) -> ServiceResult:
        return self._run(
            "mint", lambda: self._ledger.mint(caller, recipient, amount),
            lambda _: {
                "recipient": recipient,
                "balance": self._ledger.balance_of(recipient),
                "total_supply": self._ledger.total_supply,
            },
        )

    def burn(self, caller: str, amount: int) -> ServiceResult:
        return self._run(
            "burn", lambda: self._ledger.burn(caller, amount),
            lambda _: {
                "balance": self._ledger.balance_of(caller),
                "total_supply": self._ledger.total_supply,
            },
        )

    def transfer(self, sender: str, recipient: str, amount: int) -> ServiceResult:
        return self._run(
            "transfer", lambda: self._ledger.transfer(sender, recipient, amount),
            lambda _: {
                "sender_balance": self._ledger.balance_of(sender),
                "recipient_balance": self._ledger.balance_of(recipient),
            },
        )

    def batch_transfer(
        self,
        sender: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
    ) -> ServiceResult:
        return self._run(
            "batch_transfer",
            lambda: self._ledger.batch_transfer(sender, recipients, amounts),
            lambda _: {
                "transfers": len(recipients),
                "sender_balance": self._ledger.balance_of(sender),
            },
        )

    def approve(self, owner: str, spender: str, amount: int) -> ServiceResult:
        return self._run(
            "approve", lambda: self._ledger.approve(owner, spender, amount),
            lambda _: {"allowance": self._ledger.allowance(owner, spender)},
        )

    def transfer_from(
        self, spender: str, owner: str, recipient: str, amount: int,
    ) -> ServiceResult:
        return self._run(
            "transfer_from",
            lambda: self._ledger.transfer_from(spender, owner, recipient, amount),
            lambda _: {
                "remaining_allowance": self._ledger.allowance(owner, spender),
                "owner_balance": self._ledger.balance_of(owner),
            },
        )

    def stake(self, caller: str, amount: int) -> ServiceResult:
        return self._run(
            "stake", lambda: self._ledger.stake(caller, amount),
            lambda _: {"staked": self._ledger.staked_balance_of(caller)},
        )

    def unstake(self, caller: str, amount: int) -> ServiceResult:
        return self._run(
            "unstake", lambda: self._ledger.unstake(caller, amount),
            lambda _: {"staked": self._ledger.staked_balance_of(caller)},
        )

    def set_ledger_authority(self, caller: str, new_authority: str) -> ServiceResult:
        return self._run(
            "set_ledger_authority",
            lambda: self._ledger.set_authority(caller, new_authority),
            lambda _: {"token_authority": self._ledger.token_authority},
        )

    def set_ledger_oracle(self, caller: str, new_oracle: str) -> ServiceResult:
        return self._run(
            "set_ledger_oracle",
            lambda: self._ledger.set_oracle(caller, new_oracle),
            lambda _: {"oracle": self._ledger.oracle},
        )

    def set_ledger_admin(self, caller: str, new_admin: str) -> ServiceResult:
        return self._run(
            "set_ledger_admin",
            lambda: self._ledger.set_admin(caller, new_admin),
            lambda _: {"admin": self._ledger.admin},
        )

    def set_ledger_paused(self, caller: str, paused: bool) -> ServiceResult:
        return self._run(
            "set_ledger_paused",
            lambda: self._ledger.set_paused(caller, paused),
            lambda value: {"paused": value},
        )

    # ------------------------------------------------------------------
    # Market operations
    # ------------------------------------------------------------------

    def create_offer(
        self, seller: str, quantity: int, unit_price: int, expiry: int,
    ) -> ServiceResult:
        return self._run(
            "create_offer",
            lambda: self._engine.create_offer(seller, quantity, unit_price, expiry),
            lambda offer_id: {"seller": seller, "offer_id": offer_id},
        )

    def buy_offer(self, buyer: str, seller: str, offer_id: int) -> ServiceResult:
        return self._run(
            "buy_offer",
            lambda: self._engine.buy_offer(buyer, seller, offer_id),
            lambda amount: {
                "seller": seller, "offer_id": offer_id, "escrowed": amount,
            },
        )

    def confirm_delivery(self, caller: str, seller: str, offer_id: int) -> ServiceResult:
        return self._run(
            "confirm_delivery",
            lambda: self._engine.confirm_delivery(caller, seller, offer_id),
            lambda amount: {
                "seller": seller, "offer_id": offer_id, "released": amount,
            },
        )

    def resolve_dispute(
        self, caller: str, seller: str, offer_id: int, refund_buyer: bool,
    ) -> ServiceResult:
        return self._run(
            "resolve_dispute",
            lambda: self._engine.resolve_dispute(caller, seller, offer_id, refund_buyer),
            lambda amount: {
                "seller": seller,
                "offer_id": offer_id,
                "released": amount,
                "refunded_buyer": bool(refund_buyer),
            },
        )

    def batch_buy(
        self,
        buyer: str,
        sellers: Sequence[str],
        offer_ids: Sequence[int],
    ) -> ServiceResult:
        """Buy up to batch_buy_limit offers; earlier purchases survive a failure."""
        escrow_before = self._engine.escrow_total()
        result = self._run(
            "batch_buy",
            lambda: self._engine.batch_buy(buyer, sellers, offer_ids),
            lambda amounts: {"purchased": len(amounts), "escrowed": sum(amounts)},
        )
        if not result.success:
            # Report what stayed committed ahead of the failing entry
            result.data["escrowed_before_failure"] = (
                self._engine.escrow_total() - escrow_before
            )
        return result

    def set_market_admin(self, caller: str, new_admin: str) -> ServiceResult:
        return self._run(
            "set_market_admin",
            lambda: self._engine.set_admin(caller, new_admin),
            lambda _: {"admin": self._engine.admin},
        )

    def set_market_oracle(self, caller: str, new_oracle: str) -> ServiceResult:
        return self._run(
            "set_market_oracle",
            lambda: self._engine.set_oracle(caller, new_oracle),
            lambda _: {"oracle": self._engine.oracle},
        )

    def set_market_token_authority(self, caller: str, new_authority: str) -> ServiceResult:
        return self._run(
            "set_market_token_authority",
            lambda: self._engine.set_token_authority(caller, new_authority),
            lambda _: {"token_authority": self._engine.token_authority},
        )

    def set_market_paused(self, caller: str, paused: bool) -> ServiceResult:
        return self._run(
            "set_market_paused",
            lambda: self._engine.set_paused(caller, paused),
            lambda value: {"paused": value},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> CreditLedger:
        return self._ledger

    @property
    def engine(self) -> OfferEscrowEngine:
        return self._engine

    def balance_of(self, identity: str) -> int:
        return self._ledger.balance_of(identity)

    def get_offer(self, seller: str, offer_id: int) -> Optional[Offer]:
        return self._engine.get_offer(seller, offer_id)

    def get_escrow(self, buyer: str, offer_id: int) -> Optional[int]:
        return self._engine.get_escrow(buyer, offer_id)

    def conservation_report(self) -> dict[str, Any]:
        """Check that every minted unit is held, staked, or escrowed."""
        custody = self._engine.custody
        holders = self._ledger.holders()
        custody_balance = holders.pop(custody, 0)
        liquid = sum(holders.values())
        staked = self._ledger.total_staked()
        escrowed = self._engine.escrow_total()
        supply = self._ledger.total_supply
        return {
            "total_supply": supply,
            "liquid": liquid,
            "staked": staked,
            "escrowed": escrowed,
            "custody_balance": custody_balance,
            "holds_conserved": liquid + staked + escrowed == supply,
            "custody_matches_escrow": custody_balance == escrowed,
            "ok": (
                liquid + staked + escrowed == supply
                and custody_balance == escrowed
                and self._ledger.verify_conservation()
            ),
        }

    def status(self) -> dict[str, Any]:
        """Return system-wide status summary."""
        offers = self._engine.offers()
        by_state: dict[str, int] = {}
        for offer in offers:
            state = OfferStateMachine.current_state(offer, self._clock.height)
            by_state[state.value] = by_state.get(state.value, 0) + 1
        event_log = self._audit.event_log
        return {
            "version": __version__,
            "height": self._clock.height,
            "ledger": {
                "total_supply": self._ledger.total_supply,
                "max_supply": self._ledger.max_supply,
                "holders": len(self._ledger.holders()),
                "paused": self._ledger.paused,
            },
            "market": {
                "total_offers": len(offers),
                "by_state": by_state,
                "escrow_holds": len(self._engine.escrow_holds()),
                "escrow_total": self._engine.escrow_total(),
                "paused": self._engine.paused,
            },
            "events": event_log.count if event_log is not None else 0,
            "audit_degraded": self._audit.degraded,
            "conserved": self.conservation_report()["ok"],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(
        self,
        op: str,
        action: Callable[[], Any],
        describe: Callable[[Any], dict[str, Any]],
    ) -> ServiceResult:
        try:
            value = action()
        except EcoFlowError as e:
            logger.warning("%s rejected (%s): %s", op, e.kind.value, e)
            return ServiceResult(
                success=False,
                errors=[str(e)],
                error_kind=e.kind,
                error_code=e.code,
            )
        data = describe(value)
        if self._audit.degraded:
            data["warning"] = (
                "Audit degraded: state committed but the event log is stale"
            )
        return ServiceResult(success=True, data=data)

    def _replay(self, event: EventRecord) -> None:
        p = event.payload
        actor = event.actor_id
        self._clock.advance_to(p.get("height", self._clock.height))
        kind = event.event_kind
        try:
            if kind == EventKind.MINT:
                self._ledger.mint(actor, p["recipient"], p["amount"])
            elif kind == EventKind.BURN:
                self._ledger.burn(actor, p["amount"])
            elif kind == EventKind.TRANSFER:
                if "cause" in p:
                    return
                if "spender" in p:
                    self._ledger.transfer_from(
                        p["spender"], p["sender"], p["recipient"], p["amount"],
                    )
                else:
                    self._ledger.transfer(p["sender"], p["recipient"], p["amount"])
            elif kind == EventKind.APPROVAL:
                self._ledger.approve(actor, p["spender"], p["amount"])
            elif kind == EventKind.STAKE:
                self._ledger.stake(actor, p["amount"])
            elif kind == EventKind.UNSTAKE:
                self._ledger.unstake(actor, p["amount"])
            elif kind == EventKind.OFFER_CREATED:
                offer_id = self._engine.create_offer(
                    p["seller"], p["quantity"], p["unit_price"], p["expiry"],
                )
                if offer_id != p["offer_id"]:
                    raise ValueError(
                        f"offer id {offer_id} does not match recorded {p['offer_id']}"
                    )
            elif kind == EventKind.OFFER_BOUGHT:
                self._engine.buy_offer(p["buyer"], p["seller"], p["offer_id"])
            elif kind == EventKind.DELIVERY_CONFIRMED:
                self._engine.confirm_delivery(actor, p["seller"], p["offer_id"])
            elif kind == EventKind.DISPUTE_RESOLVED:
                self._engine.resolve_dispute(
                    actor, p["seller"], p["offer_id"], p["refund_buyer"],
                )
            elif kind == EventKind.CONFIG_CHANGED:
                self._replay_config(actor, p["component"], p["setting"], p["value"])
        except (EcoFlowError, KeyError, ValueError) as e:
            raise ValueError(
                f"Replay diverged at {event.event_id} ({kind.value}): {e}"
            ) from e

    def _replay_config(self, actor: str, component: str, setting: str, value: Any) -> None:
        setters: dict[tuple[str, str], Callable[[str, Any], Any]] = {
            ("ledger", "admin"): self._ledger.set_admin,
            ("ledger", "oracle"): self._ledger.set_oracle,
            ("ledger", "token_authority"): self._ledger.set_authority,
            ("ledger", "paused"): self._ledger.set_paused,
            ("market", "admin"): self._engine.set_admin,
            ("market", "oracle"): self._engine.set_oracle,
            ("market", "token_authority"): self._engine.set_token_authority,
            ("market", "paused"): self._engine.set_paused,
        }
        setter = setters.get((component, setting))
        if setter is None:
            raise ValueError(f"Unknown setting {component}.{setting}")
        setter(actor, value)
