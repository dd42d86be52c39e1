"""Credit ledger — fungible energy-credit balances with a hard supply cap.

The ledger is the sole authority that moves value. Other components
(the offer engine) call into it through TransferCapability and never
touch balances directly; the ledger has no knowledge of offers.

Every mutator is validate-then-commit: all checks run against current
state (or a working copy, for batches) before the first write, so a
raised EcoFlowError always means nothing changed.

Conservation invariant:
    sum(balances) + sum(staked) == total_supply <= max_supply

Reserved identities (the market custody account) are reachable only
through the CustodyRail handed to their owner. Every user-facing
operation refuses them as sender, recipient, owner or spender.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Set, Tuple

from ecoflow.errors import (
    AllowanceExists,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidAmount,
    LengthMismatch,
    NotAuthorized,
    SelfTransfer,
    SupplyCapExceeded,
    ZeroAddress,
)
from ecoflow.governance.roles import RoleConfig, is_null_identity
from ecoflow.persistence.audit import AuditEmitter
from ecoflow.persistence.event_log import EventKind

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> None:
    # bool is an int subclass; True is not an amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")


class CreditLedger:
    """In-memory credit ledger.

    Usage:
        roles = RoleConfig(admin="admin", token_authority="admin")
        ledger = CreditLedger(roles, max_supply=1_000_000)
        ledger.mint("admin", "alice", 500)
        ledger.transfer("alice", "bob", 200)
        ledger.balance_of("bob")  # 200
    """

    def __init__(
        self,
        roles: RoleConfig,
        max_supply: int,
        oracle_can_mint: bool = False,
        audit: Optional[AuditEmitter] = None,
    ) -> None:
        if max_supply <= 0:
            raise ValueError("max_supply must be positive")
        self._roles = roles
        self._max_supply = max_supply
        self._oracle_can_mint = oracle_can_mint
        self._audit = audit or AuditEmitter()
        self._balances: Dict[str, int] = {}
        self._staked: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._reserved: Set[str] = set()
        self._total_supply = 0

    # ------------------------------------------------------------------
    # Supply
    # ------------------------------------------------------------------

    def mint(self, caller: str, recipient: str, amount: int) -> None:
        """Credit newly issued units to recipient.

        The cap is all-or-nothing: a mint that would overshoot
        max_supply is rejected in full, never partially applied.
        """
        if not self._may_mint(caller):
            raise NotAuthorized(f"Caller {caller} may not mint")
        self._roles.require_not_paused()
        _require_positive(amount)
        if is_null_identity(recipient):
            raise ZeroAddress("Cannot mint to the null identity")
        self._require_unreserved(recipient)
        if self._total_supply + amount > self._max_supply:
            raise SupplyCapExceeded(
                f"Minting {amount} would exceed max supply "
                f"({self._total_supply} + {amount} > {self._max_supply})"
            )

        self._credit(self._balances, recipient, amount)
        self._total_supply += amount

        logger.info("Minted %d to %s (supply %d)", amount, recipient, self._total_supply)
        self._audit.emit(EventKind.MINT, caller, recipient=recipient, amount=amount)

    def burn(self, caller: str, amount: int) -> None:
        """Destroy units from the caller's own balance."""
        self._roles.require_not_paused()
        self._require_unreserved(caller)
        _require_positive(amount)
        self._require_funds(self._balances, caller, amount)

        self._debit(self._balances, caller, amount)
        self._total_supply -= amount

        logger.info("Burned %d from %s (supply %d)", amount, caller, self._total_supply)
        self._audit.emit(EventKind.BURN, caller, amount=amount)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move amount from sender to recipient, atomically.

        Self-transfers are rejected rather than treated as no-ops.
        Reserved identities are refused on either side.
        """
        self._roles.require_not_paused()
        self._require_unreserved(sender, recipient)
        self._move(sender, recipient, amount)

    def batch_transfer(
        self,
        sender: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
    ) -> None:
        """Apply transfers in order; the whole batch commits or none of it does.

        Each leg is validated against a working copy that already reflects
        the earlier legs, so the first failing leg aborts with its own error.
        """
        self._roles.require_not_paused()
        if len(recipients) != len(amounts):
            raise LengthMismatch(
                f"{len(recipients)} recipients but {len(amounts)} amounts"
            )

        working = dict(self._balances)
        for recipient, amount in zip(recipients, amounts):
            self._require_unreserved(sender, recipient)
            self._check_transfer(working, sender, recipient, amount)
            self._debit(working, sender, amount)
            self._credit(working, recipient, amount)

        self._balances = working

        logger.info("Batch of %d transfers committed for %s", len(recipients), sender)
        for recipient, amount in zip(recipients, amounts):
            self._audit.emit(
                EventKind.TRANSFER, sender,
                sender=sender, recipient=recipient, amount=amount,
            )

    def approve(self, owner: str, spender: str, amount: int) -> None:
        """Grant spender a one-time allowance over owner's balance.

        An allowance cannot be overwritten while one is outstanding.
        """
        self._roles.require_not_paused()
        _require_positive(amount)
        if is_null_identity(spender):
            raise ZeroAddress("Cannot approve the null identity")
        self._require_unreserved(owner, spender)
        if (owner, spender) in self._allowances:
            raise AllowanceExists(f"Allowance already set for {owner} -> {spender}")

        self._allowances[(owner, spender)] = amount
        self._audit.emit(EventKind.APPROVAL, owner, spender=spender, amount=amount)

    def transfer_from(
        self,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> None:
        """Move owner's funds to recipient, spending spender's allowance."""
        self._roles.require_not_paused()
        self._require_unreserved(spender, owner, recipient)
        _require_positive(amount)
        allowance = self._allowances.get((owner, spender), 0)
        if allowance < amount:
            raise InsufficientAllowance(
                f"Allowance {allowance} for {spender} over {owner} is below {amount}"
            )
        self._check_transfer(self._balances, owner, recipient, amount)

        self._debit(self._balances, owner, amount)
        self._credit(self._balances, recipient, amount)
        remaining = allowance - amount
        if remaining:
            self._allowances[(owner, spender)] = remaining
        else:
            del self._allowances[(owner, spender)]

        self._audit.emit(
            EventKind.TRANSFER, spender,
            sender=owner, recipient=recipient, amount=amount, spender=spender,
        )

    # ------------------------------------------------------------------
    # Staking
    # ------------------------------------------------------------------

    def stake(self, caller: str, amount: int) -> None:
        self._roles.require_not_paused()
        self._require_unreserved(caller)
        _require_positive(amount)
        self._require_funds(self._balances, caller, amount)

        self._debit(self._balances, caller, amount)
        self._credit(self._staked, caller, amount)
        self._audit.emit(EventKind.STAKE, caller, amount=amount)

    def unstake(self, caller: str, amount: int) -> None:
        self._roles.require_not_paused()
        self._require_unreserved(caller)
        _require_positive(amount)
        self._require_funds(self._staked, caller, amount)

        self._debit(self._staked, caller, amount)
        self._credit(self._balances, caller, amount)
        self._audit.emit(EventKind.UNSTAKE, caller, amount=amount)

    # ------------------------------------------------------------------
    # Custody
    # ------------------------------------------------------------------

    def custody_rail(self, custody: str) -> CustodyRail:
        """Reserve custody for one owner and return its only way in or out."""
        if is_null_identity(custody):
            raise ZeroAddress("Custodial identity must not be null")
        if custody in self._reserved:
            raise ValueError(f"Identity {custody} is already reserved")
        self._reserved.add(custody)
        return CustodyRail(self, custody)

    def is_reserved(self, identity: str) -> bool:
        return identity in self._reserved

    # ------------------------------------------------------------------
    # Administration (never blocked by pause)
    # ------------------------------------------------------------------

    def set_authority(self, caller: str, new_authority: str) -> None:
        self._roles.set_token_authority(caller, new_authority)
        self._config_changed(caller, "token_authority", new_authority)

    def set_oracle(self, caller: str, new_oracle: str) -> None:
        self._roles.set_oracle(caller, new_oracle)
        self._config_changed(caller, "oracle", new_oracle)

    def set_admin(self, caller: str, new_admin: str) -> None:
        self._roles.set_admin(caller, new_admin)
        self._config_changed(caller, "admin", new_admin)

    def set_paused(self, caller: str, paused: bool) -> bool:
        result = self._roles.set_paused(caller, paused)
        self._config_changed(caller, "paused", result)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def staked_balance_of(self, identity: str) -> int:
        return self._staked.get(identity, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def holders(self) -> Dict[str, int]:
        """Snapshot of all non-zero liquid balances."""
        return dict(self._balances)

    def total_staked(self) -> int:
        return sum(self._staked.values())

    @property
    def total_supply(self) -> int:
        return self._total_supply

    @property
    def max_supply(self) -> int:
        return self._max_supply

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

    def verify_conservation(self) -> bool:
        """True iff no balance is negative and every unit is accounted for."""
        if any(v < 0 for v in self._balances.values()):
            return False
        if any(v < 0 for v in self._staked.values()):
            return False
        accounted = sum(self._balances.values()) + sum(self._staked.values())
        return accounted == self._total_supply <= self._max_supply

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _may_mint(self, caller: str) -> bool:
        if caller == self._roles.token_authority:
            return True
        return self._oracle_can_mint and caller == self._roles.oracle

    def _require_unreserved(self, *identities: str) -> None:
        for identity in identities:
            if identity in self._reserved:
                raise NotAuthorized(f"Identity {identity} is reserved for market custody")

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        """Validated single transfer; callers have already checked pause."""
        self._check_transfer(self._balances, sender, recipient, amount)

        self._debit(self._balances, sender, amount)
        self._credit(self._balances, recipient, amount)

        logger.debug("Transferred %d from %s to %s", amount, sender, recipient)
        self._audit.emit(
            EventKind.TRANSFER, sender,
            sender=sender, recipient=recipient, amount=amount,
        )

    def _check_transfer(
        self,
        balances: Dict[str, int],
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        _require_positive(amount)
        if is_null_identity(recipient):
            raise ZeroAddress("Cannot transfer to the null identity")
        if sender == recipient:
            raise SelfTransfer(f"Self-transfer rejected for {sender}")
        self._require_funds(balances, sender, amount)

    @staticmethod
    def _require_funds(balances: Dict[str, int], identity: str, amount: int) -> None:
        available = balances.get(identity, 0)
        if available < amount:
            raise InsufficientBalance(
                f"{identity} holds {available}, needs {amount}"
            )

    @staticmethod
    def _credit(balances: Dict[str, int], identity: str, amount: int) -> None:
        balances[identity] = balances.get(identity, 0) + amount

    @staticmethod
    def _debit(balances: Dict[str, int], identity: str, amount: int) -> None:
        remaining = balances.get(identity, 0) - amount
        if remaining < 0:
            raise InsufficientBalance(f"Debit would leave {identity} negative")
        # Keep the table sparse
        if remaining:
            balances[identity] = remaining
        else:
            balances.pop(identity, None)

    def _config_changed(self, caller: str, setting: str, value: object) -> None:
        logger.info("Ledger %s set to %s by %s", setting, value, caller)
        self._audit.emit(
            EventKind.CONFIG_CHANGED, caller,
            component="ledger", setting=setting, value=value,
        )


class CustodyRail:
    """TransferCapability bound to one reserved custodial identity.

    Every movement must have the custodial account on one side. Pause
    and the ordinary transfer checks still apply.
    """

    def __init__(self, ledger: CreditLedger, custody: str) -> None:
        self._ledger = ledger
        self._custody = custody

    @property
    def custody(self) -> str:
        return self._custody

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if self._custody not in (sender, recipient):
            raise NotAuthorized(
                f"Custody rail for {self._custody} cannot move {sender} -> {recipient}"
            )
        self._ledger._roles.require_not_paused()
        self._ledger._move(sender, recipient, amount)

    def balance_of(self, identity: str) -> int:
        return self._ledger.balance_of(identity)
