"""Error taxonomy — every rejected ledger or market operation raises one of these.

Each error carries an ErrorKind and the numeric code published to
indexers. Ledger kinds live in the 100 range, market kinds in the 200
range. Raising any of them guarantees the operation committed nothing.

EcoFlowError subclasses ValueError: callers that only care about
"the input was rejected" can keep catching ValueError.
"""

from __future__ import annotations

import enum
from typing import Dict, Optional


class ErrorKind(str, enum.Enum):
    """Classification of operation failures (kind, not transport code)."""
    NOT_AUTHORIZED = "not_authorized"
    PAUSED = "paused"
    INVALID_AMOUNT = "invalid_amount"
    ZERO_ADDRESS = "zero_address"
    SELF_TRANSFER = "self_transfer"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    ALLOWANCE_EXISTS = "allowance_exists"
    SUPPLY_CAP_EXCEEDED = "supply_cap_exceeded"
    LENGTH_MISMATCH = "length_mismatch"
    OFFER_NOT_FOUND = "offer_not_found"
    EXPIRED = "expired"
    ALREADY_CLAIMED = "already_claimed"
    ESCROW_FAILURE = "escrow_failure"
    BATCH_LIMIT_EXCEEDED = "batch_limit_exceeded"


ERROR_CODES: Dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHORIZED: 100,
    ErrorKind.INSUFFICIENT_BALANCE: 101,
    ErrorKind.INSUFFICIENT_ALLOWANCE: 102,
    ErrorKind.SUPPLY_CAP_EXCEEDED: 103,
    ErrorKind.PAUSED: 104,
    ErrorKind.ZERO_ADDRESS: 105,
    ErrorKind.INVALID_AMOUNT: 106,
    ErrorKind.SELF_TRANSFER: 107,
    ErrorKind.ALLOWANCE_EXISTS: 108,
    ErrorKind.LENGTH_MISMATCH: 109,
    ErrorKind.OFFER_NOT_FOUND: 202,
    ErrorKind.EXPIRED: 203,
    ErrorKind.ESCROW_FAILURE: 207,
    ErrorKind.ALREADY_CLAIMED: 208,
    ErrorKind.BATCH_LIMIT_EXCEEDED: 209,
}


class EcoFlowError(ValueError):
    """Base class for all typed operation failures."""
    kind: ErrorKind = ErrorKind.INVALID_AMOUNT

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.kind.value.replace("_", " "))

    @property
    def code(self) -> int:
        return ERROR_CODES[self.kind]


class NotAuthorized(EcoFlowError):
    kind = ErrorKind.NOT_AUTHORIZED


class Paused(EcoFlowError):
    kind = ErrorKind.PAUSED


class InvalidAmount(EcoFlowError):
    kind = ErrorKind.INVALID_AMOUNT


class ZeroAddress(EcoFlowError):
    kind = ErrorKind.ZERO_ADDRESS


class SelfTransfer(EcoFlowError):
    kind = ErrorKind.SELF_TRANSFER


class InsufficientBalance(EcoFlowError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class InsufficientAllowance(EcoFlowError):
    kind = ErrorKind.INSUFFICIENT_ALLOWANCE


class AllowanceExists(EcoFlowError):
    kind = ErrorKind.ALLOWANCE_EXISTS


class SupplyCapExceeded(EcoFlowError):
    kind = ErrorKind.SUPPLY_CAP_EXCEEDED


class LengthMismatch(EcoFlowError):
    kind = ErrorKind.LENGTH_MISMATCH


class OfferNotFound(EcoFlowError):
    kind = ErrorKind.OFFER_NOT_FOUND


class Expired(EcoFlowError):
    kind = ErrorKind.EXPIRED


class AlreadyClaimed(EcoFlowError):
    """Offer already has a buyer, or is already settled."""
    kind = ErrorKind.ALREADY_CLAIMED


class EscrowFailure(EcoFlowError):
    """Escrow hold missing or non-positive, or the ledger refused the move."""
    kind = ErrorKind.ESCROW_FAILURE


class BatchLimitExceeded(EcoFlowError):
    kind = ErrorKind.BATCH_LIMIT_EXCEEDED
