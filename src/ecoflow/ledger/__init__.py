"""Credit ledger — balances, supply cap, and the transfer capability it exposes."""

from ecoflow.ledger.capability import TransferCapability
from ecoflow.ledger.credit_ledger import CreditLedger

__all__ = ["CreditLedger", "TransferCapability"]
