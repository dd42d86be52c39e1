"""Transfer capability — the only ledger surface the offer engine may use.

The engine is wired against this protocol, not against CreditLedger, so
the ledger behind it is replaceable configuration and tests can inject
a double. Implementations must either move the full amount or raise an
EcoFlowError having moved nothing.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TransferCapability(Protocol):
    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        ...

    def balance_of(self, identity: str) -> int:
        ...
