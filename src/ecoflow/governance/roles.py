"""Role configuration — admin, oracle, token authority, and the pause flag.

Each component (ledger, offer engine) owns one RoleConfig, created at
system init and mutated only through admin-gated setters. Nothing here
authenticates callers: identities arrive from the environment and are
only compared against the stored roles.

Pause semantics are decided by the caller: a component calls
require_not_paused() on the operations pause gates, and skips it where
pause must not apply (queries, admin reconfiguration, dispute resolution).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ecoflow.errors import NotAuthorized, Paused, ZeroAddress


# Placeholder principal meaning "no account".
NULL_IDENTITY = "SP000000000000000000002Q6VF78"


def is_null_identity(identity: Optional[str]) -> bool:
    """True for None, blank strings, and the placeholder principal."""
    if identity is None:
        return True
    stripped = identity.strip()
    return not stripped or stripped == NULL_IDENTITY


@dataclass
class RoleConfig:
    """Process-wide role identities and pause flag for one component."""
    admin: str
    oracle: str = NULL_IDENTITY
    token_authority: str = NULL_IDENTITY
    paused: bool = False

    def __post_init__(self) -> None:
        if is_null_identity(self.admin):
            raise ZeroAddress("Admin identity must not be null")

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def is_admin(self, caller: str) -> bool:
        return caller == self.admin

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise NotAuthorized(f"Caller {caller} is not the admin")

    def require_not_paused(self) -> None:
        if self.paused:
            raise Paused("Operation blocked: component is paused")

    # ------------------------------------------------------------------
    # Admin-gated mutation (never blocked by pause)
    # ------------------------------------------------------------------

    def set_admin(self, caller: str, new_admin: str) -> str:
        self.require_admin(caller)
        if is_null_identity(new_admin):
            raise ZeroAddress("Admin cannot be transferred to the null identity")
        previous, self.admin = self.admin, new_admin
        return previous

    def set_oracle(self, caller: str, new_oracle: str) -> str:
        self.require_admin(caller)
        previous, self.oracle = self.oracle, new_oracle
        return previous

    def set_token_authority(self, caller: str, new_authority: str) -> str:
        self.require_admin(caller)
        previous, self.token_authority = self.token_authority, new_authority
        return previous

    def set_paused(self, caller: str, paused: bool) -> bool:
        self.require_admin(caller)
        self.paused = bool(paused)
        return self.paused
