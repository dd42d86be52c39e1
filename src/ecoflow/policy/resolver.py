"""Policy resolver — typed access to the JSON configuration directory.

All tunable parameters live in config/market_params.json:

    {
      "ledger": {"max_supply": ..., "admin": ..., "token_authority": ...,
                 "oracle": ..., "oracle_can_mint": false},
      "market": {"admin": ..., "oracle": ..., "token_authority": ...,
                 "custody_identity": ..., "batch_buy_limit": 3},
      "clock": {"initial_height": 0}
    }

Fail-closed: missing sections, wrong types, and null admin or custody
identities are rejected at load time, not at first use.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ecoflow.governance.roles import NULL_IDENTITY, RoleConfig, is_null_identity


PARAMS_FILE = "market_params.json"


class PolicyResolver:
    """Resolves configuration values for the ledger and market.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        roles = resolver.ledger_roles()
    """

    def __init__(self, params: dict[str, Any]) -> None:
        errors = self.validate(params)
        if errors:
            raise ValueError("Invalid market parameters: " + "; ".join(errors))
        self._params = params

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        path = Path(config_dir) / PARAMS_FILE
        with path.open("r", encoding="utf-8") as handle:
            return cls(json.load(handle))

    @staticmethod
    def validate(params: dict[str, Any]) -> list[str]:
        """Structural checks. Returns errors (empty = OK)."""
        errors: list[str] = []
        for section in ("ledger", "market"):
            if not isinstance(params.get(section), dict):
                errors.append(f"Missing section: {section}")
        if errors:
            return errors

        ledger = params["ledger"]
        market = params["market"]

        max_supply = ledger.get("max_supply")
        if isinstance(max_supply, bool) or not isinstance(max_supply, int) or max_supply <= 0:
            errors.append(f"ledger.max_supply must be a positive integer, got {max_supply!r}")
        if is_null_identity(ledger.get("admin")):
            errors.append("ledger.admin must not be null")
        if is_null_identity(market.get("admin")):
            errors.append("market.admin must not be null")
        if is_null_identity(market.get("custody_identity")):
            errors.append("market.custody_identity must not be null")

        limit = market.get("batch_buy_limit", 3)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            errors.append(f"market.batch_buy_limit must be >= 1, got {limit!r}")

        height = params.get("clock", {}).get("initial_height", 0)
        if isinstance(height, bool) or not isinstance(height, int) or height < 0:
            errors.append(f"clock.initial_height must be >= 0, got {height!r}")
        return errors

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def max_supply(self) -> int:
        return int(self._params["ledger"]["max_supply"])

    def oracle_can_mint(self) -> bool:
        return bool(self._params["ledger"].get("oracle_can_mint", False))

    def ledger_roles(self) -> RoleConfig:
        """A fresh RoleConfig for the ledger (each call is independent)."""
        section = self._params["ledger"]
        return RoleConfig(
            admin=section["admin"],
            oracle=section.get("oracle", NULL_IDENTITY),
            token_authority=section.get("token_authority", section["admin"]),
            paused=bool(section.get("paused", False)),
        )

    # ------------------------------------------------------------------
    # Market
    # ------------------------------------------------------------------

    def market_roles(self) -> RoleConfig:
        section = self._params["market"]
        return RoleConfig(
            admin=section["admin"],
            oracle=section.get("oracle", NULL_IDENTITY),
            token_authority=section.get("token_authority", NULL_IDENTITY),
            paused=bool(section.get("paused", False)),
        )

    def custody_identity(self) -> str:
        return self._params["market"]["custody_identity"]

    def batch_buy_limit(self) -> int:
        return int(self._params["market"].get("batch_buy_limit", 3))

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def initial_height(self) -> int:
        return int(self._params.get("clock", {}).get("initial_height", 0))

    def as_dict(self) -> dict[str, Any]:
        return json.loads(json.dumps(self._params))
