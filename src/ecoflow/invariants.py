"""EcoFlow invariant checks against the shipped configuration and event log.

Two layers:
1. Configuration: the JSON parameters must describe a system in which
   the conservation and authorization invariants can hold at all.
2. State: when an event log is present, replay it and verify that every
   minted unit is held, staked, or escrowed, and that the custodial
   account holds exactly the outstanding escrow.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from ecoflow.governance.roles import is_null_identity
from ecoflow.models.market import MAX_AMOUNT
from ecoflow.persistence.event_log import EventLog
from ecoflow.policy.resolver import PARAMS_FILE, PolicyResolver
from ecoflow.service import EcoFlowService


EVENTS_FILE = "events.jsonl"


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def check_params(params: dict[str, Any]) -> list[str]:
    """Validate configuration invariants. Returns errors (empty = OK)."""
    errors = PolicyResolver.validate(params)
    if errors:
        return errors

    ledger = params["ledger"]
    market = params["market"]

    if ledger["max_supply"] > MAX_AMOUNT:
        errors.append(f"ledger.max_supply must not exceed {MAX_AMOUNT}")

    # The custodial account must be reachable only through the engine
    custody = market["custody_identity"]
    role_holders = {
        ("ledger", "admin"): ledger.get("admin"),
        ("ledger", "token_authority"): ledger.get("token_authority"),
        ("ledger", "oracle"): ledger.get("oracle"),
        ("market", "admin"): market.get("admin"),
        ("market", "oracle"): market.get("oracle"),
    }
    for (section, role), identity in role_holders.items():
        if identity == custody:
            errors.append(f"market.custody_identity must not be {section}.{role}")

    if ledger.get("oracle_can_mint") and is_null_identity(ledger.get("oracle")):
        errors.append("ledger.oracle_can_mint requires a non-null ledger.oracle")

    return errors


def check_state(resolver: PolicyResolver, events_path: Path) -> list[str]:
    """Replay the event log and check conservation. Returns errors."""
    try:
        service = EcoFlowService.from_event_log(resolver, EventLog(storage_path=events_path))
    except ValueError as e:
        return [f"Event log replay failed: {e}"]

    report = service.conservation_report()
    errors: list[str] = []
    if not report["holds_conserved"]:
        errors.append(
            f"Conservation broken: liquid {report['liquid']} + staked {report['staked']} "
            f"+ escrowed {report['escrowed']} != supply {report['total_supply']}"
        )
    if not report["custody_matches_escrow"]:
        errors.append(
            f"Custody balance {report['custody_balance']} != "
            f"outstanding escrow {report['escrowed']}"
        )
    if report["total_supply"] > resolver.max_supply():
        errors.append("Total supply exceeds max supply")
    return errors


def check(config_dir: Path, data_dir: Optional[Path] = None) -> int:
    errors = check_params(load_json(Path(config_dir) / PARAMS_FILE))

    if not errors and data_dir is not None:
        events_path = Path(data_dir) / EVENTS_FILE
        if events_path.exists():
            resolver = PolicyResolver.from_config_dir(config_dir)
            errors.extend(check_state(resolver, events_path))

    if errors:
        print("Invariant check failed:")
        for error in errors:
            print(f"- {error}")
        return 1

    print("Invariant checks passed.")
    return 0
