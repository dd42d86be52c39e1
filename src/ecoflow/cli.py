"""EcoFlow CLI — command-line interface for the ledger and energy market.

Usage:
    python -m ecoflow.cli status
    python -m ecoflow.cli mint --caller ADMIN --to alice --amount 1000
    python -m ecoflow.cli create-offer --caller alice --quantity 100 --price 5 --expiry 50
    python -m ecoflow.cli buy-offer --caller bob --seller alice --offer-id 1
    python -m ecoflow.cli confirm-delivery --caller alice --seller alice --offer-id 1
    python -m ecoflow.cli check-invariants

Every invocation rebuilds state by replaying <data>/events.jsonl and
appends the events it produces. Paths default to config/ and data/ at the
repository root, overridable by ECOFLOW_CONFIG_DIR / ECOFLOW_DATA_DIR
(read from the environment or a .env file) or by --config / --data.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from ecoflow.invariants import EVENTS_FILE, check
from ecoflow.persistence.event_log import EventLog
from ecoflow.policy.resolver import PolicyResolver
from ecoflow.service import EcoFlowService, ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"


def _make_service(config_dir: Path, data_dir: Path) -> EcoFlowService:
    """Create an EcoFlowService rebuilt from the durable event log."""
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(config_dir)
    event_log = EventLog(storage_path=data_dir / EVENTS_FILE)
    return EcoFlowService.from_event_log(resolver, event_log)


def _open(args: argparse.Namespace) -> EcoFlowService | None:
    """Load the service and move the clock to --height, if given."""
    service = _make_service(args.config, args.data)
    height = getattr(args, "height", None)
    if height is not None:
        result = service.advance_to(height)
        if not result.success:
            print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
            return None
    return service


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    if result.error_kind is not None:
        print(
            f"Failed ({result.error_kind.value}, code {result.error_code}): "
            f"{'; '.join(result.errors)}",
            file=sys.stderr,
        )
    else:
        print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps({
        "identity": args.id,
        "balance": service.balance_of(args.id),
        "staked": service.ledger.staked_balance_of(args.id),
    }, indent=2))
    return 0


def cmd_offer(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    offer = service.get_offer(args.seller, args.offer_id)
    if offer is None:
        print(f"Offer not found: {args.seller}#{args.offer_id}", file=sys.stderr)
        return 1
    data = offer.to_dict()
    data["state"] = service.engine.offer_state(args.seller, args.offer_id).value
    print(json.dumps(data, indent=2))
    return 0


def cmd_mint(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.mint(args.caller, args.to, args.amount))


def cmd_transfer(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.transfer(args.caller, args.to, args.amount))


def cmd_burn(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.burn(args.caller, args.amount))


def cmd_create_offer(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(
        service.create_offer(args.caller, args.quantity, args.price, args.expiry)
    )


def cmd_buy_offer(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.buy_offer(args.caller, args.seller, args.offer_id))


def cmd_confirm_delivery(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.confirm_delivery(args.caller, args.seller, args.offer_id))


def cmd_resolve_dispute(args: argparse.Namespace) -> int:
    service = _open(args)
    if service is None:
        return 1
    return _report(service.resolve_dispute(
        args.caller, args.seller, args.offer_id, refund_buyer=args.refund,
    ))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run configuration and conservation invariant checks."""
    return check(args.config, args.data)


def _add_caller(p: argparse.ArgumentParser) -> None:
    p.add_argument("--caller", required=True, help="Identity performing the operation")
    p.add_argument("--height", type=int, help="Advance the block clock to this height first")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecoflow",
        description="EcoFlow — energy-credit ledger and marketplace CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.environ.get("ECOFLOW_CONFIG_DIR", DEFAULT_CONFIG)),
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=Path(os.environ.get("ECOFLOW_DATA_DIR", DEFAULT_DATA)),
        help="Path to data directory holding events.jsonl (default: data/)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show system status")

    # balance
    p_bal = sub.add_parser("balance", help="Show an identity's balances")
    p_bal.add_argument("--id", required=True, help="Identity")

    # offer
    p_off = sub.add_parser("offer", help="Show one offer")
    p_off.add_argument("--seller", required=True, help="Seller identity")
    p_off.add_argument("--offer-id", type=int, required=True, help="Seller-scoped offer id")

    # mint
    p_mint = sub.add_parser("mint", help="Issue new credits (token authority)")
    _add_caller(p_mint)
    p_mint.add_argument("--to", required=True, help="Recipient identity")
    p_mint.add_argument("--amount", type=int, required=True, help="Credits to mint")

    # transfer
    p_tx = sub.add_parser("transfer", help="Transfer credits")
    _add_caller(p_tx)
    p_tx.add_argument("--to", required=True, help="Recipient identity")
    p_tx.add_argument("--amount", type=int, required=True, help="Credits to transfer")

    # burn
    p_burn = sub.add_parser("burn", help="Destroy the caller's credits")
    _add_caller(p_burn)
    p_burn.add_argument("--amount", type=int, required=True, help="Credits to burn")

    # create-offer
    p_create = sub.add_parser("create-offer", help="List an energy offer")
    _add_caller(p_create)
    p_create.add_argument("--quantity", type=int, required=True, help="Energy units")
    p_create.add_argument("--price", type=int, required=True, help="Credits per unit")
    p_create.add_argument("--expiry", type=int, required=True, help="Expiry block height")

    # buy-offer
    p_buy = sub.add_parser("buy-offer", help="Buy an offer into escrow")
    _add_caller(p_buy)
    p_buy.add_argument("--seller", required=True, help="Seller identity")
    p_buy.add_argument("--offer-id", type=int, required=True, help="Seller-scoped offer id")

    # confirm-delivery
    p_conf = sub.add_parser("confirm-delivery", help="Release escrow to the seller")
    _add_caller(p_conf)
    p_conf.add_argument("--seller", required=True, help="Seller identity")
    p_conf.add_argument("--offer-id", type=int, required=True, help="Seller-scoped offer id")

    # resolve-dispute
    p_disp = sub.add_parser("resolve-dispute", help="Admin arbitration of a purchase")
    _add_caller(p_disp)
    p_disp.add_argument("--seller", required=True, help="Seller identity")
    p_disp.add_argument("--offer-id", type=int, required=True, help="Seller-scoped offer id")
    outcome = p_disp.add_mutually_exclusive_group(required=True)
    outcome.add_argument("--refund", dest="refund", action="store_true",
                         help="Refund the buyer")
    outcome.add_argument("--pay-seller", dest="refund", action="store_false",
                         help="Pay the seller")

    # check-invariants
    sub.add_parser("check-invariants", help="Run configuration and conservation checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "balance": cmd_balance,
        "offer": cmd_offer,
        "mint": cmd_mint,
        "transfer": cmd_transfer,
        "burn": cmd_burn,
        "create-offer": cmd_create_offer,
        "buy-offer": cmd_buy_offer,
        "confirm-delivery": cmd_confirm_delivery,
        "resolve-dispute": cmd_resolve_dispute,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (OSError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
