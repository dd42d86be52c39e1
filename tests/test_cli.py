"""Tests for EcoFlow CLI — proves CLI parses and dispatches correctly."""

import json
from pathlib import Path

import pytest

from ecoflow.cli import build_parser, main


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
ADMIN = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"


class TestCLIParsing:
    def test_status_command(self) -> None:
        args = build_parser().parse_args(["status"])
        assert args.command == "status"

    def test_mint_command(self) -> None:
        args = build_parser().parse_args([
            "mint", "--caller", ADMIN, "--to", "alice", "--amount", "100",
        ])
        assert args.command == "mint"
        assert args.to == "alice"
        assert args.amount == 100
        assert args.height is None

    def test_create_offer_command(self) -> None:
        args = build_parser().parse_args([
            "create-offer", "--caller", "alice", "--quantity", "100",
            "--price", "5", "--expiry", "50", "--height", "3",
        ])
        assert (args.quantity, args.price, args.expiry, args.height) == (100, 5, 50, 3)

    def test_resolve_dispute_requires_outcome(self) -> None:
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args([
                "resolve-dispute", "--caller", ADMIN, "--seller", "alice", "--offer-id", "1",
            ])
        args = parser.parse_args([
            "resolve-dispute", "--caller", ADMIN, "--seller", "alice",
            "--offer-id", "1", "--pay-seller",
        ])
        assert args.refund is False

    def test_env_sets_default_dirs(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("ECOFLOW_DATA_DIR", str(tmp_path))
        args = build_parser().parse_args(["status"])
        assert args.data == tmp_path


class TestCLIExecution:
    def _run(self, data_dir: Path, *argv: str) -> int:
        return main(["--config", str(CONFIG_DIR), "--data", str(data_dir), *argv])

    def test_no_command_shows_help(self) -> None:
        assert main([]) == 0

    def test_status_runs(self, tmp_path: Path, capsys) -> None:
        assert self._run(tmp_path, "status") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["ledger"]["total_supply"] == 0

    def test_trade_e2e(self, tmp_path: Path, capsys) -> None:
        assert self._run(tmp_path, "mint", "--caller", ADMIN, "--to", "bob", "--amount", "1000") == 0
        assert self._run(
            tmp_path, "create-offer", "--caller", "alice",
            "--quantity", "100", "--price", "5", "--expiry", "50",
        ) == 0
        assert self._run(
            tmp_path, "buy-offer", "--caller", "bob", "--seller", "alice",
            "--offer-id", "1", "--height", "10",
        ) == 0
        assert self._run(
            tmp_path, "confirm-delivery", "--caller", "alice", "--seller", "alice",
            "--offer-id", "1",
        ) == 0
        capsys.readouterr()

        assert self._run(tmp_path, "balance", "--id", "alice") == 0
        assert json.loads(capsys.readouterr().out)["balance"] == 500

        assert self._run(tmp_path, "offer", "--seller", "alice", "--offer-id", "1") == 0
        offer = json.loads(capsys.readouterr().out)
        assert offer["state"] == "settled"
        assert offer["settlement"] == "delivered"
        assert offer["purchased_height"] == 10

        assert self._run(tmp_path, "check-invariants") == 0

    def test_rejected_operation_exits_nonzero(self, tmp_path: Path, capsys) -> None:
        assert self._run(
            tmp_path, "mint", "--caller", "mallory", "--to", "mallory", "--amount", "5",
        ) == 1
        assert "not_authorized" in capsys.readouterr().err

    def test_height_cannot_go_backwards(self, tmp_path: Path) -> None:
        assert self._run(
            tmp_path, "mint", "--caller", ADMIN, "--to", "bob", "--amount", "5", "--height", "20",
        ) == 0
        assert self._run(
            tmp_path, "transfer", "--caller", "bob", "--to", "carol", "--amount", "1",
            "--height", "3",
        ) == 1

    def test_missing_offer(self, tmp_path: Path) -> None:
        assert self._run(tmp_path, "offer", "--seller", "alice", "--offer-id", "1") == 1

    def test_corrupt_log_reported(self, tmp_path: Path) -> None:
        assert self._run(tmp_path, "mint", "--caller", ADMIN, "--to", "bob", "--amount", "5") == 0
        path = tmp_path / "events.jsonl"
        path.write_text(path.read_text(encoding="utf-8").replace('"amount": 5', '"amount": 500'), encoding="utf-8")
        assert self._run(tmp_path, "status") == 1
