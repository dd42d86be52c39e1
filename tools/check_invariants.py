#!/usr/bin/env python3
"""EcoFlow invariant checks against the shipped config and local event log."""

import sys
from pathlib import Path

from ecoflow.invariants import check


ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "config"
DATA_DIR = ROOT / "data"


if __name__ == "__main__":
    sys.exit(check(CONFIG_DIR, DATA_DIR))
