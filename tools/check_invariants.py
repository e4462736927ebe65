#!/usr/bin/env python3
"""Quest invariant checks against the config and a persisted data directory.

Usage:
    python3 tools/check_invariants.py
    python3 tools/check_invariants.py path/to/data
"""

import sys
from pathlib import Path

# Add src to path for questledger imports
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from questledger.audit import check_data_dir

CONFIG_DIR = ROOT / "config"
DATA_DIR = ROOT / "data"


def check(data_dir: Path = DATA_DIR, config_dir: Path = CONFIG_DIR) -> int:
    errors = check_data_dir(config_dir, data_dir)

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DATA_DIR
    raise SystemExit(check(target))
