"""Run CHARM from a source checkout without installing it (``python main.py PACK``)."""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from charm.app import main

if __name__ == "__main__":
    main(sys.argv)
