from __future__ import annotations

import os
import sys

# Ensure the repository root is importable when running as a script.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from urs.cli.migrate_siar import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
