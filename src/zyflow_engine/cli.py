"""Console entrypoint (`zyflow`).

The command implementations live in `zyflow_engine.engine.main`.
"""

from __future__ import annotations

from zyflow_engine.engine.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
