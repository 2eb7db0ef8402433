"""FastAPI server adapter for zyflow-engine.

Design intent:
- Keep execution logic in `zyflow_engine.engine.*`
- Keep server-specific concerns (routing, CORS, dispatch job tracking) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from zyflow_engine.server.app import create_app
