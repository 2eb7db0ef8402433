"""Zyflow workflow execution engine.

Runs user-authored linear workflows against external connectors:
- trigger ingestion with duplicate and burst suppression
- a step executor that suspends on timed `Wait` steps
- resumption through an external scheduler callback
- per-owner credit accounting
"""

__version__ = "0.1.0"

from zyflow_engine.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
