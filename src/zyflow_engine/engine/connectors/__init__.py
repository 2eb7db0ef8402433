"""Connectors: one side-effecting handler per step kind."""

from __future__ import annotations

import requests

from zyflow_engine.engine.connectors.base import (
    Connector,
    ConnectorFailure,
    ConnectorOutcome,
    ConnectorRegistry,
)
from zyflow_engine.engine.connectors.chat import ChatConnector
from zyflow_engine.engine.connectors.document import DocumentConnector
from zyflow_engine.engine.connectors.notify import NotifyManyConnector
from zyflow_engine.engine.connectors.webhook import WebhookConnector

__all__ = [
    "Connector",
    "ConnectorFailure",
    "ConnectorOutcome",
    "ConnectorRegistry",
    "default_registry",
]


def default_registry(*, timeout: float, session: requests.Session | None = None) -> ConnectorRegistry:
    """Registry with the built-in connectors sharing one HTTP session."""

    session = session or requests.Session()
    session.headers.update({"User-Agent": "zyflow-engine"})
    return ConnectorRegistry(
        [
            ChatConnector(session=session, timeout=timeout),
            WebhookConnector(session=session, timeout=timeout),
            DocumentConnector(session=session, timeout=timeout),
            NotifyManyConnector(session=session, timeout=timeout),
        ]
    )
