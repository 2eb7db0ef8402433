from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from zyflow_engine.engine.errors import ZyflowError
from zyflow_engine.engine.workflow.steps import StepKind

logger = logging.getLogger(__name__)

StepConfig = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ConnectorOutcome:
    ok: bool
    message: str
    details: dict[str, object] | None = None


class ConnectorFailure(ZyflowError):
    """A connector call raised instead of returning an outcome."""

    def __init__(self, kind: StepKind, message: str) -> None:
        super().__init__(f"{kind.value} connector failed: {message}")
        self.kind = kind


class Connector(Protocol):
    """A side-effecting call against one external service.

    Connectors are invoked once per consumed step. They must return (or raise)
    promptly; the executor does not retry them.
    """

    kind: StepKind

    def is_configured(self, config: StepConfig, template: str | None) -> bool: ...

    def send(self, config: StepConfig, template: str | None) -> ConnectorOutcome: ...


class HttpConnector:
    """Shared plumbing for connectors that talk HTTP via `requests`."""

    kind: StepKind

    def __init__(self, *, session: requests.Session | None = None, timeout: float = 30.0) -> None:
        self._session = session or requests.Session()
        self._timeout = timeout

    def _post(
        self, url: str, *, json: object, headers: dict[str, str] | None = None
    ) -> requests.Response:
        logger.debug("Connector request", extra={"step": self.kind.value, "url": url})
        return self._session.post(url, json=json, headers=headers, timeout=self._timeout)

    @staticmethod
    def _text(config: StepConfig, key: str) -> str:
        value = config.get(key)
        return value.strip() if isinstance(value, str) else ""

    @staticmethod
    def _string_list(config: StepConfig, key: str) -> list[str]:
        value = config.get(key)
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list | tuple):
            return []
        return [str(v).strip() for v in value if str(v).strip()]

    @staticmethod
    def _json_body(response: requests.Response) -> dict[str, Any]:
        """Decoded JSON object body, or an empty dict for an empty or non-object body."""

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


class ConnectorRegistry:
    """Dispatch table from step kind to connector."""

    def __init__(self, connectors: Iterable[Connector] = ()) -> None:
        self._connectors: dict[StepKind, Connector] = {}
        for connector in connectors:
            self.register(connector)

    def register(self, connector: Connector) -> None:
        if connector.kind is StepKind.WAIT:
            raise ValueError("Wait is reserved for suspension and cannot have a connector")
        self._connectors[connector.kind] = connector

    def get(self, kind: StepKind) -> Connector | None:
        return self._connectors.get(kind)

    def kinds(self) -> set[StepKind]:
        return set(self._connectors)

    def invoke(
        self, kind: StepKind, config: StepConfig, template: str | None
    ) -> ConnectorOutcome:
        """Call the connector for `kind`.

        Raises:
            KeyError: If no connector is registered for `kind`.
            ConnectorFailure: If the connector raised.
        """

        connector = self._connectors[kind]
        try:
            return connector.send(config, template)
        except Exception as e:
            raise ConnectorFailure(kind, str(e)) from e
