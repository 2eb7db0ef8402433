"""Webhook connector: posts the step template to an incoming-webhook URL (Discord style)."""

from __future__ import annotations

from zyflow_engine.engine.connectors.base import ConnectorOutcome, HttpConnector, StepConfig
from zyflow_engine.engine.workflow.steps import StepKind


class WebhookConnector(HttpConnector):
    kind = StepKind.WEBHOOK

    def is_configured(self, config: StepConfig, template: str | None) -> bool:
        return bool(self._text(config, "url") and (template or "").strip())

    def send(self, config: StepConfig, template: str | None) -> ConnectorOutcome:
        response = self._post(self._text(config, "url"), json={"content": template or ""})
        if response.status_code == 404:
            return ConnectorOutcome(
                ok=False,
                message="Webhook not found; the integration must be reconnected",
                details={"status": 404},
            )
        if not response.ok:
            return ConnectorOutcome(
                ok=False, message="Webhook request failed", details={"status": response.status_code}
            )
        return ConnectorOutcome(ok=True, message="Posted")
