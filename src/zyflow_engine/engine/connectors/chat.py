"""Chat connector: posts the step template to one or more Slack channels."""

from __future__ import annotations

import logging

from zyflow_engine.engine.connectors.base import ConnectorOutcome, HttpConnector, StepConfig
from zyflow_engine.engine.workflow.steps import StepKind

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class ChatConnector(HttpConnector):
    kind = StepKind.CHAT

    def is_configured(self, config: StepConfig, template: str | None) -> bool:
        return bool(
            self._text(config, "access_token")
            and self._string_list(config, "channels")
            and (template or "").strip()
        )

    def send(self, config: StepConfig, template: str | None) -> ConnectorOutcome:
        token = self._text(config, "access_token")
        headers = {"Authorization": f"Bearer {token}"}

        posted: list[str] = []
        failed: dict[str, str] = {}
        for channel in self._string_list(config, "channels"):
            response = self._post(
                SLACK_POST_MESSAGE_URL,
                json={"channel": channel, "text": template or ""},
                headers=headers,
            )
            body = self._json_body(response)
            # Slack reports most failures with HTTP 200 and ok=false.
            if response.ok and body.get("ok"):
                posted.append(channel)
            else:
                failed[channel] = str(body.get("error") or response.status_code)

        if failed:
            logger.warning(
                "Chat message not delivered to every channel",
                extra={"posted": posted, "failed": failed},
            )
            return ConnectorOutcome(
                ok=False,
                message="Message could not be sent to every channel",
                details={"posted": posted, "failed": failed},
            )
        return ConnectorOutcome(ok=True, message="Posted", details={"channels": posted})
