"""Multi-recipient notification connector (Gmail API)."""

from __future__ import annotations

import base64
from email.message import EmailMessage

from zyflow_engine.engine.connectors.base import ConnectorOutcome, HttpConnector, StepConfig
from zyflow_engine.engine.workflow.steps import StepKind

GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
DEFAULT_SUBJECT = "Drive Notification"
DEFAULT_BODY = "A new file has been uploaded to Google Drive."


def build_raw_message(recipients: list[str], subject: str, body: str) -> str:
    message = EmailMessage()
    message["To"] = ", ".join(recipients)
    message["Subject"] = subject
    message.set_content(body, subtype="html")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")


class NotifyManyConnector(HttpConnector):
    kind = StepKind.NOTIFY_MANY

    # Subject and body fall back to defaults, so recipients are all that is required.
    def is_configured(self, config: StepConfig, template: str | None) -> bool:
        return bool(self._text(config, "access_token") and self._string_list(config, "recipients"))

    def send(self, config: StepConfig, template: str | None) -> ConnectorOutcome:
        recipients = self._string_list(config, "recipients")
        raw = build_raw_message(
            recipients,
            self._text(config, "subject") or DEFAULT_SUBJECT,
            (template or "").strip() or DEFAULT_BODY,
        )
        response = self._post(
            GMAIL_SEND_URL,
            json={"raw": raw},
            headers={"Authorization": f"Bearer {self._text(config, 'access_token')}"},
        )
        if not response.ok:
            return ConnectorOutcome(
                ok=False,
                message="Notification could not be sent",
                details={"status": response.status_code, "recipients": recipients},
            )
        return ConnectorOutcome(
            ok=True,
            message="Sent",
            details={"message_id": self._json_body(response).get("id"), "recipients": recipients},
        )
