"""Document connector: creates a page (database entry) in Notion."""

from __future__ import annotations

import json

from zyflow_engine.engine.connectors.base import ConnectorOutcome, HttpConnector, StepConfig
from zyflow_engine.engine.workflow.steps import StepKind

NOTION_PAGES_URL = "https://api.notion.com/v1/pages"
NOTION_VERSION = "2022-06-28"
DEFAULT_ENTRY_NAME = "New Drive File"


def entry_name_from_template(template: str) -> str:
    """Templates are either plain text or a JSON object/string with a `name`."""

    try:
        data = json.loads(template)
    except json.JSONDecodeError:
        return template
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        name = data.get("name")
        if isinstance(name, str) and name.strip():
            return name
    return DEFAULT_ENTRY_NAME


class DocumentConnector(HttpConnector):
    kind = StepKind.DOCUMENT

    def is_configured(self, config: StepConfig, template: str | None) -> bool:
        return bool(
            self._text(config, "access_token")
            and self._text(config, "database_id")
            and (template or "").strip()
        )

    def send(self, config: StepConfig, template: str | None) -> ConnectorOutcome:
        name = entry_name_from_template(template or "")
        response = self._post(
            NOTION_PAGES_URL,
            json={
                "parent": {"type": "database_id", "database_id": self._text(config, "database_id")},
                "properties": {"name": [{"text": {"content": name}}]},
            },
            headers={
                "Authorization": f"Bearer {self._text(config, 'access_token')}",
                "Notion-Version": NOTION_VERSION,
            },
        )
        if not response.ok:
            return ConnectorOutcome(
                ok=False,
                message="Document entry could not be created",
                details={"status": response.status_code},
            )
        page_id = self._json_body(response).get("id")
        return ConnectorOutcome(ok=True, message="Created", details={"page_id": page_id})
