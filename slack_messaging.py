# slack_messaging.py
"""
Slack Web API helper class for the few calls the bot makes.

Provides:
- views_open
- views_update
- chat_post_message
- chat_post_ephemeral

Calls go through slack_sdk's WebClient, which raises SlackApiError on
`ok: false` replies. Without a bot token the client runs in dry-run mode
and only logs the payloads.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError, SlackClientError

logger = logging.getLogger("slack_messaging")

# Raised for failed calls: Slack-side errors and transport failures
SLACK_CALL_ERRORS = (SlackClientError, OSError)


class SlackWebClient:
    def __init__(self, token: Optional[str], timeout: int = 10):
        self.token = token
        self.timeout = timeout
        self._client = WebClient(token=token, timeout=timeout) if token else None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def _call(self, method: str, **payload: Any) -> Dict[str, Any]:
        if not self.enabled:
            logger.info("[dry-run] %s %s", method, json.dumps(payload, indent=2, ensure_ascii=False))
            return {"ok": True, "dry_run": True}
        api = getattr(self._client, method.replace(".", "_"))
        try:
            response = api(**payload)
        except SlackApiError as exc:
            logger.error("Slack %s returned error=%s", method, slack_error_code(exc))
            raise
        return response.data

    def views_open(self, trigger_id: str, view: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("views.open", trigger_id=trigger_id, view=view)

    def views_update(self, view_id: str, view: Dict[str, Any], hash: Optional[str] = None) -> Dict[str, Any]:
        # hash must come from the event that triggered this update, never from a cache
        return self._call("views.update", view_id=view_id, view=view, hash=hash)

    def chat_post_message(self, channel: str, text: str) -> Dict[str, Any]:
        return self._call("chat.postMessage", channel=channel, text=text)

    def chat_post_ephemeral(self, channel: str, user: str, text: str) -> Dict[str, Any]:
        return self._call("chat.postEphemeral", channel=channel, user=user, text=text)


def slack_error_code(exc: SlackApiError) -> Optional[str]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    try:
        return response.get("error")
    except AttributeError:
        return None
