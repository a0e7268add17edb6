# delivery.py
"""
Submission sinks: Slack Workflow webhook or a channel post.

Sinks raise DeliveryError; dispatch() converts every outcome into a
DeliveryResult so the caller decides whether to log or notify. Nothing here
retries.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from slack_sdk.errors import SlackApiError

from slack_messaging import SLACK_CALL_ERRORS, SlackWebClient, slack_error_code
from submission import SubmissionRecord, format_summary

logger = logging.getLogger("delivery")

SINK_WEBHOOK = "webhook"
SINK_CHANNEL = "channel"
SINK_AUTO = "auto"


class DeliveryError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass
class DeliveryResult:
    ok: bool
    sink: str
    detail: str = ""


class WebhookSink:
    name = SINK_WEBHOOK

    def __init__(self, url: Optional[str], timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout

    def deliver(self, record: SubmissionRecord) -> None:
        if not self.url:
            raise DeliveryError("WORKFLOW_WEBHOOK_URL missing")
        response = requests.post(self.url, json=record.model_dump(), headers={"Content-Type": "application/json"}, timeout=self.timeout)
        if not response.ok:
            raise DeliveryError(
                f"Workflow POST failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )


class ChannelSink:
    name = SINK_CHANNEL

    def __init__(self, messenger: SlackWebClient, channel: Optional[str]):
        self.messenger = messenger
        self.channel = channel

    def deliver(self, record: SubmissionRecord) -> None:
        if not self.channel:
            raise DeliveryError("TARGET_CHANNEL_ID missing")
        try:
            self.messenger.chat_post_message(self.channel, format_summary(record))
        except SlackApiError as exc:
            raise DeliveryError(f"Channel post failed: {slack_error_code(exc)}") from exc
        except SLACK_CALL_ERRORS as exc:
            raise DeliveryError(f"Channel post failed: {exc}") from exc


def dispatch(sink, record: SubmissionRecord) -> DeliveryResult:
    sink_name = getattr(sink, "name", type(sink).__name__)
    try:
        sink.deliver(record)
    except DeliveryError as exc:
        logger.error("Delivery to %s failed for job %s: %s", sink_name, record.job_number, exc)
        return DeliveryResult(ok=False, sink=sink_name, detail=str(exc))
    except requests.RequestException as exc:
        logger.error("Delivery to %s failed for job %s: %s", sink_name, record.job_number, exc)
        return DeliveryResult(ok=False, sink=sink_name, detail=f"transport error: {exc}")
    logger.info("Delivered job %s to %s", record.job_number, sink_name)
    return DeliveryResult(ok=True, sink=sink_name)


def build_sink(kind: str, webhook_url: Optional[str], channel: Optional[str], messenger: SlackWebClient, timeout: Optional[float] = None):
    kind = (kind or SINK_AUTO).strip().lower()
    if kind == SINK_AUTO:
        kind = SINK_WEBHOOK if webhook_url or not channel else SINK_CHANNEL
    if kind == SINK_WEBHOOK:
        return WebhookSink(webhook_url, timeout=timeout)
    if kind == SINK_CHANNEL:
        return ChannelSink(messenger, channel)
    raise ValueError(f"Unknown SUBMISSION_SINK {kind!r}; expected webhook, channel or auto")
