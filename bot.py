# bot.py
"""
/newitem Slack bot: modal intake form with a dependent Item -> Description dropdown.

- Slash command opens the modal with the next job number.
- Item / Description block actions rebuild the modal (full views.update with the event's hash).
- Submission is validated inline, then dispatched to a Workflow webhook or a channel.
- Integrates with:
    - catalog.py (Catalog loaded once at startup)
    - modal_views.py / selection.py (view model and transitions)
    - submission.py / delivery.py (record + sinks)
    - slack_messaging.SlackWebClient
    - job_counter.py (file or DynamoDB counter)
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from slack_sdk.errors import SlackApiError
from slack_sdk.signature import SignatureVerifier

from catalog import Catalog, load_catalog
from delivery import DeliveryResult, build_sink, dispatch
from job_counter import build_job_counter
from modal_views import MODAL_CALLBACK_ID, FormView, build_initial_view, build_modal, read_private_metadata
from selection import DESCRIPTION_BLOCK, ITEM_BLOCK, apply_action, rebuild_modal
from slack_messaging import SLACK_CALL_ERRORS, SlackWebClient, slack_error_code
from submission import SubmissionRecord, handle_submit

try:
    from mangum import Mangum
except ImportError:  # pragma: no cover - mangum optional for local runs
    Mangum = None

# --- Configuration & logging ---
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger("newitem.bot")

app = FastAPI(title="newitem Slack bot", version="1.0.0")
_lambda_adapter = Mangum(app) if Mangum else None

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

SLACK_BOT_TOKEN = os.getenv("SLACK_BOT_TOKEN")
SLACK_SIGNING_SECRET = os.getenv("SLACK_SIGNING_SECRET")
SLASH_COMMAND = os.getenv("SLASH_COMMAND", "/newitem")
SUBMISSION_SINK = os.getenv("SUBMISSION_SINK", "auto")
WORKFLOW_WEBHOOK_URL = os.getenv("WORKFLOW_WEBHOOK_URL")
TARGET_CHANNEL_ID = os.getenv("TARGET_CHANNEL_ID")
CATALOG_PATH = os.getenv("CATALOG_PATH") or os.getenv("XLSX_PATH") or os.path.join(BASE_DIR, "catalog.xlsx")
CATALOG_CSV_PATH = os.getenv("CATALOG_CSV_PATH", os.path.join(BASE_DIR, "catalog.csv"))
JOB_COUNTER_FILE = os.getenv("JOB_COUNTER_FILE", os.path.join(BASE_DIR, "job_counter.json"))
JOB_COUNTER_TABLE = os.getenv("JOB_COUNTER_TABLE")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
LIST_NAME = os.getenv("LIST_NAME", "PROJECTS")

_timeout_raw = (os.getenv("WEBHOOK_TIMEOUT_SECONDS") or "").strip()
WEBHOOK_TIMEOUT_SECONDS: Optional[float] = float(_timeout_raw) if _timeout_raw else None

# ---------------------------------------------------------------------------
# Collaborators (built once, injected per request)
# ---------------------------------------------------------------------------

catalog = load_catalog(CATALOG_PATH, CATALOG_CSV_PATH)
messenger = SlackWebClient(SLACK_BOT_TOKEN)
job_counter = build_job_counter(JOB_COUNTER_TABLE, JOB_COUNTER_FILE, AWS_REGION)
sink = build_sink(SUBMISSION_SINK, WORKFLOW_WEBHOOK_URL, TARGET_CHANNEL_ID, messenger, timeout=WEBHOOK_TIMEOUT_SECONDS)
signature_verifier = SignatureVerifier(SLACK_SIGNING_SECRET) if SLACK_SIGNING_SECRET else None

if signature_verifier is None:
    logger.warning("SLACK_SIGNING_SECRET not set; inbound requests are not verified")


def get_catalog() -> Catalog:
    return catalog


def get_messenger() -> SlackWebClient:
    return messenger


def get_job_counter():
    return job_counter


def get_sink():
    return sink


def get_signature_verifier() -> Optional[SignatureVerifier]:
    return signature_verifier

# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

async def read_verified_body(request: Request, verifier: Optional[SignatureVerifier]) -> bytes:
    body = await request.body()
    if verifier is not None and not verifier.is_valid_request(body, dict(request.headers)):
        logger.warning("Rejected request with invalid Slack signature on %s", request.url.path)
        raise HTTPException(status_code=401, detail="Invalid Slack signature")
    return body


def parse_form(body: bytes) -> Dict[str, str]:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Request body is not UTF-8")
    return dict(parse_qsl(text, keep_blank_values=True))


def selected_value(action: Dict[str, Any]) -> str:
    return ((action.get("selected_option") or {}).get("value") or "").strip()

# ---------------------------------------------------------------------------
# Background work (runs after Slack has been acknowledged)
# ---------------------------------------------------------------------------

def open_new_item_modal(messenger: SlackWebClient, counter, catalog: Catalog, trigger_id: str, channel_id: Optional[str]) -> None:
    try:
        job_number = counter.next()
    except Exception:
        logger.exception("Could not allocate a job number")
        return
    form_view = build_initial_view(catalog, job_number)
    modal = build_modal(form_view, {"channel_id": channel_id, "job_number": job_number})
    try:
        messenger.views_open(trigger_id, modal)
        logger.info("Opened /newitem modal for job #%s", job_number)
    except SlackApiError as exc:
        logger.error("views.open failed for job #%s: %s", job_number, slack_error_code(exc))
    except SLACK_CALL_ERRORS:
        logger.exception("views.open failed for job #%s", job_number)


def refresh_view(messenger: SlackWebClient, catalog: Catalog, view_payload: Dict[str, Any], block_id: str, value: str) -> None:
    view_id = view_payload.get("id")
    try:
        current = FormView.from_blocks(view_payload.get("blocks") or [])
        updated = apply_action(current, catalog, block_id, value)
    except (KeyError, ValueError):
        logger.exception("Could not rebuild view %s for block %s", view_id, block_id)
        return
    modal = rebuild_modal(view_payload, updated)
    try:
        messenger.views_update(view_id, modal, hash=view_payload.get("hash"))
    except SlackApiError as exc:
        code = slack_error_code(exc)
        if code == "hash_conflict":
            logger.warning("Stale view hash for %s; a newer event will carry the current one", view_id)
        else:
            logger.error("views.update failed for %s: %s", view_id, code)
    except SLACK_CALL_ERRORS:
        logger.exception("views.update failed for %s", view_id)


def deliver_submission(sink, messenger: SlackWebClient, record: SubmissionRecord, user_id: Optional[str], channel_id: Optional[str]) -> DeliveryResult:
    result = dispatch(sink, record)
    if not user_id:
        return result
    job = record.job_number or "(no #)"
    if result.ok:
        text = f"✅ {job} added to \"{LIST_NAME}\"."
    else:
        text = f"⚠️ {job} could not be saved: {result.detail}"
    try:
        messenger.chat_post_ephemeral(channel_id or user_id, user_id, text)
    except SLACK_CALL_ERRORS as exc:
        logger.warning("Confirmation for %s not delivered: %s", job, exc)
    return result

# ---------------------------------------------------------------------------
# Interaction routing
# ---------------------------------------------------------------------------

def handle_block_actions(payload: Dict[str, Any], background_tasks: BackgroundTasks, catalog: Catalog, messenger: SlackWebClient) -> Response:
    view = payload.get("view") or {}
    if view.get("callback_id") != MODAL_CALLBACK_ID:
        return Response(status_code=200)
    for action in payload.get("actions") or []:
        block_id = action.get("block_id")
        if block_id in (ITEM_BLOCK, DESCRIPTION_BLOCK):
            background_tasks.add_task(refresh_view, messenger, catalog, view, block_id, selected_value(action))
            break
    return Response(status_code=200)


def handle_view_submission(payload: Dict[str, Any], background_tasks: BackgroundTasks, catalog: Catalog, sink, messenger: SlackWebClient) -> Response:
    view = payload.get("view") or {}
    if view.get("callback_id") != MODAL_CALLBACK_ID:
        return Response(status_code=200)
    record, errors = handle_submit((view.get("state") or {}).get("values") or {}, catalog)
    if errors:
        return JSONResponse({"response_action": "errors", "errors": errors})
    metadata = read_private_metadata(view)
    user_id = (payload.get("user") or {}).get("id")
    background_tasks.add_task(deliver_submission, sink, messenger, record, user_id, metadata.get("channel_id"))
    return Response(status_code=200)

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post("/slack/commands")
async def slash_command(
    request: Request,
    background_tasks: BackgroundTasks,
    catalog: Catalog = Depends(get_catalog),
    messenger: SlackWebClient = Depends(get_messenger),
    counter=Depends(get_job_counter),
    verifier: Optional[SignatureVerifier] = Depends(get_signature_verifier),
):
    form = parse_form(await read_verified_body(request, verifier))
    command = form.get("command")
    if command != SLASH_COMMAND:
        return JSONResponse({"response_type": "ephemeral", "text": f"Unknown command {command or ''}".strip()})
    trigger_id = form.get("trigger_id")
    if not trigger_id:
        raise HTTPException(status_code=400, detail="trigger_id missing")
    background_tasks.add_task(open_new_item_modal, messenger, counter, catalog, trigger_id, form.get("channel_id"))
    return Response(status_code=200)


@app.post("/slack/interactions")
async def slack_interactions(
    request: Request,
    background_tasks: BackgroundTasks,
    catalog: Catalog = Depends(get_catalog),
    messenger: SlackWebClient = Depends(get_messenger),
    sink=Depends(get_sink),
    verifier: Optional[SignatureVerifier] = Depends(get_signature_verifier),
):
    form = parse_form(await read_verified_body(request, verifier))
    try:
        payload = json.loads(form.get("payload") or "")
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed interaction payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Malformed interaction payload")
    kind = payload.get("type")
    if kind == "block_actions":
        return handle_block_actions(payload, background_tasks, catalog, messenger)
    if kind == "view_submission":
        return handle_view_submission(payload, background_tasks, catalog, sink, messenger)
    return Response(status_code=200)


@app.get("/healthz")
def healthcheck():
    return {
        "status": "ok",
        "messenger_enabled": messenger.enabled,
        "sink": getattr(sink, "name", type(sink).__name__),
        "catalog_items": len(catalog),
        "signature_verification": signature_verifier is not None,
    }

# ---------------------------------------------------------------------------
# Local runner
# ---------------------------------------------------------------------------

def run():
    import uvicorn
    uvicorn.run("bot:app", host="0.0.0.0", port=int(os.environ.get("PORT", 3000)), reload=bool(int(os.environ.get("RELOAD", "0"))))

def lambda_handler(event, context):
    if not _lambda_adapter:
        raise RuntimeError("Mangum is not installed. Cannot handle Lambda events.")
    return _lambda_adapter(event, context)

if __name__ == "__main__":
    run()
