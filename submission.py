# submission.py
"""
Turns a submitted /newitem modal into a flat SubmissionRecord.

Provides:
- read_state_values (view.state.values -> {block_id: str})
- validate_submission
- SubmissionRecord
- handle_submit
- format_summary
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, field_validator

from catalog import CUSTOM, Catalog
from modal_views import PLACEHOLDER_OPTION
from selection import CUSTOM_BLOCK

logger = logging.getLogger("submission")

REQUIRED_FIELDS = ["client", "clientEmail", "quantity", "item", "description"]
REQUIRED_MESSAGE = "Required"
MISMATCH_MESSAGE = "Pick a description for {item}"

# SubmissionRecord field -> modal block_id
RECORD_FIELDS = {
    "job_number": "jobNumber",
    "client": "client",
    "client_email": "clientEmail",
    "date": "date",
    "deadline": "deadline",
    "status": "status",
    "quantity": "quantity",
    "size": "size",
    "invoice": "invoice",
    "payment_status": "paymentStatus",
    "folder_link": "folderLink",
    "item": "item",
    "description": "description",
    "notes": "notes",
    "manufacture_notes": "manufactureNotes",
    "manufacture": "manufacture",
    "second_manufacture": "secondManufacture",
    "delivery_address": "deliveryAddress",
    "tracking": "tracking",
    "design_time": "designTime",
}

ValidationErrors = Dict[str, str]


class SubmissionRecord(BaseModel):
    job_number: str = ""
    client: str
    client_email: str
    date: str = ""
    deadline: str = ""
    status: str = ""
    quantity: str
    size: str = ""
    invoice: str = ""
    payment_status: str = ""
    assignee: str = ""
    folder_link: str = ""
    item: str
    description: str
    notes: str = ""
    manufacture_notes: str = ""
    manufacture: str = ""
    second_manufacture: str = ""
    delivery_address: str = ""
    tracking: str = ""
    design_time: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()


def _element_value(element: Dict[str, Any]) -> str:
    if not isinstance(element, dict):
        return ""
    for key in ("value", "selected_date"):
        if element.get(key):
            return str(element[key])
    option = element.get("selected_option") or {}
    value = option.get("value") or ""
    return "" if value == PLACEHOLDER_OPTION else str(value)


def read_state_values(state_values: Dict[str, Dict[str, Any]]) -> Dict[str, str]:
    """Flatten Slack's {block_id: {action_id: element_state}} into {block_id: value}."""
    values: Dict[str, str] = {}
    for block_id, actions in (state_values or {}).items():
        if not isinstance(actions, dict) or not actions:
            continue
        element = next(iter(actions.values()))
        values[block_id] = _element_value(element).strip()
    return values


def validate_submission(values: Dict[str, str], catalog: Catalog) -> ValidationErrors:
    errors = {bid: REQUIRED_MESSAGE for bid in REQUIRED_FIELDS if not values.get(bid)}
    item = values.get("item")
    description = values.get("description")
    if item and description and description != CUSTOM and description not in catalog.descriptions_for(item):
        # a selection left over from a previously chosen item
        errors["description"] = MISMATCH_MESSAGE.format(item=item)
    return errors


def resolve_description(values: Dict[str, str]) -> str:
    description = values.get("description", "")
    if description == CUSTOM:
        return values.get(CUSTOM_BLOCK) or CUSTOM
    return description


def build_submission_record(values: Dict[str, str]) -> SubmissionRecord:
    data = {field: values.get(block_id, "") for field, block_id in RECORD_FIELDS.items()}
    data["description"] = resolve_description(values)
    return SubmissionRecord(**data)


def handle_submit(state_values: Dict[str, Dict[str, Any]], catalog: Catalog) -> Tuple[Optional[SubmissionRecord], ValidationErrors]:
    """
    Validate the final modal state.

    Returns (record, {}) on success, or (None, errors) keyed by block_id;
    nothing is delivered from here.
    """
    values = read_state_values(state_values)
    errors = validate_submission(values, catalog)
    if errors:
        logger.info("Submission rejected: %s", ", ".join(f"{bid}={msg}" for bid, msg in sorted(errors.items())))
        return None, errors
    return build_submission_record(values), {}


def format_summary(record: SubmissionRecord) -> str:
    job = record.job_number or "(no #)"
    return (
        f"*{job}* {record.client} ({record.client_email})\n"
        f"{record.quantity} x {record.item} ({record.description})"
    )
