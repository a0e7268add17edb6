# modal_views.py
"""
Block Kit form model for the /newitem modal.

Provides:
- FormField / FormView (immutable field descriptors, keyed by block_id)
- build_initial_view
- build_modal
- option / placeholder helpers shared with selection.py

A FormView is never patched: every helper returns a new view.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace as dc_replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from catalog import Catalog

logger = logging.getLogger("modal_views")

MODAL_CALLBACK_ID = "newitem_modal"
MODAL_TITLE = "New Project"

PLACEHOLDER_OPTION = "—"

MAX_OPTIONS = 100
MAX_OPTION_TEXT = 75

# Field kinds
TEXT = "text"
MULTILINE = "multiline"
DATE = "date"
SELECT = "select"
EMAIL = "email"
URL = "url"

STATUS_CHOICES = ["OPEN", "IN PROGRESS", "COMPLETED", "CANCELLED"]
PAYMENT_STATUS_CHOICES = ["PAID", "UNPAID", "PARTIAL"]
MANUFACTURE_CHOICES = ["PHUSA", "City Colors", "Other"]
SECOND_MANUFACTURE_CHOICES = [PLACEHOLDER_OPTION, "PHUSA", "City Colors", "Other"]

# kind -> Block Kit element type
_ELEMENT_TYPES = {
    TEXT: "plain_text_input",
    MULTILINE: "plain_text_input",
    DATE: "datepicker",
    SELECT: "static_select",
    EMAIL: "email_text_input",
    URL: "url_text_input",
}


def plain_text(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text}


def make_options(values: Iterable[str]) -> Tuple[Tuple[str, str], ...]:
    options = [(value[:MAX_OPTION_TEXT], value) for value in values]
    if len(options) > MAX_OPTIONS:
        logger.warning("Select has %d options; keeping the first %d", len(options), MAX_OPTIONS)
        options = options[:MAX_OPTIONS]
    return tuple(options)


@dataclass(frozen=True)
class FormField:
    block_id: str
    label: str
    kind: str = TEXT
    optional: bool = False
    options: Tuple[Tuple[str, str], ...] = ()
    initial_value: Optional[str] = None
    placeholder: Optional[str] = None
    dispatch_action: bool = False
    action_id: Optional[str] = None

    def to_block(self) -> Dict[str, Any]:
        element: Dict[str, Any] = {"type": _ELEMENT_TYPES[self.kind], "action_id": self.action_id or self.block_id}
        if self.kind == MULTILINE:
            element["multiline"] = True
        if self.placeholder:
            element["placeholder"] = plain_text(self.placeholder)
        if self.kind == SELECT:
            element["options"] = [{"text": plain_text(label), "value": value} for label, value in self.options]
            initial = next((opt for opt in self.options if opt[1] == self.initial_value), None)
            if initial:
                element["initial_option"] = {"text": plain_text(initial[0]), "value": initial[1]}
        elif self.kind == DATE:
            if self.initial_value:
                element["initial_date"] = self.initial_value
        elif self.initial_value is not None:
            element["initial_value"] = self.initial_value
        block: Dict[str, Any] = {
            "type": "input",
            "block_id": self.block_id,
            "label": plain_text(self.label),
            "optional": self.optional,
            "element": element,
        }
        if self.dispatch_action:
            block["dispatch_action"] = True
        return block

    @classmethod
    def from_block(cls, block: Dict[str, Any]) -> "FormField":
        element = block.get("element") or {}
        etype = element.get("type")
        if etype == "plain_text_input":
            kind = MULTILINE if element.get("multiline") else TEXT
        else:
            kind = next((k for k, t in _ELEMENT_TYPES.items() if t == etype and k != MULTILINE), None)
            if kind is None:
                raise ValueError(f"unsupported element type {etype!r} in block {block.get('block_id')!r}")
        options = tuple(
            ((opt.get("text") or {}).get("text", ""), opt.get("value", ""))
            for opt in element.get("options") or []
        )
        if kind == SELECT:
            initial = (element.get("initial_option") or {}).get("value")
        elif kind == DATE:
            initial = element.get("initial_date")
        else:
            initial = element.get("initial_value")
        action_id = element.get("action_id")
        return cls(
            block_id=block["block_id"],
            label=(block.get("label") or {}).get("text", ""),
            kind=kind,
            optional=bool(block.get("optional", False)),
            options=options,
            initial_value=initial,
            placeholder=(element.get("placeholder") or {}).get("text"),
            dispatch_action=bool(block.get("dispatch_action", False)),
            action_id=action_id if action_id and action_id != block["block_id"] else None,
        )


@dataclass(frozen=True)
class FormView:
    fields: Tuple[FormField, ...]

    def __post_init__(self):
        ids = [f.block_id for f in self.fields]
        duplicates = sorted({bid for bid in ids if ids.count(bid) > 1})
        if duplicates:
            raise ValueError(f"duplicate block_id(s) in view: {', '.join(duplicates)}")

    def block_ids(self) -> List[str]:
        return [f.block_id for f in self.fields]

    def get(self, block_id: str) -> Optional[FormField]:
        return next((f for f in self.fields if f.block_id == block_id), None)

    def __contains__(self, block_id: object) -> bool:
        return self.get(block_id) is not None  # type: ignore[arg-type]

    def replace(self, block_id: str, new_field: FormField) -> "FormView":
        if block_id not in self:
            raise KeyError(block_id)
        return FormView(tuple(new_field if f.block_id == block_id else f for f in self.fields))

    def without(self, block_id: str) -> "FormView":
        return FormView(tuple(f for f in self.fields if f.block_id != block_id))

    def insert_after(self, anchor: str, new_field: FormField) -> "FormView":
        if anchor not in self:
            raise KeyError(anchor)
        out: List[FormField] = []
        for f in self.fields:
            out.append(f)
            if f.block_id == anchor:
                out.append(new_field)
        return FormView(tuple(out))

    def to_blocks(self) -> List[Dict[str, Any]]:
        return [f.to_block() for f in self.fields]

    @classmethod
    def from_blocks(cls, blocks: Sequence[Dict[str, Any]]) -> "FormView":
        return cls(tuple(FormField.from_block(b) for b in blocks if b.get("type") == "input"))


def select_field(label: str, block_id: str, choices: Sequence[str], optional: bool = False) -> FormField:
    return FormField(
        block_id=block_id,
        label=label,
        kind=SELECT,
        optional=optional,
        options=make_options(choices or [PLACEHOLDER_OPTION]),
        placeholder=f"Choose {label.lower()}",
    )


def placeholder_description_field() -> FormField:
    return FormField(
        block_id="description",
        label="Description",
        kind=SELECT,
        options=make_options([PLACEHOLDER_OPTION]),
        placeholder="Choose an item first",
        dispatch_action=True,
    )


def build_initial_view(catalog: Catalog, job_number: int) -> FormView:
    return FormView((
        FormField("jobNumber", "Job #", initial_value=f"#{job_number}"),
        FormField("client", "Client"),
        FormField("clientEmail", "Client Email", kind=EMAIL),
        FormField("quantity", "Quantity"),
        FormField("size", "Size", optional=True),
        FormField("invoice", "Invoice", optional=True),
        FormField("folderLink", "Folder Link", kind=URL, optional=True),
        FormField("notes", "Notes", kind=MULTILINE, optional=True),
        FormField("manufactureNotes", "Manufacture Notes", kind=MULTILINE, optional=True),
        FormField("deliveryAddress", "Delivery Address", kind=MULTILINE, optional=True),
        FormField("tracking", "Track #CONF.", optional=True),
        FormField("designTime", "Design Time", optional=True),
        FormField("date", "Date", kind=DATE, optional=True),
        FormField("deadline", "Deadline", kind=DATE, optional=True),
        select_field("Status", "status", STATUS_CHOICES),
        select_field("Payment Status", "paymentStatus", PAYMENT_STATUS_CHOICES),
        select_field("Manufacture", "manufacture", MANUFACTURE_CHOICES),
        select_field("Second Manufacture", "secondManufacture", SECOND_MANUFACTURE_CHOICES),
        dc_replace(select_field("Item", "item", catalog.items()), dispatch_action=True),
        placeholder_description_field(),
    ))


def build_modal(view: FormView, private_metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    modal: Dict[str, Any] = {
        "type": "modal",
        "callback_id": MODAL_CALLBACK_ID,
        "title": plain_text(MODAL_TITLE),
        "submit": plain_text("Create"),
        "close": plain_text("Cancel"),
        "blocks": view.to_blocks(),
    }
    if private_metadata:
        modal["private_metadata"] = json.dumps(private_metadata)
    return modal


def read_private_metadata(view_payload: Dict[str, Any]) -> Dict[str, Any]:
    raw = view_payload.get("private_metadata") or ""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Ignoring unparseable private_metadata: %r", raw[:100])
        return {}
    return data if isinstance(data, dict) else {}
