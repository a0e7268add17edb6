# selection.py
"""
Dependent Item -> Description -> Custom text controller.

Each transition takes the current FormView and returns a fresh one; the
caller turns it into a full views.update (see rebuild_modal).

States:
- NO_ITEM: description is the inert placeholder select
- ITEM_CHOSEN: description offers catalog.descriptions_for(item), no custom field
- CUSTOM: description == CUSTOM and the customDescription field is present
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from catalog import CUSTOM, Catalog
from modal_views import (
    PLACEHOLDER_OPTION,
    SELECT,
    FormField,
    FormView,
    make_options,
    placeholder_description_field,
)

logger = logging.getLogger("selection")

ITEM_BLOCK = "item"
DESCRIPTION_BLOCK = "description"
CUSTOM_BLOCK = "customDescription"

NO_ITEM = "no_item"
ITEM_CHOSEN = "item_chosen"
CUSTOM_SELECTED = "custom"

# Keys views.update accepts in a view payload
_MODAL_KEYS = (
    "type",
    "callback_id",
    "title",
    "submit",
    "close",
    "private_metadata",
    "clear_on_close",
    "notify_on_close",
    "external_id",
    "submit_disabled",
)


def description_action_id(item: str) -> str:
    # Slack keeps an input's value while block_id and action_id are unchanged.
    return f"{DESCRIPTION_BLOCK}:{item}"


def description_field_for(catalog: Catalog, item: str) -> FormField:
    return FormField(
        block_id=DESCRIPTION_BLOCK,
        label="Description",
        kind=SELECT,
        options=make_options(catalog.descriptions_for(item)),
        placeholder="Choose description",
        dispatch_action=True,
        action_id=description_action_id(item),
    )


def custom_description_field() -> FormField:
    return FormField(
        block_id=CUSTOM_BLOCK,
        label="Custom Description",
        placeholder="Describe the custom option",
    )


def selection_state(view: FormView) -> str:
    description = view.get(DESCRIPTION_BLOCK)
    if description is None or [v for _, v in description.options] == [PLACEHOLDER_OPTION]:
        return NO_ITEM
    if CUSTOM_BLOCK in view:
        return CUSTOM_SELECTED
    return ITEM_CHOSEN


def on_item_selected(view: FormView, catalog: Catalog, item: str) -> FormView:
    """Rebuild the description select for `item`; any earlier description or custom text is dropped."""
    fresh = description_field_for(catalog, item)
    stripped = view.without(CUSTOM_BLOCK)
    if DESCRIPTION_BLOCK in stripped:
        return stripped.replace(DESCRIPTION_BLOCK, fresh)
    if ITEM_BLOCK in stripped:
        return stripped.insert_after(ITEM_BLOCK, fresh)
    return FormView(stripped.fields + (fresh,))


def on_description_selected(view: FormView, value: str) -> FormView:
    if DESCRIPTION_BLOCK not in view:
        logger.warning("Description selected on a view without a description block")
        return view
    if value == CUSTOM:
        if CUSTOM_BLOCK in view:
            return view
        return view.insert_after(DESCRIPTION_BLOCK, custom_description_field())
    return view.without(CUSTOM_BLOCK)


def reset_selection(view: FormView) -> FormView:
    stripped = view.without(CUSTOM_BLOCK)
    if DESCRIPTION_BLOCK in stripped:
        return stripped.replace(DESCRIPTION_BLOCK, placeholder_description_field())
    return stripped


def rebuild_modal(current_view: Dict[str, Any], form_view: FormView) -> Dict[str, Any]:
    """
    Full replacement payload for views.update.

    Only the keys Slack accepts on update are copied from the event's view;
    the id, hash and state Slack echoes back are left out.
    """
    modal = {key: current_view[key] for key in _MODAL_KEYS if key in current_view}
    modal["type"] = "modal"
    modal["blocks"] = form_view.to_blocks()
    return modal


def apply_action(view: FormView, catalog: Catalog, block_id: str, value: str) -> FormView:
    """Route a block action by the block it came from; action_ids vary per item."""
    if block_id == ITEM_BLOCK:
        if not value:
            return reset_selection(view)
        return on_item_selected(view, catalog, value)
    if block_id == DESCRIPTION_BLOCK:
        return on_description_selected(view, value)
    raise ValueError(f"no transition for block {block_id!r}")
