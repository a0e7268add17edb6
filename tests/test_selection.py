import pytest

from catalog import CUSTOM
from modal_views import FormView, build_initial_view, build_modal
from selection import (
    CUSTOM_BLOCK,
    CUSTOM_SELECTED,
    DESCRIPTION_BLOCK,
    ITEM_CHOSEN,
    NO_ITEM,
    apply_action,
    on_description_selected,
    on_item_selected,
    rebuild_modal,
    selection_state,
)


def _description_values(view):
    return [value for _, value in view.get(DESCRIPTION_BLOCK).options]


def test_initial_state_has_no_item(catalog):
    assert selection_state(build_initial_view(catalog, 1)) == NO_ITEM


def test_item_selection_populates_descriptions_in_catalog_order(stickers_catalog):
    view = on_item_selected(build_initial_view(stickers_catalog, 1), stickers_catalog, "Stickers")
    assert _description_values(view) == ["Die Cut", "Custom"]
    assert selection_state(view) == ITEM_CHOSEN
    assert CUSTOM_BLOCK not in view


def test_switching_items_never_merges_options(catalog):
    view = build_initial_view(catalog, 1)
    view = on_item_selected(view, catalog, "Stickers")
    view = on_item_selected(view, catalog, "Business Cards")
    assert _description_values(view) == list(catalog.descriptions_for("Business Cards"))


def test_custom_adds_exactly_one_custom_field(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    view = on_description_selected(view, CUSTOM)
    view = on_description_selected(view, CUSTOM)
    assert view.block_ids().count(CUSTOM_BLOCK) == 1
    assert view.block_ids().index(CUSTOM_BLOCK) == view.block_ids().index(DESCRIPTION_BLOCK) + 1
    assert not view.get(CUSTOM_BLOCK).optional
    assert selection_state(view) == CUSTOM_SELECTED


def test_non_custom_description_removes_custom_field(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    view = on_description_selected(view, CUSTOM)
    view = on_description_selected(view, "Die Cut")
    assert CUSTOM_BLOCK not in view
    assert selection_state(view) == ITEM_CHOSEN


def test_new_item_discards_custom_field(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    view = on_description_selected(view, CUSTOM)
    view = on_item_selected(view, catalog, "Business Cards")
    assert CUSTOM_BLOCK not in view
    assert view.get(DESCRIPTION_BLOCK).initial_value is None


def test_transitions_leave_other_fields_untouched(catalog):
    before = build_initial_view(catalog, 1)
    after = on_description_selected(on_item_selected(before, catalog, "Stickers"), CUSTOM)
    for block_id in before.block_ids():
        if block_id != DESCRIPTION_BLOCK:
            assert after.get(block_id) == before.get(block_id)


def test_transitions_return_new_views(catalog):
    before = build_initial_view(catalog, 1)
    after = on_item_selected(before, catalog, "Stickers")
    assert after is not before
    assert selection_state(before) == NO_ITEM


def test_clearing_item_returns_to_placeholder(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    view = apply_action(view, catalog, "item", "")
    assert selection_state(view) == NO_ITEM


def test_apply_action_rejects_unknown_action(catalog):
    with pytest.raises(ValueError):
        apply_action(build_initial_view(catalog, 1), catalog, "status", "OPEN")


def test_rebuild_modal_drops_echoed_keys(catalog):
    modal = build_modal(build_initial_view(catalog, 1), {"channel_id": "C1"})
    echoed = dict(modal, id="V123", hash="h-1", team_id="T1", state={"values": {}}, app_id="A1")
    updated = on_item_selected(FormView.from_blocks(echoed["blocks"]), catalog, "Stickers")
    replacement = rebuild_modal(echoed, updated)
    assert set(replacement) == {"type", "callback_id", "title", "submit", "close", "private_metadata", "blocks"}
    assert replacement["private_metadata"] == modal["private_metadata"]
    assert replacement["blocks"] == updated.to_blocks()


def test_each_item_gets_its_own_description_action_id(catalog):
    initial = build_initial_view(catalog, 1)
    stickers = on_item_selected(initial, catalog, "Stickers")
    cards = on_item_selected(stickers, catalog, "Business Cards")
    action_ids = [view.get(DESCRIPTION_BLOCK).to_block()["element"]["action_id"] for view in (initial, stickers, cards)]
    assert len(set(action_ids)) == 3
    assert all(view.get(DESCRIPTION_BLOCK).block_id == DESCRIPTION_BLOCK for view in (initial, stickers, cards))


def test_description_action_id_survives_custom_round_trip(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    echoed = FormView.from_blocks(view.to_blocks())
    with_custom = on_description_selected(echoed, CUSTOM)
    element = with_custom.get(DESCRIPTION_BLOCK).to_block()["element"]
    assert element["action_id"] == view.get(DESCRIPTION_BLOCK).to_block()["element"]["action_id"]


def test_apply_action_routes_by_block(catalog):
    view = on_item_selected(build_initial_view(catalog, 1), catalog, "Stickers")
    view = apply_action(view, catalog, DESCRIPTION_BLOCK, CUSTOM)
    assert CUSTOM_BLOCK in view
