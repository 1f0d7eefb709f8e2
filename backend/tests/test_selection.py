from __future__ import annotations

import pytest

from client_portal.core.errors import InvalidQuery, InvalidSelection
from client_portal.models.enums import InvoiceStatus, StatusFilter
from client_portal.schemas.invoice import TableChanges, TableState
from client_portal.services.selection import SelectionTracker
from client_portal.services.table import InvoiceTableController


def test_toggle_select_all():
    tracker = SelectionTracker()
    tracker.toggle_select_all(True, ["a", "b", "c"])
    assert tracker.selected_ids == ["a", "b", "c"]
    assert tracker.all_selected is True

    tracker.toggle_select_all(False, ["a", "b", "c"])
    assert tracker.selected_ids == []
    assert tracker.all_selected is False


def test_set_selection_clears_select_all():
    tracker = SelectionTracker(["a"], all_selected=True)
    tracker.set_selection(["b", "c", "b"])
    assert tracker.selected_ids == ["b", "c"]
    assert tracker.all_selected is False


def test_listing_change_intersects_with_new_page():
    tracker = SelectionTracker()
    tracker.toggle_select_all(True, ["a", "b", "c"])
    tracker.on_listing_state_changed(["c", "d"])
    assert tracker.selected_ids == ["c"]
    assert tracker.all_selected is False

    tracker.on_listing_state_changed(["x"])
    assert tracker.selected_ids == []


def test_select_all_then_next_page_drops_selection(db, contact, make_invoice):
    for idx in range(8):
        make_invoice(days_ago=idx)

    controller = InvoiceTableController(db, contact, TableState(per_page=5))
    controller.toggle_select_all(True)
    page_one = controller.listing.hashed_ids
    assert controller.selection.selected_ids == page_one
    assert controller.selection.all_selected is True

    controller.apply(TableChanges(page=2))
    page_two = controller.listing.hashed_ids
    assert controller.selection.selected_ids == [hid for hid in page_one if hid in page_two]
    assert controller.selection.selected_ids == []
    assert controller.selection.all_selected is False


def test_growing_page_size_keeps_visible_selection(db, contact, make_invoice):
    for idx in range(8):
        make_invoice(days_ago=idx)

    controller = InvoiceTableController(db, contact, TableState(per_page=5))
    controller.toggle_select_all(True)
    selected = controller.selection.selected_ids

    controller.apply(TableChanges(per_page=10))
    assert controller.selection.selected_ids == selected
    assert controller.selection.all_selected is False


def test_filter_change_keeps_only_still_visible_invoices(db, contact, make_invoice):
    paid_one = make_invoice(InvoiceStatus.PAID, balance="0.00")
    paid_two = make_invoice(InvoiceStatus.PAID, balance="0.00")
    sent = make_invoice(InvoiceStatus.SENT)

    controller = InvoiceTableController(db, contact, TableState())
    controller.set_selection([paid_one.hashed_id, paid_two.hashed_id, sent.hashed_id])
    assert len(controller.selection) == 3

    controller.apply(TableChanges(status=[StatusFilter.UNPAID]))
    assert controller.selection.selected_ids == [sent.hashed_id]
    assert [invoice.hashed_id for invoice in controller.selected_invoices()] == [sent.hashed_id]


def test_sort_change_reconciles_after_new_page(db, contact, make_invoice):
    invoices = [make_invoice(days_ago=idx) for idx in range(4)]
    controller = InvoiceTableController(db, contact, TableState(per_page=2))
    newest = controller.listing.hashed_ids
    assert newest == [invoices[0].hashed_id, invoices[1].hashed_id]
    controller.toggle_select_all(True)

    controller.apply(TableChanges(sort_asc=True))
    assert controller.listing.hashed_ids == [invoices[3].hashed_id, invoices[2].hashed_id]
    assert controller.selection.selected_ids == []


def test_same_round_selection_applies_after_listing(db, contact, make_invoice):
    for idx in range(4):
        make_invoice(days_ago=idx)

    controller = InvoiceTableController(db, contact, TableState(per_page=2))
    controller.apply(TableChanges(page=2, all_selected=True))
    assert controller.selection.selected_ids == controller.listing.hashed_ids
    assert controller.selection.all_selected is True


def test_sort_by_toggles_direction_on_same_field(db, contact, make_invoice):
    make_invoice()
    controller = InvoiceTableController(db, contact, TableState(sort_field="number", sort_asc=True))
    controller.sort_by("number")
    assert controller.state.sort_asc is False

    controller.sort_by("due_date")
    assert controller.state.sort_field == "due_date"
    assert controller.state.sort_asc is True


def test_selection_ignores_invoices_the_client_cannot_see(db, contact, make_invoice):
    visible = make_invoice(InvoiceStatus.SENT)
    draft = make_invoice(InvoiceStatus.DRAFT)

    controller = InvoiceTableController(db, contact, TableState())
    controller.set_selection([visible.hashed_id, draft.hashed_id, "unknown123"])
    assert controller.selection.selected_ids == [visible.hashed_id]


@pytest.mark.parametrize("bad_id", ["", "a" * 40, "../etc/passwd", "id with spaces"])
def test_malformed_selection_rejected(db, contact, bad_id):
    controller = InvoiceTableController(db, contact, TableState())
    with pytest.raises(InvalidSelection):
        controller.set_selection([bad_id])


def test_restrict_to_keeps_select_all_only_while_it_holds():
    tracker = SelectionTracker(["a", "b"], all_selected=True)
    tracker.restrict_to(["a", "b"])
    assert tracker.selected_ids == ["a", "b"]
    assert tracker.all_selected is True

    tracker.restrict_to(["a", "b", "c"])
    assert tracker.all_selected is False

    tracker = SelectionTracker(["ghost", "a"], all_selected=True)
    tracker.restrict_to(["a"])
    assert tracker.selected_ids == ["a"]
    assert tracker.all_selected is True

    tracker = SelectionTracker([], all_selected=True)
    tracker.restrict_to([])
    assert tracker.all_selected is False


def test_round_tripped_selection_is_restricted_to_rendered_page(db, contact, make_invoice):
    own = make_invoice()
    state = TableState(selected_invoice_ids=["ghost123", own.hashed_id], all_selected=True)

    view = InvoiceTableController(db, contact, state).view()

    assert view.state.selected_invoice_ids == [own.hashed_id]
    assert view.state.all_selected is True


def test_round_tripped_malformed_ids_rejected(db, contact, make_invoice):
    make_invoice()
    with pytest.raises(InvalidSelection):
        InvoiceTableController(db, contact, TableState(selected_invoice_ids=["../etc/passwd"]))


def test_select_all_survives_render(db, contact, make_invoice):
    for idx in range(3):
        make_invoice(days_ago=idx)
    controller = InvoiceTableController(db, contact, TableState())
    controller.toggle_select_all(True)

    view = controller.view()

    assert view.state.all_selected is True
    assert view.state.selected_invoice_ids == view.invoices.hashed_ids


def test_sort_by_unknown_column_rejected(db, contact):
    controller = InvoiceTableController(db, contact, TableState())
    with pytest.raises(InvalidQuery):
        controller.sort_by("client_id")
    assert controller.state.sort_field == "date"
