"""State machine behind the client portal invoices table.

One controller is built per request from the ``TableState`` the portal
sends back; nothing is kept between requests on the server.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from client_portal.core.errors import Forbidden, InvalidQuery, InvalidSelection, NoItemsSelected
from client_portal.core.i18n import translate
from client_portal.models.company import ClientContact
from client_portal.models.enums import ListingMode, PortalModule
from client_portal.models.invoice import Invoice
from client_portal.schemas.invoice import SORTABLE_FIELDS, TableChanges, TableState, TableView
from client_portal.services.export import ExportPipeline, ExportResult
from client_portal.services.listing import ListingResult, run_listing
from client_portal.services.repository import find_by_hashed_ids
from client_portal.services.selection import SelectionTracker


HASHED_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{1,32}$")
LISTING_FIELDS = ("status", "sort_field", "sort_asc", "per_page", "page")


class InvoiceTableController:
    def __init__(
        self,
        db: Session,
        contact: ClientContact,
        state: Optional[TableState] = None,
        *,
        pipeline: Optional[ExportPipeline] = None,
        today: Optional[date] = None,
    ) -> None:
        self.db = db
        self.contact = contact
        self.client = contact.client
        self.company = self.client.company
        self.state = (state or TableState()).model_copy(deep=True)
        self._validate_selection(self.state.selected_invoice_ids)
        self.selection = SelectionTracker(self.state.selected_invoice_ids, self.state.all_selected)
        self.pipeline = pipeline or ExportPipeline()
        self.today = today
        self.errors: Dict[str, List[str]] = {}
        self._listing: Optional[ListingResult] = None

    @property
    def locale(self) -> Optional[str]:
        return self.client.get_setting("locale")

    @property
    def listing(self) -> ListingResult:
        if self._listing is None:
            self._listing = run_listing(self.db, self.client, self.state.listing_query(), today=self.today)
        return self._listing

    @property
    def gateway_available(self) -> bool:
        return bool(self.client.get_setting("payment_gateways"))

    def add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    # Listing and selection

    def _recompute_then_reconcile(self) -> None:
        self._listing = None
        self.selection.on_listing_state_changed(self.listing.hashed_ids)

    def apply(self, changes: TableChanges) -> None:
        """Apply one round of user edits.

        Listing edits recompute the page and reconcile the selection before
        any selection edit in the same round is looked at.
        """
        touched = changes.model_fields_set
        listing_changed = False
        for name in LISTING_FIELDS:
            value = getattr(changes, name)
            if name in touched and value is not None:
                setattr(self.state, name, value)
                listing_changed = True
        if listing_changed:
            self._recompute_then_reconcile()

        if "selected_invoice_ids" in touched and changes.selected_invoice_ids is not None:
            self.set_selection(changes.selected_invoice_ids)
        if "all_selected" in touched and changes.all_selected is not None:
            self.toggle_select_all(changes.all_selected)

    def sort_by(self, field: str) -> None:
        if field not in SORTABLE_FIELDS:
            raise InvalidQuery(translate("invalid_sort_field", self.locale), field="sort_field")
        if self.state.sort_field == field:
            self.state.sort_asc = not self.state.sort_asc
        else:
            self.state.sort_field = field
            self.state.sort_asc = True
        self._recompute_then_reconcile()

    def toggle_select_all(self, enabled: bool) -> None:
        self.selection.toggle_select_all(enabled, self.listing.hashed_ids)

    def set_selection(self, hashed_ids: List[str]) -> None:
        self._validate_selection(hashed_ids)
        visible = find_by_hashed_ids(self.db, self.client, hashed_ids)
        self.selection.set_selection(invoice.hashed_id for invoice in visible)

    def selected_invoices(self) -> List[Invoice]:
        selected = set(self.selection.selected_ids)
        return [invoice for invoice in self.listing.invoices if invoice.hashed_id in selected]

    # Actions

    def _authorize(self) -> None:
        if not self.company.has_module(PortalModule.INVOICES):
            raise Forbidden("Invoices are not enabled for this portal")

    def _validate_selection(self, hashed_ids: List[str]) -> None:
        for hashed_id in hashed_ids:
            if not isinstance(hashed_id, str) or not HASHED_ID_PATTERN.match(hashed_id):
                raise InvalidSelection(translate("invalid_selection", self.locale), field="selected_invoice_ids")

    def _require_selection(self) -> List[Invoice]:
        self._authorize()
        self._validate_selection(self.selection.selected_ids)
        invoices = self.selected_invoices()
        if not invoices:
            raise NoItemsSelected(translate("no_items_selected", self.locale), field="message")
        return invoices

    def start_download(self) -> None:
        self._require_selection()
        self.state.mode = ListingMode.DOWNLOADING

    def download(self) -> ExportResult:
        # Back to the table before exporting so a re-render never sticks on "downloading".
        self.state.mode = ListingMode.TABLE
        self._authorize()
        self._validate_selection(self.selection.selected_ids)
        return self.pipeline.export(self.selected_invoices(), locale=self.locale, today=self.today)

    def start_payment(self) -> None:
        self._require_selection()
        self.state.mode = ListingMode.PAYMENT

    # Rendering

    def snapshot(self) -> TableState:
        return self.state.model_copy(
            update={
                "selected_invoice_ids": self.selection.selected_ids,
                "all_selected": self.selection.all_selected,
            }
        )

    def view(self) -> TableView:
        self.selection.restrict_to(self.listing.hashed_ids)
        return TableView(
            state=self.snapshot(),
            invoices=self.listing.to_page(),
            errors=self.errors,
            gateway_available=self.gateway_available,
        )
