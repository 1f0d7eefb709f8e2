from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import FrozenSet, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from client_portal.core.errors import InvalidQuery
from client_portal.core.i18n import translate
from client_portal.models.company import Client
from client_portal.models.enums import InvoiceStatus, StatusFilter
from client_portal.models.invoice import Invoice
from client_portal.schemas.invoice import InvoicePage, InvoiceRow, ListingQuery
from client_portal.services.repository import SORT_COLUMNS, past_due_condition, visible_invoices


STATUS_FILTER_EXPANSION = {
    StatusFilter.PAID: frozenset({InvoiceStatus.PAID}),
    StatusFilter.UNPAID: frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIAL}),
    StatusFilter.OVERDUE: frozenset({InvoiceStatus.SENT, InvoiceStatus.PARTIAL}),
}


def expand_status_filters(
    filters: FrozenSet[StatusFilter],
) -> Tuple[FrozenSet[InvoiceStatus], FrozenSet[InvoiceStatus]]:
    """Return (all statuses to match, statuses matched without the past-due test)."""
    matched: set[InvoiceStatus] = set()
    undated: set[InvoiceStatus] = set()
    for status_filter in filters:
        statuses = STATUS_FILTER_EXPANSION[status_filter]
        matched.update(statuses)
        if status_filter != StatusFilter.OVERDUE:
            undated.update(statuses)
    return frozenset(matched), frozenset(undated)


def apply_status_filters(query: Query, filters: FrozenSet[StatusFilter], *, today: date) -> Query:
    if not filters:
        return query

    matched, undated = expand_status_filters(filters)
    query = query.filter(Invoice.status_id.in_(sorted(int(status) for status in matched)))

    # The past-due test only narrows what "overdue" contributes.
    if StatusFilter.OVERDUE in filters:
        conditions = [past_due_condition(today)]
        if undated:
            conditions.append(Invoice.status_id.in_(sorted(int(status) for status in undated)))
        query = query.filter(or_(*conditions))
    return query


def apply_sort(query: Query, sort_field: str, sort_asc: bool) -> Query:
    column = SORT_COLUMNS.get(sort_field)
    if column is None:
        raise InvalidQuery(translate("invalid_sort_field"), field="sort_field")
    if sort_asc:
        return query.order_by(column.asc(), Invoice.id.asc())
    return query.order_by(column.desc(), Invoice.id.desc())


@dataclass
class ListingResult:
    invoices: List[Invoice]
    total: int
    query: ListingQuery

    @property
    def hashed_ids(self) -> List[str]:
        return [invoice.hashed_id for invoice in self.invoices]

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.query.per_page))

    def to_page(self) -> InvoicePage:
        page = self.query.page
        offset = (page - 1) * self.query.per_page
        has_more = offset + self.query.per_page < self.total
        return InvoicePage(
            items=[InvoiceRow.model_validate(invoice) for invoice in self.invoices],
            total=self.total,
            page=page,
            per_page=self.query.per_page,
            last_page=self.last_page,
            has_more=has_more,
            next_page=page + 1 if has_more else None,
            prev_page=page - 1 if page > 1 else None,
        )


def run_listing(
    db: Session,
    client: Client,
    listing_query: ListingQuery,
    *,
    today: Optional[date] = None,
) -> ListingResult:
    """Compute one page of ``client``'s invoices for ``listing_query``.

    The sort field is checked before any SQL is executed.  A page past the
    end yields an empty result rather than an error.
    """
    if listing_query.sort_field not in SORT_COLUMNS:
        raise InvalidQuery(translate("invalid_sort_field"), field="sort_field")

    today = today or datetime.now(timezone.utc).date()
    query = visible_invoices(db, client)
    query = apply_status_filters(query, listing_query.status, today=today)

    total = query.order_by(None).count()

    query = apply_sort(query, listing_query.sort_field, listing_query.sort_asc)
    offset = (listing_query.page - 1) * listing_query.per_page
    invoices = query.offset(offset).limit(listing_query.per_page).all()
    return ListingResult(invoices=invoices, total=total, query=listing_query)


def list_invoices(
    db: Session,
    client: Client,
    listing_query: ListingQuery,
    *,
    today: Optional[date] = None,
) -> InvoicePage:
    return run_listing(db, client, listing_query, today=today).to_page()
