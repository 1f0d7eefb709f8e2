from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from client_portal.core.errors import InvalidQuery
from client_portal.models.company import Client
from client_portal.models.enums import InvoiceStatus, StatusFilter
from client_portal.schemas.invoice import ListingQuery
from client_portal.services.listing import expand_status_filters, list_invoices, run_listing


def _numbers(page):
    return {row.number for row in page.items}


def _query(**kwargs):
    kwargs.setdefault("per_page", 50)
    return ListingQuery(**kwargs)


@pytest.fixture()
def ledger(make_invoice):
    return {
        "draft": make_invoice(InvoiceStatus.DRAFT, number="DRAFT-1"),
        "cancelled": make_invoice(InvoiceStatus.CANCELLED, number="CANCELLED-1"),
        "proforma": make_invoice(InvoiceStatus.SENT, number="PROFORMA-1", is_proforma=True),
        "deleted": make_invoice(InvoiceStatus.SENT, number="DELETED-1", is_deleted=True),
        "paid": make_invoice(InvoiceStatus.PAID, number="PAID-1", balance="0.00"),
        "paid_past_due": make_invoice(InvoiceStatus.PAID, number="PAID-2", due_in_days=-10, balance="0.00"),
        "sent": make_invoice(InvoiceStatus.SENT, number="SENT-1"),
        "sent_overdue": make_invoice(InvoiceStatus.SENT, number="SENT-2", due_in_days=-3),
        "partial_overdue": make_invoice(
            InvoiceStatus.PARTIAL,
            number="PARTIAL-1",
            due_in_days=20,
            partial_due_in_days=-1,
            balance="40.00",
        ),
        "reversed": make_invoice(InvoiceStatus.REVERSED, number="REVERSED-1"),
        "archived": make_invoice(
            InvoiceStatus.SENT,
            number="ARCHIVED-1",
            archived_at=datetime.now(timezone.utc),
        ),
    }


def test_hidden_invoices_never_listed(db, portal_client, ledger):
    for filters in ([], ["paid"], ["unpaid"], ["overdue"], ["paid", "unpaid", "overdue"]):
        page = list_invoices(db, portal_client, _query(status=filters))
        assert not _numbers(page) & {"DRAFT-1", "CANCELLED-1", "PROFORMA-1", "DELETED-1"}


def test_no_filter_lists_every_visible_status(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query())
    assert _numbers(page) == {
        "PAID-1",
        "PAID-2",
        "SENT-1",
        "SENT-2",
        "PARTIAL-1",
        "REVERSED-1",
        "ARCHIVED-1",
    }
    assert page.total == 7


def test_paid_filter(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query(status=["paid"]))
    assert _numbers(page) == {"PAID-1", "PAID-2"}
    assert all(row.status_id == InvoiceStatus.PAID for row in page.items)


def test_unpaid_filter(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query(status=["unpaid"]))
    assert _numbers(page) == {"SENT-1", "SENT-2", "PARTIAL-1", "ARCHIVED-1"}


def test_overdue_filter_uses_due_or_partial_due_date(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query(status=["overdue"]))
    assert _numbers(page) == {"SENT-2", "PARTIAL-1"}
    assert all(row.is_overdue for row in page.items)


def test_paid_and_overdue_keeps_every_paid_invoice(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query(status=["paid", "overdue"]))
    assert _numbers(page) == {"PAID-1", "PAID-2", "SENT-2", "PARTIAL-1"}


def test_unpaid_and_overdue_is_the_union(db, portal_client, ledger):
    page = list_invoices(db, portal_client, _query(status=["unpaid", "overdue"]))
    assert _numbers(page) == {"SENT-1", "SENT-2", "PARTIAL-1", "ARCHIVED-1"}


def test_due_today_counts_as_overdue(db, portal_client, make_invoice):
    make_invoice(InvoiceStatus.SENT, number="DUE-TODAY", due_in_days=0)
    make_invoice(InvoiceStatus.PARTIAL, number="PARTIAL-TODAY", partial_due_in_days=0)
    make_invoice(InvoiceStatus.SENT, number="DUE-TOMORROW", due_in_days=1)

    page = list_invoices(db, portal_client, _query(status=["overdue"]))

    assert _numbers(page) == {"DUE-TODAY", "PARTIAL-TODAY"}
    assert all(row.is_overdue for row in page.items)


def test_expand_status_filters_deduplicates():
    matched, undated = expand_status_filters(frozenset({StatusFilter.UNPAID, StatusFilter.OVERDUE}))
    assert matched == {InvoiceStatus.SENT, InvoiceStatus.PARTIAL}
    assert undated == {InvoiceStatus.SENT, InvoiceStatus.PARTIAL}

    matched, undated = expand_status_filters(frozenset({StatusFilter.OVERDUE}))
    assert matched == {InvoiceStatus.SENT, InvoiceStatus.PARTIAL}
    assert undated == set()


def test_scoped_to_requesting_client(db, company, portal_client, make_invoice):
    other = Client(company_id=company.id, name="Initech", settings={})
    db.add(other)
    db.commit()
    make_invoice(InvoiceStatus.SENT, number="MINE-1")
    make_invoice(InvoiceStatus.SENT, number="THEIRS-1", client=other)

    assert _numbers(list_invoices(db, portal_client, _query())) == {"MINE-1"}
    assert _numbers(list_invoices(db, other, _query())) == {"THEIRS-1"}


def test_default_sort_is_date_descending(db, portal_client, make_invoice):
    make_invoice(number="OLD", days_ago=30)
    make_invoice(number="NEW", days_ago=1)
    make_invoice(number="MID", days_ago=10)

    query = ListingQuery()
    assert query.sort_field == "date"
    assert query.sort_asc is False
    page = list_invoices(db, portal_client, query)
    assert [row.number for row in page.items] == ["NEW", "MID", "OLD"]


@pytest.mark.parametrize("sort_field", ["number", "date", "due_date", "amount", "balance", "status"])
@pytest.mark.parametrize("sort_asc", [True, False])
def test_sort_is_total_and_deterministic(db, portal_client, make_invoice, sort_field, sort_asc):
    for idx in range(7):
        # Lots of ties on every sortable column.
        make_invoice(
            InvoiceStatus.SENT if idx % 2 else InvoiceStatus.PAID,
            days_ago=idx % 2,
            due_in_days=10 + idx % 3,
            amount="50.00" if idx % 2 else "75.00",
        )

    def walk():
        ids = []
        for page_number in (1, 2, 3):
            query = ListingQuery(sort_field=sort_field, sort_asc=sort_asc, page=page_number, per_page=3)
            ids.extend(run_listing(db, portal_client, query).invoices)
        return ids

    first = walk()
    second = walk()
    assert [invoice.id for invoice in first] == [invoice.id for invoice in second]
    assert len({invoice.id for invoice in first}) == 7

    columns = {"status": "status_id"}
    attribute = columns.get(sort_field, sort_field)
    keys = [(getattr(invoice, attribute), invoice.id) for invoice in first]
    assert keys == sorted(keys, reverse=not sort_asc)


def test_page_beyond_end_is_empty(db, portal_client, make_invoice):
    for _ in range(3):
        make_invoice()
    page = list_invoices(db, portal_client, ListingQuery(page=5, per_page=2))
    assert page.items == []
    assert page.total == 3
    assert page.last_page == 2
    assert page.has_more is False
    assert page.next_page is None
    assert page.prev_page == 4


def test_pagination_metadata(db, portal_client, make_invoice):
    for _ in range(5):
        make_invoice()
    page = list_invoices(db, portal_client, ListingQuery(page=1, per_page=2))
    assert len(page.items) == 2
    assert page.has_more is True
    assert page.next_page == 2
    assert page.prev_page is None
    assert page.last_page == 3


def test_unknown_sort_field_rejected_by_query():
    with pytest.raises(ValidationError):
        ListingQuery(sort_field="client_id; drop table invoices")


def test_engine_rechecks_sort_field_before_querying(db, portal_client):
    unchecked = ListingQuery.model_construct(
        status=frozenset(), sort_field="client_id", sort_asc=False, page=1, per_page=10
    )
    with pytest.raises(InvalidQuery) as excinfo:
        run_listing(db, portal_client, unchecked)
    assert excinfo.value.field == "sort_field"


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        ListingQuery(per_page=0)
