"""Read-only, client-scoped access to invoice records."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, selectinload

from client_portal.models.company import Client
from client_portal.models.enums import HIDDEN_INVOICE_STATUSES
from client_portal.models.invoice import Invoice


SORT_COLUMNS = {
    "number": Invoice.number,
    "date": Invoice.date,
    "due_date": Invoice.due_date,
    "amount": Invoice.amount,
    "balance": Invoice.balance,
    "status": Invoice.status_id,
}


def visible_invoices(db: Session, client: Client) -> Query:
    """Invoices a contact of ``client`` may ever see.

    Archived invoices stay listable; deleted, proforma, draft and cancelled
    invoices never are.
    """
    return (
        db.query(Invoice)
        .filter(
            Invoice.company_id == client.company_id,
            Invoice.client_id == client.id,
            Invoice.is_deleted.is_(False),
            Invoice.is_proforma.is_(False),
            Invoice.status_id.notin_([int(status) for status in HIDDEN_INVOICE_STATUSES]),
        )
        .options(selectinload(Invoice.client).selectinload(Client.company))
    )


def past_due_condition(today: date):
    # DATE columns mean midnight, so anything due today is already behind "now".
    return or_(Invoice.due_date <= today, Invoice.partial_due_date <= today)


def find_by_hashed_ids(db: Session, client: Client, hashed_ids: Iterable[str]) -> List[Invoice]:
    wanted = list(dict.fromkeys(hashed_ids))
    if not wanted:
        return []
    invoices = visible_invoices(db, client).filter(Invoice.hashed_id.in_(wanted)).all()
    by_id = {invoice.hashed_id: invoice for invoice in invoices}
    return [by_id[hashed_id] for hashed_id in wanted if hashed_id in by_id]
