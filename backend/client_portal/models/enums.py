from __future__ import annotations

import enum


class InvoiceStatus(enum.IntEnum):
    DRAFT = 1
    SENT = 2
    PARTIAL = 3
    PAID = 4
    CANCELLED = 5
    REVERSED = 6


# Never visible to a client contact, whatever filter is active.
HIDDEN_INVOICE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})


class StatusFilter(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    OVERDUE = "overdue"


class ListingMode(str, enum.Enum):
    TABLE = "table"
    DOWNLOADING = "downloading"
    PAYMENT = "payment"


class PortalModule(enum.IntFlag):
    """Bits of ``Company.enabled_modules`` controlling client portal sections."""

    RECURRING_INVOICES = 1
    CREDITS = 2
    QUOTES = 4
    TASKS = 8
    EXPENSES = 16
    PROJECTS = 32
    VENDORS = 64
    TICKETS = 128
    PROPOSALS = 256
    RECURRING_EXPENSES = 512
    RECURRING_TASKS = 1024
    RECURRING_QUOTES = 2048
    INVOICES = 4096
    PURCHASE_ORDERS = 8192
