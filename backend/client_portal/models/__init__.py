"""Import all models so SQLAlchemy metadata is fully registered."""

from client_portal.db.base import Base

from client_portal.models.company import Client, ClientContact, Company
from client_portal.models.enums import (
    HIDDEN_INVOICE_STATUSES,
    InvoiceStatus,
    ListingMode,
    PortalModule,
    StatusFilter,
)
from client_portal.models.invoice import Invoice

__all__ = [
    "Base",
    "Client",
    "ClientContact",
    "Company",
    "HIDDEN_INVOICE_STATUSES",
    "Invoice",
    "InvoiceStatus",
    "ListingMode",
    "PortalModule",
    "StatusFilter",
]
