"""Portal error taxonomy.

Services raise these; ``client_portal.routers.invoices`` turns them into
HTTP responses or user-visible messages.
"""

from __future__ import annotations

from typing import Optional


class PortalError(Exception):
    """Base class for errors raised by the invoice portal services."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidQuery(PortalError, ValueError):
    """Listing parameters outside what the portal accepts (e.g. unknown sort field)."""


class InvalidSelection(PortalError, ValueError):
    """Selection payload is not a well-formed set of invoice identifiers."""


class Forbidden(PortalError, PermissionError):
    """The company has not enabled the invoices module for its portal."""


class NoItemsSelected(PortalError):
    """The selection resolves to no visible invoice. Recoverable, shown to the user."""


class EmptySelection(PortalError, ValueError):
    """An export was requested with zero invoices."""


class SelectionTooLarge(PortalError, ValueError):
    """An export was requested with more invoices than allowed."""


class ExportFailed(PortalError):
    """Rendering or archiving failed; partial artifacts have been removed."""
