from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from client_portal.core.settings import settings
from client_portal.models.enums import InvoiceStatus, ListingMode, StatusFilter


# External sort names accepted from the portal; mapped to columns by the repository.
SORTABLE_FIELDS = ("number", "date", "due_date", "amount", "balance", "status")
DEFAULT_SORT_FIELD = "date"


def _unique_statuses(value: object) -> object:
    if value is None:
        return []
    if isinstance(value, (str, StatusFilter)):
        value = [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        seen: list = []
        for item in value:
            if item not in seen:
                seen.append(item)
        return seen
    return value


def _check_per_page(value: int) -> int:
    if value > settings.portal_max_per_page:
        raise ValueError(f"per_page must be at most {settings.portal_max_per_page}")
    return value


def _check_sort_field(value: str) -> str:
    if value not in SORTABLE_FIELDS:
        raise ValueError(f"sort_field must be one of: {', '.join(SORTABLE_FIELDS)}")
    return value


def _default_per_page() -> int:
    return settings.portal_default_per_page


class ListingQuery(BaseModel):
    """Immutable description of one listing request."""

    model_config = ConfigDict(frozen=True)

    status: frozenset[StatusFilter] = Field(default_factory=frozenset)
    sort_field: str = DEFAULT_SORT_FIELD
    sort_asc: bool = False
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default_factory=_default_per_page, ge=1)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return _unique_statuses(value)

    @field_validator("sort_field")
    @classmethod
    def allowed_sort_field(cls, value: str) -> str:
        return _check_sort_field(value)

    @field_validator("per_page")
    @classmethod
    def limit_per_page(cls, value: int) -> int:
        return _check_per_page(value)

    @property
    def sort_direction(self) -> str:
        return "asc" if self.sort_asc else "desc"


class InvoiceRow(BaseModel):
    """One table row, read straight off an ``Invoice``."""

    model_config = ConfigDict(from_attributes=True)

    hashed_id: str
    number: Optional[str] = None
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    partial_due_date: Optional[dt.date] = None
    amount: Decimal
    balance: Decimal
    currency: str
    status_id: InvoiceStatus
    is_overdue: bool = False
    is_archived: bool = False


class InvoicePage(BaseModel):
    items: List[InvoiceRow]
    total: int
    page: int
    per_page: int
    last_page: int
    has_more: bool
    next_page: Optional[int] = None
    prev_page: Optional[int] = None

    @property
    def hashed_ids(self) -> List[str]:
        return [row.hashed_id for row in self.items]


class TableState(BaseModel):
    """Per-session state of the invoices table, round-tripped by the portal on every request."""

    status: List[StatusFilter] = Field(default_factory=list)
    sort_field: str = DEFAULT_SORT_FIELD
    sort_asc: bool = False
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default_factory=_default_per_page, ge=1)
    selected_invoice_ids: List[str] = Field(default_factory=list)
    all_selected: bool = False
    mode: ListingMode = ListingMode.TABLE

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return _unique_statuses(value)

    @field_validator("sort_field")
    @classmethod
    def allowed_sort_field(cls, value: str) -> str:
        return _check_sort_field(value)

    @field_validator("per_page")
    @classmethod
    def limit_per_page(cls, value: int) -> int:
        return _check_per_page(value)

    def listing_query(self) -> ListingQuery:
        return ListingQuery(
            status=frozenset(self.status),
            sort_field=self.sort_field,
            sort_asc=self.sort_asc,
            page=self.page,
            per_page=self.per_page,
        )


class TableChanges(BaseModel):
    """Fields the user changed since the last render. Unset fields are left alone."""

    status: Optional[List[StatusFilter]] = None
    sort_field: Optional[str] = None
    sort_asc: Optional[bool] = None
    page: Optional[int] = Field(default=None, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1)
    selected_invoice_ids: Optional[List[str]] = None
    all_selected: Optional[bool] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> object:
        return None if value is None else _unique_statuses(value)

    @field_validator("sort_field")
    @classmethod
    def allowed_sort_field(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_sort_field(value)

    @field_validator("per_page")
    @classmethod
    def limit_per_page(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else _check_per_page(value)


class TableRequest(BaseModel):
    state: TableState = Field(default_factory=TableState)
    changes: TableChanges = Field(default_factory=TableChanges)


class SortRequest(BaseModel):
    state: TableState = Field(default_factory=TableState)
    field: str


class TableView(BaseModel):
    state: TableState
    invoices: InvoicePage
    errors: Dict[str, List[str]] = Field(default_factory=dict)
    gateway_available: bool = False
