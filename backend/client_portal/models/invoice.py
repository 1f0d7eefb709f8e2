from __future__ import annotations

import re
import datetime as dt
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from client_portal.core.security import generate_public_id
from client_portal.db.base import Base, IDMixin, TimestampMixin
from client_portal.models.enums import InvoiceStatus


def safe_filename(value: str, fallback: str = "invoice") -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", value or "")
    cleaned = re.sub(r"\.{2,}", "", cleaned).strip("_.")
    return cleaned or fallback


class Invoice(IDMixin, TimestampMixin, Base):
    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_client_status", "client_id", "status_id"),
    )

    hashed_id: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
        index=True,
        default=generate_public_id,
    )
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    status_id: Mapped[int] = mapped_column(Integer, default=int(InvoiceStatus.DRAFT), nullable=False, index=True)

    date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True, index=True)
    due_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True, index=True)
    partial_due_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)

    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    partial: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)

    po_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    public_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    is_proforma: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    archived_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    client: Mapped["Client"] = relationship()
    company: Mapped["Company"] = relationship()

    @property
    def status(self) -> InvoiceStatus:
        return InvoiceStatus(self.status_id)

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def is_overdue(self) -> bool:
        if self.status not in (InvoiceStatus.SENT, InvoiceStatus.PARTIAL):
            return False
        today = dt.datetime.now(dt.timezone.utc).date()
        return any(value is not None and value <= today for value in (self.due_date, self.partial_due_date))

    def file_name(self, extension: str = "pdf") -> str:
        base = safe_filename(self.number or "", fallback=f"invoice_{self.hashed_id}")
        return f"{base}.{extension}"

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Invoice id={self.id} number={self.number} status={self.status_id}>"
