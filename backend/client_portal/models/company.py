"""
Company, client and client contact models.

A company owns many clients; each client is reached through one or more
contacts who sign in to the portal.  Settings are stored as JSON on both
the company and the client: a client value overrides the company value
for the same key.
"""

from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from client_portal.db.base import Base, IDMixin, TimestampMixin
from client_portal.models.enums import PortalModule


SETTING_DEFAULTS: dict[str, Any] = {
    "enable_e_invoice": False,
    "locale": None,
    "currency": "USD",
    "payment_gateways": [],
}


class Company(IDMixin, TimestampMixin, Base):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    enabled_modules: Mapped[int] = mapped_column(Integer, default=int(PortalModule.INVOICES), nullable=False)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    clients: Mapped[List["Client"]] = relationship(back_populates="company")

    def has_module(self, module: PortalModule) -> bool:
        return bool(PortalModule(self.enabled_modules or 0) & module)


class Client(IDMixin, TimestampMixin, Base):
    __tablename__ = "clients"

    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    settings: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    company: Mapped[Company] = relationship(back_populates="clients")
    contacts: Mapped[List["ClientContact"]] = relationship(back_populates="client", cascade="all, delete-orphan")

    def get_setting(self, key: str) -> Any:
        client_settings = self.settings or {}
        if client_settings.get(key) is not None:
            return client_settings[key]
        company_settings = (self.company.settings if self.company else None) or {}
        if company_settings.get(key) is not None:
            return company_settings[key]
        return SETTING_DEFAULTS.get(key)

    @property
    def e_invoicing_enabled(self) -> bool:
        return bool(self.get_setting("enable_e_invoice"))


class ClientContact(IDMixin, TimestampMixin, Base):
    __tablename__ = "client_contacts"

    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    client: Mapped[Client] = relationship(back_populates="contacts")
    company: Mapped[Company] = relationship()

    @property
    def full_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) or self.email
