from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from client_portal.core.security import create_contact_token
from client_portal.db.base import Base
from client_portal.db.session import get_db
from client_portal.main import app
from client_portal.models.company import Client, ClientContact, Company
from client_portal.models.enums import InvoiceStatus, PortalModule
from client_portal.models.invoice import Invoice
from client_portal.routers.invoices import get_export_pipeline
from client_portal.services.export import ExportPipeline
from client_portal.services.temp_files import TempFileStore


def utc_today():
    return datetime.now(timezone.utc).date()


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def company(db):
    company = Company(name="Acme Billing", enabled_modules=int(PortalModule.INVOICES), settings={})
    db.add(company)
    db.commit()
    return company


@pytest.fixture()
def portal_client(db, company):
    client = Client(company_id=company.id, name="Globex", number="C-0001", settings={})
    db.add(client)
    db.commit()
    return client


@pytest.fixture()
def contact(db, company, portal_client):
    contact = ClientContact(
        client_id=portal_client.id,
        company_id=company.id,
        email="ap@globex.example",
        first_name="Ada",
        is_active=True,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


@pytest.fixture()
def make_invoice(db, company, portal_client):
    numbers = count(1)

    def _make(
        status: InvoiceStatus = InvoiceStatus.SENT,
        *,
        client: Client | None = None,
        days_ago: int = 0,
        due_in_days: int | None = 30,
        partial_due_in_days: int | None = None,
        amount: str = "100.00",
        balance: str | None = None,
        number: str | None = None,
        **extra,
    ) -> Invoice:
        today = utc_today()
        owner = client or portal_client
        invoice = Invoice(
            company_id=owner.company_id,
            client_id=owner.id,
            number=number or f"INV-{next(numbers):04d}",
            status_id=int(status),
            date=today - timedelta(days=days_ago),
            due_date=today + timedelta(days=due_in_days) if due_in_days is not None else None,
            partial_due_date=(
                today + timedelta(days=partial_due_in_days) if partial_due_in_days is not None else None
            ),
            amount=Decimal(amount),
            balance=Decimal(balance if balance is not None else amount),
            **extra,
        )
        db.add(invoice)
        db.commit()
        return invoice

    return _make


@pytest.fixture()
def temp_store(tmp_path):
    return TempFileStore(tmp_path / "exports")


@pytest.fixture()
def pipeline(temp_store):
    return ExportPipeline(temp_store=temp_store)


@pytest.fixture()
def auth_headers(contact):
    return {"Authorization": f"Bearer {create_contact_token(contact.id)}"}


@pytest.fixture()
def api(db, pipeline):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_export_pipeline] = lambda: pipeline

    client_instance = TestClient(app)
    try:
        yield client_instance
    finally:
        client_instance.close()
        app.dependency_overrides.clear()
