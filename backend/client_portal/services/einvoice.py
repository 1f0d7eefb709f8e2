"""Structured e-invoice documents (UBL 2.1 Invoice subset)."""

from __future__ import annotations

from decimal import Decimal
from xml.etree import ElementTree as ET

from client_portal.models.invoice import Invoice


UBL_NS = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
CAC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
CBC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

ET.register_namespace("", UBL_NS)
ET.register_namespace("cac", CAC_NS)
ET.register_namespace("cbc", CBC_NS)

# UNCL1001 commercial invoice
INVOICE_TYPE_CODE = "380"


def _cbc(parent: ET.Element, tag: str, text: object, **attrs: str) -> ET.Element:
    element = ET.SubElement(parent, f"{{{CBC_NS}}}{tag}", attrs)
    element.text = str(text)
    return element


def _cac(parent: ET.Element, tag: str) -> ET.Element:
    return ET.SubElement(parent, f"{{{CAC_NS}}}{tag}")


def _party(parent: ET.Element, tag: str, name: str) -> None:
    party = _cac(_cac(parent, tag), "Party")
    _cbc(_cac(party, "PartyName"), "Name", name)


def _amount(value: Decimal | None) -> str:
    return f"{Decimal(value or Decimal('0.00')).quantize(Decimal('0.01'))}"


class EInvoiceRenderer:
    def render(self, invoice: Invoice) -> bytes:
        root = ET.Element(f"{{{UBL_NS}}}Invoice")
        _cbc(root, "CustomizationID", "urn:cen.eu:en16931:2017")
        _cbc(root, "ID", invoice.number or invoice.hashed_id)
        if invoice.date:
            _cbc(root, "IssueDate", invoice.date.isoformat())
        if invoice.due_date:
            _cbc(root, "DueDate", invoice.due_date.isoformat())
        _cbc(root, "InvoiceTypeCode", INVOICE_TYPE_CODE)
        if invoice.public_notes:
            _cbc(root, "Note", invoice.public_notes)
        _cbc(root, "DocumentCurrencyCode", invoice.currency)
        if invoice.po_number:
            _cbc(_cac(root, "OrderReference"), "ID", invoice.po_number)

        _party(root, "AccountingSupplierParty", invoice.company.name if invoice.company else "")
        _party(root, "AccountingCustomerParty", invoice.client.name if invoice.client else "")

        paid = Decimal(invoice.amount or 0) - Decimal(invoice.balance or 0)
        totals = _cac(root, "LegalMonetaryTotal")
        _cbc(totals, "TaxInclusiveAmount", _amount(invoice.amount), currencyID=invoice.currency)
        _cbc(totals, "PrepaidAmount", _amount(paid), currencyID=invoice.currency)
        _cbc(totals, "PayableAmount", _amount(invoice.balance), currencyID=invoice.currency)

        return ET.tostring(root, encoding="utf-8", xml_declaration=True)
