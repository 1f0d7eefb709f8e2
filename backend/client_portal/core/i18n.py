"""User-visible strings for the client portal, per locale.

Locales fall back to their language (``fr_CA`` -> ``fr``) and then to
English; unknown keys render as the key itself.
"""

from __future__ import annotations

from typing import Optional

from client_portal.core.settings import settings


TRANSLATIONS: dict[str, dict[str, str]] = {
    "en": {
        "invoices": "Invoices",
        "no_items_selected": "No items selected.",
        "export_failed": "Export failed, please retry.",
        "selection_too_large": "Too many invoices selected, please select at most :count.",
        "invalid_sort_field": "Invoices cannot be sorted by this column.",
        "invalid_selection": "The selection is not valid.",
        "invoice": "Invoice",
        "invoice_date": "Invoice Date",
        "due_date": "Due Date",
        "amount": "Amount",
        "balance_due": "Balance Due",
        "po_number": "PO Number",
    },
    "de": {
        "invoices": "Rechnungen",
        "no_items_selected": "Keine Einträge ausgewählt.",
        "export_failed": "Export fehlgeschlagen, bitte erneut versuchen.",
        "invoice": "Rechnung",
        "invoice_date": "Rechnungsdatum",
        "due_date": "Fälligkeitsdatum",
        "amount": "Betrag",
        "balance_due": "Offener Betrag",
    },
    "fr": {
        "invoices": "Factures",
        "no_items_selected": "Aucun élément sélectionné.",
        "export_failed": "L'export a échoué, veuillez réessayer.",
        "invoice": "Facture",
        "invoice_date": "Date de facture",
        "due_date": "Date d'échéance",
        "amount": "Montant",
        "balance_due": "Solde dû",
    },
    "es": {
        "invoices": "Facturas",
        "no_items_selected": "No hay elementos seleccionados.",
        "invoice": "Factura",
        "due_date": "Fecha de vencimiento",
    },
    "pt_BR": {
        "invoices": "Faturas",
        "no_items_selected": "Nenhum item selecionado.",
    },
}


def _candidates(locale: Optional[str]) -> list[str]:
    normalized = (locale or settings.default_locale or "en").replace("-", "_")
    candidates = [normalized]
    language = normalized.split("_", 1)[0]
    if language != normalized:
        candidates.append(language)
    if "en" not in candidates:
        candidates.append("en")
    return candidates


def translate(key: str, locale: Optional[str] = None, **replacements: object) -> str:
    text = key
    for candidate in _candidates(locale):
        table = TRANSLATIONS.get(candidate)
        if table and key in table:
            text = table[key]
            break
    for name, value in replacements.items():
        text = text.replace(f":{name}", str(value))
    return text
