from __future__ import annotations

import logging
import time
import zipfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from client_portal.core.errors import EmptySelection, ExportFailed, SelectionTooLarge
from client_portal.core.i18n import translate
from client_portal.core.settings import settings
from client_portal.models.invoice import Invoice
from client_portal.services.einvoice import EInvoiceRenderer
from client_portal.services.invoice_pdf import PdfRenderer
from client_portal.services.temp_files import TempFileStore

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
ZIP_MEDIA_TYPE = "application/zip"


@dataclass
class ExportResult:
    """One downloadable artifact.

    A single PDF is held in ``content``; an archive lives at ``path`` and is
    owned by this result until ``close`` (or the end of ``iter_bytes``)
    removes it.
    """

    filename: str
    media_type: str
    content: Optional[bytes] = None
    path: Optional[Path] = None
    store: Optional[TempFileStore] = None
    invoice_count: int = 0
    chunk_size: int = field(default_factory=lambda: settings.export_chunk_size)
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def kind(self) -> str:
        return "archive" if self.path is not None else "pdf"

    def iter_bytes(self) -> Iterator[bytes]:
        if self.path is None:
            if self.content:
                yield self.content
            return
        try:
            with self.path.open("rb") as handle:
                while True:
                    chunk = handle.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.path is not None and self.store is not None:
            self.store.remove(self.path)

    def __enter__(self) -> "ExportResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _unique_name(name: str, used: set[str]) -> str:
    candidate = name
    if candidate not in used:
        used.add(candidate)
        return candidate
    stem, dot, extension = name.rpartition(".")
    if not dot:
        stem, extension = name, ""
    idx = 2
    while True:
        candidate = f"{stem}_{idx}.{extension}" if extension else f"{stem}_{idx}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        idx += 1


def archive_filename(locale: Optional[str] = None, *, today: Optional[date] = None) -> str:
    label = translate("invoices", locale).replace(" ", "_")
    return f"{(today or date.today()).isoformat()}_{label}.zip"


class ExportPipeline:
    """Turns a resolved selection into a PDF download or a ZIP archive.

    Rendering is sequential: every entry is appended by the one archive
    writer owned by the export.
    """

    def __init__(
        self,
        pdf_renderer: Optional[PdfRenderer] = None,
        einvoice_renderer: Optional[EInvoiceRenderer] = None,
        temp_store: Optional[TempFileStore] = None,
        *,
        max_invoices: Optional[int] = None,
        seconds_per_invoice: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pdf_renderer = pdf_renderer or PdfRenderer()
        self.einvoice_renderer = einvoice_renderer or EInvoiceRenderer()
        self.temp_store = temp_store or TempFileStore()
        self.max_invoices = settings.export_max_invoices if max_invoices is None else max_invoices
        self.seconds_per_invoice = (
            settings.export_seconds_per_invoice if seconds_per_invoice is None else seconds_per_invoice
        )
        if self.max_invoices < 1:
            raise ValueError("max_invoices must be at least 1")
        if self.seconds_per_invoice <= 0:
            raise ValueError("seconds_per_invoice must be positive")
        self.clock = clock

    def export(
        self,
        invoices: Sequence[Invoice],
        *,
        locale: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ExportResult:
        invoices = list(invoices)
        if not invoices:
            raise EmptySelection(translate("no_items_selected", locale))
        if len(invoices) > self.max_invoices:
            raise SelectionTooLarge(translate("selection_too_large", locale, count=self.max_invoices))

        if len(invoices) == 1:
            return self._export_single(invoices[0], locale=locale)
        return self._export_archive(invoices, locale=locale, today=today)

    def _export_single(self, invoice: Invoice, *, locale: Optional[str]) -> ExportResult:
        try:
            content = self.pdf_renderer.render(invoice)
        except Exception as exc:
            logger.exception("invoice_pdf_render_failed", extra={"invoice_count": 1})
            raise ExportFailed(translate("export_failed", locale)) from exc
        return ExportResult(
            filename=invoice.file_name(),
            media_type=PDF_MEDIA_TYPE,
            content=content,
            invoice_count=1,
        )

    def _export_archive(
        self,
        invoices: Sequence[Invoice],
        *,
        locale: Optional[str],
        today: Optional[date],
    ) -> ExportResult:
        path = self.temp_store.create(suffix=".zip")
        deadline = self.clock() + self.seconds_per_invoice * len(invoices)
        try:
            with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
                used_names: set[str] = set()
                for invoice in invoices:
                    if self.clock() > deadline:
                        raise TimeoutError(f"export exceeded {self.seconds_per_invoice}s per invoice")

                    if invoice.client.e_invoicing_enabled:
                        xml = self.einvoice_renderer.render(invoice)
                        archive.writestr(_unique_name(invoice.file_name("xml"), used_names), xml)

                    pdf = self.pdf_renderer.render_raw(invoice)
                    archive.writestr(_unique_name(invoice.file_name(), used_names), pdf)
        except Exception as exc:
            self.temp_store.remove(path)
            logger.exception(
                "invoice_archive_failed",
                extra={"export_kind": "archive", "invoice_count": len(invoices)},
            )
            raise ExportFailed(translate("export_failed", locale)) from exc

        return ExportResult(
            filename=archive_filename(locale, today=today),
            media_type=ZIP_MEDIA_TYPE,
            path=path,
            store=self.temp_store,
            invoice_count=len(invoices),
        )
