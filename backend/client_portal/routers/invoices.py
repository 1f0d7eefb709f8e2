from __future__ import annotations

import json
import logging
import time
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from client_portal.core.deps import get_current_contact
from client_portal.core.errors import (
    EmptySelection,
    ExportFailed,
    Forbidden,
    InvalidQuery,
    InvalidSelection,
    NoItemsSelected,
    PortalError,
    SelectionTooLarge,
)
from client_portal.core.logging import bind_request_context
from client_portal.core.observability import record_export
from client_portal.db.session import get_db
from client_portal.models.company import ClientContact
from client_portal.schemas.invoice import SortRequest, TableRequest, TableState, TableView
from client_portal.services.export import ExportPipeline
from client_portal.services.table import InvoiceTableController

router = APIRouter(prefix="/api/portal/invoices", tags=["portal-invoices"])
logger = logging.getLogger(__name__)


def get_export_pipeline() -> ExportPipeline:
    return ExportPipeline()


def _request_id(request: Request | None) -> Optional[str]:
    if not request:
        return None
    return request.headers.get("x-request-id")


def _log_portal_event(
    event: str,
    *,
    request: Request | None,
    contact: ClientContact,
    extra: Optional[dict] = None,
) -> None:
    payload = {
        "event": event,
        "contact_id": contact.id,
        "client_id": contact.client_id,
        "request_id": _request_id(request),
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def _raise_http(exc: PortalError) -> None:
    if isinstance(exc, Forbidden):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc
    if isinstance(exc, (InvalidQuery, InvalidSelection)):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={exc.field or "message": [exc.message]},
        ) from exc
    if isinstance(exc, (EmptySelection, SelectionTooLarge)):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"message": [exc.message]}) from exc
    if isinstance(exc, ExportFailed):
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message) from exc
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc


def _content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode("ascii") or "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _run_action(
    action: str,
    *,
    state: TableState,
    request: Request,
    db: Session,
    contact: ClientContact,
    pipeline: ExportPipeline,
) -> TableView:
    try:
        controller = InvoiceTableController(db, contact, state, pipeline=pipeline)
        getattr(controller, action)()
    except NoItemsSelected as exc:
        controller.add_error(exc.field or "message", exc.message)
    except PortalError as exc:
        _log_portal_event(f"{action}_rejected", request=request, contact=contact, extra={"reason": type(exc).__name__})
        _raise_http(exc)
    else:
        _log_portal_event(
            action,
            request=request,
            contact=contact,
            extra={"selected": len(controller.selection), "mode": controller.state.mode.value},
        )
    return controller.view()


@router.post("/table", response_model=TableView)
def render_table(
    payload: TableRequest,
    db: Session = Depends(get_db),
    current_contact: ClientContact = Depends(get_current_contact),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
) -> TableView:
    try:
        controller = InvoiceTableController(db, current_contact, payload.state, pipeline=pipeline)
        controller.apply(payload.changes)
        return controller.view()
    except PortalError as exc:
        _raise_http(exc)


@router.post("/sort", response_model=TableView)
def sort_table(
    payload: SortRequest,
    db: Session = Depends(get_db),
    current_contact: ClientContact = Depends(get_current_contact),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
) -> TableView:
    try:
        controller = InvoiceTableController(db, current_contact, payload.state, pipeline=pipeline)
        controller.sort_by(payload.field)
        return controller.view()
    except PortalError as exc:
        _raise_http(exc)


@router.post("/start-download", response_model=TableView)
def start_download(
    state: TableState,
    request: Request,
    db: Session = Depends(get_db),
    current_contact: ClientContact = Depends(get_current_contact),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
) -> TableView:
    return _run_action("start_download", state=state, request=request, db=db, contact=current_contact, pipeline=pipeline)


@router.post("/start-payment", response_model=TableView)
def start_payment(
    state: TableState,
    request: Request,
    db: Session = Depends(get_db),
    current_contact: ClientContact = Depends(get_current_contact),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
) -> TableView:
    return _run_action("start_payment", state=state, request=request, db=db, contact=current_contact, pipeline=pipeline)


@router.post("/download")
def download(
    state: TableState,
    request: Request,
    db: Session = Depends(get_db),
    current_contact: ClientContact = Depends(get_current_contact),
    pipeline: ExportPipeline = Depends(get_export_pipeline),
) -> StreamingResponse:
    started = time.perf_counter()
    try:
        controller = InvoiceTableController(db, current_contact, state, pipeline=pipeline)
        result = controller.download()
    except PortalError as exc:
        kind = "archive" if len(state.selected_invoice_ids) > 1 else "pdf"
        bind_request_context(request, export_kind=kind)
        record_export(kind, type(exc).__name__, time.perf_counter() - started)
        _log_portal_event("download_failed", request=request, contact=current_contact, extra={"reason": type(exc).__name__})
        _raise_http(exc)

    record_export(result.kind, "ok", time.perf_counter() - started)
    bind_request_context(request, export_kind=result.kind, invoice_count=result.invoice_count)
    _log_portal_event(
        "download",
        request=request,
        contact=current_contact,
        extra={"kind": result.kind, "invoice_count": result.invoice_count, "filename": result.filename},
    )
    return StreamingResponse(
        result.iter_bytes(),
        media_type=result.media_type,
        headers={
            "Content-Disposition": _content_disposition(result.filename),
            "X-Portal-Mode": controller.state.mode.value,
        },
        background=BackgroundTask(result.close),
    )
