from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session, selectinload

from client_portal.core.logging import bind_request_context
from client_portal.core.security import decode_token
from client_portal.db.session import get_db
from client_portal.models.company import Client, ClientContact

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("security")


def _log_auth_event(event: str, *, request: Request, extra: Optional[dict] = None) -> None:
    payload = {
        "event": event,
        "request_id": request.headers.get("x-request-id"),
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else None,
    }
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def get_current_contact(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
) -> ClientContact:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        _log_auth_event("token_missing", request=request)
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
        raw_contact_id: Optional[int | str] = payload.get("sub")
        if raw_contact_id is None:
            _log_auth_event("token_missing_sub", request=request)
            raise credentials_exception
        contact_id = int(raw_contact_id)
    except (JWTError, ValueError, TypeError):
        _log_auth_event("token_invalid", request=request)
        raise credentials_exception

    contact = (
        db.query(ClientContact)
        .options(selectinload(ClientContact.client).selectinload(Client.company))
        .filter(ClientContact.id == contact_id)
        .first()
    )
    if not contact or not contact.is_active or contact.client.is_deleted:
        _log_auth_event("contact_inactive_or_missing", request=request, extra={"contact_id": contact_id})
        raise credentials_exception
    bind_request_context(request, contact_id=contact.id, client_id=contact.client_id)
    return contact
