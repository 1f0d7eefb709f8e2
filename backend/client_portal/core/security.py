from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from client_portal.core.settings import settings


_PUBLIC_ID_CHARS = string.ascii_letters + string.digits
_PUBLIC_ID_LENGTH = 10


def generate_public_id(length: int = _PUBLIC_ID_LENGTH) -> str:
    """Opaque identifier exposed to portal contacts instead of the primary key."""
    return "".join(secrets.choice(_PUBLIC_ID_CHARS) for _ in range(length))


def _expiry_delta(expires_delta: Optional[timedelta]) -> timedelta:
    if expires_delta is not None:
        return expires_delta
    minutes = settings.access_token_expire_minutes
    if minutes <= 0:
        minutes = 60
    return timedelta(minutes=minutes)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.setdefault("iat", now)
    to_encode.update({"exp": now + _expiry_delta(expires_delta)})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.algorithm)


def create_contact_token(contact_id: int, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": str(contact_id), "scope": "client_portal"}, expires_delta)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.algorithm])
