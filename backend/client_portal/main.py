from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

import client_portal.models  # noqa: F401
from client_portal.core.logging import RequestLoggingMiddleware, configure_logging
from client_portal.core.observability import PrometheusMiddleware, metrics_endpoint
from client_portal.core.settings import settings
from client_portal.db.session import get_db
from client_portal.routers import include_all_routers

configure_logging(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.project_name, version=settings.project_version)

# Always allow localhost during development (Vite often changes ports).
allow_origin_regex = None
if not settings.is_production:
    allow_origin_regex = r"^http://(localhost|127\.0\.0\.1)(:\d+)?$"
else:
    if any(origin.strip() == "*" for origin in settings.allow_origins):
        raise RuntimeError("ALLOW_ORIGINS cannot include '*' in production")
    if settings.jwt_secret.startswith("change_me"):
        raise RuntimeError("JWT_SECRET must be set in production")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id", "Accept"],
    expose_headers=["Content-Disposition", "X-Request-Id", "X-Portal-Mode"],
)

# Observability middleware
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["observability"], include_in_schema=False)

include_all_routers(app)


@app.get("/healthz", tags=["health"])
def healthcheck(db: Session = Depends(get_db)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - runtime health check
        logger.error("healthcheck_failed", exc_info=True)
        raise HTTPException(status_code=503, detail="Service unavailable") from exc

    export_dir = settings.ensure_export_tmp_dir()
    return {"status": "ok", "database": "ok", "export_tmp_dir": str(export_dir)}
