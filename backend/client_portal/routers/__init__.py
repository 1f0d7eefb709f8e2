"""Router registry for the client portal API."""
from __future__ import annotations

from fastapi import FastAPI

from client_portal.routers.invoices import router as invoices_router

ALL_ROUTERS = (invoices_router,)


def include_all_routers(app: FastAPI) -> None:
    for router in ALL_ROUTERS:
        app.include_router(router)
