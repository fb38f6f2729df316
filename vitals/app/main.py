from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI

from vitals.app.routes.sync_jobs import router as sync_jobs_router
from vitals.core import settings
from vitals.core.sync_service import PortfolioSyncService, build_default_service
from vitals.db.init_db import init_db

load_dotenv()

log = logging.getLogger(__name__)


def create_app(service: PortfolioSyncService | None = None, *, init_database: bool = True) -> FastAPI:
    app = FastAPI(title="Vitals portfolio sync", version="0.1.0")
    app.state.sync_service = service if service is not None else build_default_service()

    @app.on_event("startup")
    def _startup() -> None:
        if init_database:
            init_db()
        app.state.sync_service.start()
        log.info("Portfolio sync service started")

    @app.on_event("shutdown")
    def _shutdown() -> None:
        timeout = settings.shutdown_timeout_s()
        if not app.state.sync_service.shutdown(wait=True, timeout=timeout):
            log.warning("Portfolio sync worker still busy after %.0fs; exiting anyway", timeout)

    app.include_router(sync_jobs_router)
    return app


app = create_app()
