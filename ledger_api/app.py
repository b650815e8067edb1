"""
HTTP API for the ledger.

    app = create_app()                      # engine from DATABASE_URL
    app = create_app(session_factory=f)     # tests

Routes:
    /accounts           chart of accounts, account statements
    /belege             receipts and vouchers
    /invoices           outgoing invoices
    /orders             customer orders
    /journal-entries    manual entries and stornos
    /reports/{kind}     trial-balance, profit-loss, balance-sheet,
                        journal-export, tax-report
"""

import os
from pathlib import Path
from uuid import uuid4

from fastapi import FastAPI, Request
from sqlalchemy.orm import Session, sessionmaker

from ledger_api.errors import register_error_handlers
from ledger_api.files import FileStore, LocalFileStore
from ledger_api.routes import accounts, documents, journal, reports
from ledger_config import LedgerConfig, get_active_config
from ledger_engines.tax import TaxEngine
from ledger_kernel import __version__
from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import LogContext, configure_logging, get_logger
from ledger_modules.reporting.config import ReportingConfig

logger = get_logger("api.app")

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    ledger_config: LedgerConfig | None = None,
    clock: Clock | None = None,
    file_store: FileStore | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Without a session factory the engine is created from ``DATABASE_URL``
    and the schema is created if missing.
    """
    configure_logging()
    register_immutability_listeners()

    if session_factory is None:
        init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
        create_tables()
        session_factory = get_session_factory()

    config = ledger_config or get_active_config()

    app = FastAPI(title="Beleg Ledger", version=__version__)
    app.state.session_factory = session_factory
    app.state.ledger_config = config
    app.state.clock = clock or SystemClock()
    app.state.tax_engine = TaxEngine.from_definitions(config.tax_keys)
    app.state.reporting_config = ReportingConfig.from_dict(config.reporting, currency=config.currency)
    app.state.file_store = file_store or LocalFileStore(
        Path(os.environ.get("LEDGER_UPLOAD_DIR", "uploads"))
    )

    @app.middleware("http")
    async def bind_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
        with LogContext.bind(correlation_id=correlation_id):
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    register_error_handlers(app)
    app.include_router(accounts.router)
    app.include_router(documents.belege)
    app.include_router(documents.invoices)
    app.include_router(documents.orders)
    app.include_router(journal.router)
    app.include_router(reports.router)

    logger.info(
        "api_created",
        extra={"config_id": config.config_id, "config_version": config.version},
    )
    return app
