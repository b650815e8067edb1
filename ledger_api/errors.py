"""
Error mapping for the HTTP API.

Every error body is ``{"message", "kind", "step"?}``.  Ledger errors keep
their own status code; request validation is a 422 VALIDATION_ERROR;
storage failures are the only 500s.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ledger_kernel.exceptions import LedgerError
from ledger_kernel.logging_config import get_logger

logger = get_logger("api.errors")


def error_body(message: str, kind: str, step: str | None = None) -> dict:
    body = {"message": message, "kind": kind}
    if step is not None:
        body["step"] = step
    return body


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    logger.info(
        "request_rejected",
        extra={
            "path": request.url.path,
            "kind": exc.code,
            "status_code": exc.http_status,
            "step": exc.step,
        },
    )
    return JSONResponse(
        status_code=exc.http_status,
        content=error_body(exc.message, exc.code, exc.step),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=error_body(problems or "Invalid request", "VALIDATION_ERROR", "validate"),
    )


async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "storage_error",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=error_body("Storage failure", "STORAGE_ERROR"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
