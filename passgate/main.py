# passgate/main.py
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.requests import Request

from passgate.api.v1.router import api_router
from passgate.core.config import settings
from passgate.core.errors import IssuanceError, StoreUnavailable
from passgate.core.limits import BodySizeLimitMiddleware
from passgate.core.logging import setup_logging
from passgate.db.bootstrap import run_migrations

setup_logging()
logger = logging.getLogger("passgate.main")

api = FastAPI(
    title="passgate - Passcode & QR Access Validation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    swagger_ui_parameters={"displayRequestDuration": True, "persistAuthorization": True},
)

api.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)

# métricas /metrics (Prometheus)
Instrumentator().instrument(api).expose(api, include_in_schema=False, should_gzip=True)

api.include_router(api_router)

@api.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}

@api.on_event("startup")
def startup():
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()

# Respostas de erro nunca carregam texto de exceção nem eco da entrada.
@api.exception_handler(RequestValidationError)
def handle_malformed(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"code": "MALFORMED_REQUEST", "message": "Malformed request."})

@api.exception_handler(StoreUnavailable)
def handle_store_unavailable(request: Request, exc: StoreUnavailable):
    logger.error("credential store unavailable on %s", request.url.path, exc_info=exc.__cause__ or exc)
    return JSONResponse(status_code=503, content={"code": "STORE_UNAVAILABLE", "message": "Service unavailable."})

@api.exception_handler(IssuanceError)
def handle_issuance_error(request: Request, exc: IssuanceError):
    logger.error("passcode issuance failed: %s", exc)
    return JSONResponse(status_code=503, content={"code": "ISSUANCE_FAILED", "message": "Service unavailable."})

@api.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    # log já sai no console; aqui padronizamos saída
    logger.exception("unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": "Internal error."})
