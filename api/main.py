"""
Treasury Withdrawal API.

FastAPI application exposing the withdrawal strategies,
treasury status and earnings credit.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routers import treasury, withdrawals
from withdrawal_engine.config import WithdrawalEngineConfig
from withdrawal_engine.service import NOT_FOUND_MESSAGE, WithdrawalService

logger = logging.getLogger(__name__)


def create_app(service: Optional[WithdrawalService] = None) -> FastAPI:
    """
    Build the API around a withdrawal service.

    Without a service, one is built from the environment.
    The service is started and stopped with the application.
    """
    if service is None:
        service = WithdrawalService.from_config(WithdrawalEngineConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(
        title="Treasury Withdrawal API",
        description="Balance-aware treasury withdrawals through named strategies.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(treasury.router)
    app.include_router(withdrawals.router)

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        # Unknown paths and unsupported methods share one body
        if exc.status_code in (404, 405):
            return JSONResponse(status_code=404, content={"error": NOT_FOUND_MESSAGE})
        return await http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        fields = [str(part) for error in exc.errors() for part in error.get("loc", ())]
        errors = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        ]
        error_code = (
            "INVALID_DESTINATION"
            if {"destination", "auxDestination"} & set(fields)
            else "INVALID_AMOUNT"
        )
        logger.warning(f"Rejected malformed request to {request.url.path}: {errors}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Malformed request body.",
                "data": {"success": False, "errorCode": error_code, "errors": errors},
            },
        )

    return app
