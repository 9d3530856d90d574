"""
Ledger HTTP Service

Exposes the channel ledger over two endpoints:

    GET  /api/channels/{account}/transactions -> 200, entries oldest first
    POST /api/channels/transfer               -> 200, {fromUserLog, toUserLog}

Error bodies are {"error": <message>, "code": <machine code>}:
- 400 invalid_request   body is not a JSON object
- 400 invalid_amount    amount missing, non-numeric or not positive
- 400 invalid_accounts  unknown account, or payer == payee
- 500 storage_failure   the pair could not be persisted (nothing applied)
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from echopay.config import LedgerServiceSettings, get_settings
from echopay.models.ledger import CHANNEL
from echopay.orchestrator import (
    LedgerComponents,
    create_app_components,
    seed_demo_transfer,
)
from echopay.services.storage import StorageError
from echopay.validation import TransferValidationError


logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse({"error": message, "code": code}, status_code=status_code)


def create_ledger_app(
    components: Optional[LedgerComponents] = None,
    settings: Optional[LedgerServiceSettings] = None,
) -> FastAPI:
    """
    Create the ledger FastAPI application.

    Args:
        components: Pre-built ledger components (tests); built from
                    settings otherwise
        settings: Ledger settings; loaded from the environment if omitted
    """
    settings = settings or get_settings().ledger
    components = components or create_app_components(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.seed_demo_data and await seed_demo_transfer(components):
            logger.info("demo_transfer_seeded")
        yield

    app = FastAPI(title="EchoPay Ledger", lifespan=lifespan)
    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(TransferValidationError)
    async def handle_validation_error(request: Request, exc: TransferValidationError):
        return _error(400, str(exc), exc.code)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return _error(500, "failed to record transfer", "storage_failure")

    @app.get("/health")
    async def health():
        return {"status": "ok", "channel": CHANNEL}

    @app.get("/api/channels/{account}/transactions")
    async def list_transactions(account: str):
        entries = await components.channel_query.list_for(account)
        return JSONResponse([entry.to_wire() for entry in entries])

    @app.post("/api/channels/transfer")
    async def transfer(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return _error(400, "invalid request body", "invalid_request")
        if not isinstance(body, dict):
            return _error(400, "invalid request body", "invalid_request")

        receipt = await components.transfer_service.transfer(
            body.get("fromUser"),
            body.get("toUser"),
            body.get("amount"),
        )
        return JSONResponse(receipt.to_wire())

    return app
