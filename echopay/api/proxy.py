"""
Reverse Proxy

Forwards the two ledger endpoints, unchanged, to the upstream address in
TRANSACTIONS_API_BASE_URL. Status code, body and content type pass through
verbatim.

Failure mapping:
- base URL not configured -> 500
- upstream unreachable    -> 502 with a generic body
- wrong method            -> 405 with an Allow header
"""

from typing import Optional
from urllib.parse import quote

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from echopay.config import ProxySettings, get_settings


logger = structlog.get_logger(__name__)

UNREACHABLE_BODY = {"error": "failed to reach transactions service"}
NOT_CONFIGURED_BODY = {"error": "TRANSACTIONS_API_BASE_URL is not configured"}


def create_proxy_app(
    settings: Optional[ProxySettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create the proxy FastAPI application.

    Args:
        settings: Proxy settings; loaded from the environment if omitted
        transport: Custom httpx transport for the upstream (tests)
    """
    settings = settings or get_settings().proxy
    base_url = settings.transactions_api_base_url

    app = FastAPI(title="EchoPay Proxy")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(
                {"error": "method not allowed"},
                status_code=405,
                headers=exc.headers,
            )
        return await http_exception_handler(request, exc)

    async def forward(method: str, path: str, content: Optional[bytes] = None) -> Response:
        if not base_url:
            return JSONResponse(NOT_CONFIGURED_BODY, status_code=500)

        headers = {"Content-Type": "application/json"} if content is not None else None
        try:
            async with httpx.AsyncClient(
                base_url=base_url,
                timeout=settings.upstream_timeout_seconds,
                transport=transport,
            ) as client:
                upstream = await client.request(method, path, content=content, headers=headers)
        except httpx.RequestError as e:
            logger.warning("upstream_unreachable", method=method, path=path, error=str(e))
            return JSONResponse(UNREACHABLE_BODY, status_code=502)

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type=upstream.headers.get("content-type", "application/json"),
        )

    @app.get("/api/channels/{user}/transactions")
    async def proxy_transactions(user: str):
        return await forward("GET", f"/api/channels/{quote(user, safe='')}/transactions")

    @app.post("/api/channels/transfer")
    async def proxy_transfer(request: Request):
        body = await request.body()
        return await forward("POST", "/api/channels/transfer", content=body or b"{}")

    return app
