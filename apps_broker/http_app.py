"""JSON-RPC over HTTP: ``POST /mcp`` guarded by an optional bearer token."""

import hmac
import json
import logging

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from apps_broker.protocol import PARSE_ERROR, UNAUTHORIZED, JsonRpcHandler, jsonrpc_error

logger = logging.getLogger(__name__)

HEALTH_STATUS = {"status": "ok"}


def _extract_bearer(authorization: str | None) -> str | None:
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        return None
    return authorization[len(prefix):].strip()


def build_http_app(handler: JsonRpcHandler, *, auth_token: str = "") -> Starlette:
    """Create the Starlette application serving the MCP endpoint."""

    def _authorized(request: Request) -> bool:
        if not auth_token:
            return True
        token = _extract_bearer(request.headers.get("authorization"))
        return token is not None and hmac.compare_digest(token.encode(), auth_token.encode())

    async def mcp_endpoint(request: Request) -> Response:
        body = await request.body()
        parse_error: str | None = None
        try:
            message = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            message, parse_error = None, str(exc)

        if not _authorized(request):
            message_id = message.get("id") if isinstance(message, dict) else None
            logger.warning("Rejected MCP HTTP request with missing or invalid bearer token")
            return JSONResponse(jsonrpc_error(message_id, UNAUTHORIZED, "Unauthorized"))

        if parse_error is not None:
            return JSONResponse(
                jsonrpc_error(None, PARSE_ERROR, "Parse error", {"error": parse_error})
            )

        response = await handler.handle_message(message)
        if response is None:
            return Response(status_code=202)
        return JSONResponse(response)

    async def health(_request: Request) -> JSONResponse:
        return JSONResponse(HEALTH_STATUS)

    return Starlette(
        routes=[
            Route("/mcp", mcp_endpoint, methods=["POST"]),
            Route("/health", health, methods=["GET"]),
        ],
    )
