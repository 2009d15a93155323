"""
JSON-RPC 2.0 envelope shared by the stdio and HTTP transports.

Tool outcomes are always protocol-level successes: a handler Failure is
encoded as ``{code, message, details}`` inside the same text content block a
Success uses. Only malformed messages and unknown methods produce JSON-RPC
errors.
"""

import json
import logging
from typing import Any

from apps_broker import __version__
from apps_broker.dispatcher import RequestDispatcher
from apps_broker.models import Failure, Outcome, ToolRequest
from apps_broker.upstream_context import upstream_overrides

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "ntg-apps-broker"

PARSE_ERROR = -32700
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
UNAUTHORIZED = -32001

SHUTDOWN_METHODS = frozenset({"shutdown", "exit"})

_CLIENT_ID = {"type": "string"}
_SESSION_TOKEN = {
    "type": "string",
    "description": "Optional. If provided, bypasses stored login session and uses this token for the call.",
}
_AUTH_BASE_URL = {"type": "string", "description": "Optional per-call override of the auth service base URL."}
_APPS_BASE_URL = {"type": "string", "description": "Optional per-call override of the apps service base URL."}

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "ping",
        "description": "Health check: returns pong.",
        "inputSchema": {"type": "object", "properties": {}, "additionalProperties": False},
    },
    {
        "name": "login",
        "description": "Login and store session token server-side keyed by clientId.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "username": {"type": "string"},
                "password": {"type": "string"},
                "companyname": {"type": "string"},
                "clientId": _CLIENT_ID,
                "authBaseUrl": _AUTH_BASE_URL,
            },
            "required": ["username", "password", "companyname"],
            "additionalProperties": False,
        },
    },
    {
        "name": "create_app",
        "description": (
            "Create app via saveApp. You can provide only appName; other fields are "
            "optional and will be auto-filled."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "clientId": _CLIENT_ID,
                "sessionToken": _SESSION_TOKEN,
                "appsBaseUrl": _APPS_BASE_URL,
                "AppearOnMobile": {"type": "boolean", "description": "Optional. Default: true"},
                "appName": {"type": "string", "description": "Required. App display name."},
                "appIdentifier": {
                    "type": "string",
                    "description": "Optional. Default: derived 3-letter code from appName.",
                },
                "shortNotes": {"type": "string", "description": "Optional. Default: appName"},
                "icon": {"type": "string", "description": "Optional. Default: fa fa-heart"},
            },
            "required": ["appName"],
            "additionalProperties": False,
        },
    },
    {
        "name": "import_app",
        "description": (
            "Import an app from MCP storage by appName using Import/Export APIs "
            "(uploadFile -> validateAppIdentifier -> importApp)."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "clientId": _CLIENT_ID,
                "sessionToken": _SESSION_TOKEN,
                "appsBaseUrl": _APPS_BASE_URL,
                "appName": {
                    "type": "string",
                    "description": (
                        "Required. App name (folder name under MCP_IMPORT_APPS_DIR). "
                        "Server chooses the newest file in that folder."
                    ),
                },
                "newAppIdentifier": {
                    "type": "string",
                    "description": "Optional. Used only if the app already exists. New 3-letter identifier to import under.",
                },
                "newAppName": {
                    "type": "string",
                    "description": "Optional. Used only if the app already exists. New app name to import under.",
                },
                "debug": {
                    "type": "boolean",
                    "description": "Optional. If true, include full upstream API payloads for debugging. Default: false.",
                },
            },
            "required": ["appName"],
            "additionalProperties": False,
        },
    },
]


def outcome_payload(outcome: Outcome) -> dict[str, Any]:
    if isinstance(outcome, Failure):
        return outcome.error.to_dict()
    return outcome.result


def encode_outcome(outcome: Outcome) -> dict[str, Any]:
    """Wrap a tool outcome in an MCP text content block."""
    text = json.dumps(outcome_payload(outcome), ensure_ascii=False, default=str)
    return {"content": [{"type": "text", "text": text}]}


def jsonrpc_result(message_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": message_id, "result": result}


def jsonrpc_error(
    message_id: Any,
    code: int,
    message: str,
    data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": message_id, "error": error}


class ToolInvoker:
    """Turn a tool name and its arguments into a dispatched request."""

    def __init__(self, dispatcher: RequestDispatcher, *, baseurl_override_enabled: bool = True) -> None:
        self._dispatcher = dispatcher
        self._override_enabled = baseurl_override_enabled

    async def call(self, name: str, arguments: dict[str, Any]) -> Outcome:
        client_id = arguments.get("clientId")
        if not isinstance(client_id, str):
            client_id = None
        request = ToolRequest(action=name, parameters=dict(arguments))
        with upstream_overrides(
            arguments.get("authBaseUrl"),
            arguments.get("appsBaseUrl"),
            enabled=self._override_enabled,
        ):
            return await self._dispatcher.execute(request, client_id)


class JsonRpcHandler:
    """Answer MCP JSON-RPC messages; returns ``None`` for notifications."""

    def __init__(self, invoker: ToolInvoker) -> None:
        self._invoker = invoker

    async def handle_line(self, line: str) -> dict[str, Any] | None:
        try:
            message = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.error("Error parsing MCP message: %s", exc)
            return jsonrpc_error(None, PARSE_ERROR, "Parse error", {"error": str(exc)})
        return await self.handle_message(message)

    async def handle_message(self, message: Any) -> dict[str, Any] | None:
        if not isinstance(message, dict):
            return jsonrpc_error(
                None, PARSE_ERROR, "Parse error", {"error": "Message must be a JSON object"}
            )

        message_id = message.get("id")
        method = message.get("method")
        params = message.get("params")
        if params is None:
            params = {}

        if isinstance(method, str) and method.startswith("notifications/"):
            logger.debug("Ignoring notification %s", method)
            return None

        try:
            if method == "initialize":
                return jsonrpc_result(
                    message_id,
                    {
                        "protocolVersion": PROTOCOL_VERSION,
                        "capabilities": {"tools": {}},
                        "serverInfo": {"name": SERVER_NAME, "version": __version__},
                    },
                )
            if method == "tools/list":
                return jsonrpc_result(message_id, {"tools": TOOL_DEFINITIONS})
            if method == "tools/call":
                return await self._handle_tool_call(message_id, params)
            if method in SHUTDOWN_METHODS:
                return jsonrpc_result(message_id, {})
            return jsonrpc_error(
                message_id,
                METHOD_NOT_FOUND,
                "Method not found",
                {"method": method if method is not None else "null"},
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error handling MCP message: method=%s", method)
            return jsonrpc_error(message_id, INTERNAL_ERROR, "Internal error", {"error": str(exc)})

    async def _handle_tool_call(self, message_id: Any, params: Any) -> dict[str, Any]:
        if not isinstance(params, dict):
            return jsonrpc_error(
                message_id, INVALID_PARAMS, "Invalid params", {"error": "params must be an object"}
            )
        name = params.get("name")
        if not isinstance(name, str) or not name:
            return jsonrpc_error(
                message_id, INVALID_PARAMS, "Invalid params", {"error": "Missing 'name' in params"}
            )
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return jsonrpc_error(
                message_id, INVALID_PARAMS, "Invalid params", {"error": "arguments must be an object"}
            )

        outcome = await self._invoker.call(name, arguments)
        if isinstance(outcome, Failure):
            logger.info(
                "tool_call_failed",
                extra={"tool": name, "error_code": str(outcome.error.code)},
            )
        return jsonrpc_result(message_id, encode_outcome(outcome))
