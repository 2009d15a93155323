"""
Core server bootstrap for the apps broker MCP gateway.

ServerApp owns the upstream clients, session store and dispatcher, and runs
whichever transport the settings select (stdio, HTTP JSON-RPC or FastMCP SSE).
"""

import asyncio
import logging

import uvicorn
from fastmcp import FastMCP
from starlette.applications import Starlette

from apps_broker.client import AppsApiClient, AuthApiClient
from apps_broker.dispatcher import RequestDispatcher
from apps_broker.file_selector import FileSelector
from apps_broker.http_app import build_http_app
from apps_broker.protocol import JsonRpcHandler, ToolInvoker
from apps_broker.sessions import SessionStore
from apps_broker.settings import Settings
from apps_broker.stdio import serve_stdio
from apps_broker.tools import BrokerToolDependencies, register_broker_tools


class ServerApp:
    """Server container wiring settings into gateways, dispatcher and transports."""

    def __init__(self, settings: Settings) -> None:
        self._logger = logging.getLogger(__name__)
        self._settings = settings
        self._auth_client: AuthApiClient | None = None
        self._apps_client: AppsApiClient | None = None
        self._sessions = SessionStore(
            default_client_id=settings.default_client_id,
            default_session_token=settings.default_session_token,
            fallback_token=settings.http_auth_token,
        )
        self._tool_dependencies = BrokerToolDependencies()
        self._mcp_app = FastMCP(
            name="ntg-apps-broker",
            instructions=(
                "Log in to Smart2Go, create apps, and import exported apps from server storage."
            ),
        )
        register_broker_tools(self._mcp_app, self._tool_dependencies)
        self._handler: JsonRpcHandler | None = None

    def startup(self) -> None:
        """Create the upstream clients and wire the dispatcher."""
        self._logger.info("Starting server bootstrap")
        self._logger.info("MCP runtime config", extra=self._settings.describe())
        self._sessions.preload_default_session()
        self._auth_client = AuthApiClient.from_settings(self._settings)
        self._apps_client = AppsApiClient.from_settings(self._settings)
        dispatcher = RequestDispatcher.build(
            sessions=self._sessions,
            auth_gateway=self._auth_client,
            apps_gateway=self._apps_client,
            file_selector=FileSelector(self._settings.import_apps_dir),
        )
        invoker = ToolInvoker(
            dispatcher,
            baseurl_override_enabled=self._settings.baseurl_override_enabled,
        )
        self._tool_dependencies.attach_invoker(invoker)
        self._handler = JsonRpcHandler(invoker)

    def shutdown(self) -> None:
        """Release acquired resources."""
        self._logger.info("Shutting down server bootstrap")
        if self._auth_client is not None or self._apps_client is not None:
            asyncio.run(self._close_clients())
        self._tool_dependencies.detach_invoker()
        self._handler = None

    async def _close_clients(self) -> None:
        if self._auth_client is not None:
            await self._auth_client.aclose()
            self._auth_client = None
        if self._apps_client is not None:
            await self._apps_client.aclose()
            self._apps_client = None

    def require_handler(self) -> JsonRpcHandler:
        if self._handler is None:
            raise RuntimeError("Server has not been started.")
        return self._handler

    def http_app(self) -> Starlette:
        return build_http_app(self.require_handler(), auth_token=self._settings.http_auth_token)

    def serve_forever(self) -> None:
        """Run the configured transport until interrupted."""
        asyncio.run(self.serve_async())

    async def serve_async(self, host: str | None = None) -> None:
        """Serve the configured transport, closing upstream clients on the same loop afterwards."""
        transport = self._settings.transport
        host = host or self._settings.host
        port = self._settings.port
        self._logger.info("Starting %s transport", transport, extra={"host": host, "port": port})
        try:
            if transport == "stdio":
                await serve_stdio(self.require_handler())
            elif transport == "http":
                config = uvicorn.Config(self.http_app(), host=host, port=port, log_level="info")
                await uvicorn.Server(config).serve()
            else:
                await self._mcp_app.run_http_async(transport="sse", host=host, port=port)
        finally:
            await self._close_clients()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    @property
    def mcp(self) -> FastMCP:
        """Expose the configured FastMCP instance."""
        return self._mcp_app


def build_server(settings: Settings) -> ServerApp:
    """Factory used by main.py to create the configured server instance."""
    return ServerApp(settings)
