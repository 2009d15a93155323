"""MCP tool registrations for the FastMCP (SSE) transport."""

import json
import logging
from dataclasses import dataclass
from typing import Annotated, Any

from fastmcp import FastMCP
from pydantic import Field

from apps_broker.models import Failure
from apps_broker.protocol import ToolInvoker, outcome_payload

logger = logging.getLogger(__name__)

ClientId = Annotated[str | None, Field(description="Caller identity used to look up the stored session.")]
SessionToken = Annotated[
    str | None,
    Field(description="Optional. If provided, bypasses stored login session and uses this token for the call."),
]
AuthBaseUrl = Annotated[str | None, Field(description="Optional per-call override of the auth service base URL.")]
AppsBaseUrl = Annotated[str | None, Field(description="Optional per-call override of the apps service base URL.")]


@dataclass
class BrokerToolDependencies:
    """Runtime dependencies required by the MCP tools."""

    invoker: ToolInvoker | None = None

    def attach_invoker(self, invoker: ToolInvoker) -> None:
        self.invoker = invoker

    def detach_invoker(self) -> None:
        self.invoker = None

    def require_invoker(self) -> ToolInvoker:
        if self.invoker is None:
            raise RuntimeError("Tool invoker is not initialized.")
        return self.invoker


def register_broker_tools(
    mcp: FastMCP,
    dependencies: BrokerToolDependencies,
) -> None:
    """Register the gateway tools; each one delegates to the shared dispatcher."""

    def _log_tool_event(tool_name: str, event: str, **fields: object) -> None:
        logger.info(
            "broker_tool_event",
            extra={"tool": tool_name, "event": event, **fields},
        )

    async def _call(tool_name: str, **arguments: Any) -> str:
        invoker = dependencies.require_invoker()
        outcome = await invoker.call(
            tool_name,
            {key: value for key, value in arguments.items() if value is not None},
        )
        if isinstance(outcome, Failure):
            _log_tool_event(tool_name, "failure", error_code=str(outcome.error.code))
        else:
            _log_tool_event(tool_name, "success")
        return json.dumps(outcome_payload(outcome), ensure_ascii=False, default=str)

    @mcp.tool(name="ping", description="Health check: returns pong.")
    async def ping() -> str:
        return await _call("ping")

    @mcp.tool(
        name="login",
        description="Login and store session token server-side keyed by clientId.",
    )
    async def login(
        username: Annotated[str, Field(description="Smart2Go login user name.")],
        password: Annotated[str, Field(description="Smart2Go password.")],
        companyname: Annotated[str, Field(description="Smart2Go company name.")],
        clientId: ClientId = None,  # noqa: N803
        authBaseUrl: AuthBaseUrl = None,  # noqa: N803
    ) -> str:
        return await _call(
            "login",
            username=username,
            password=password,
            companyname=companyname,
            clientId=clientId,
            authBaseUrl=authBaseUrl,
        )

    @mcp.tool(
        name="create_app",
        description=(
            "Create app via saveApp. You can provide only appName; other fields are "
            "optional and will be auto-filled."
        ),
    )
    async def create_app(
        appName: Annotated[str, Field(description="Required. App display name.")],  # noqa: N803
        AppearOnMobile: Annotated[bool | None, Field(description="Optional. Default: true")] = None,  # noqa: N803
        appIdentifier: Annotated[  # noqa: N803
            str | None, Field(description="Optional. Default: derived 3-letter code from appName.")
        ] = None,
        shortNotes: Annotated[str | None, Field(description="Optional. Default: appName")] = None,  # noqa: N803
        icon: Annotated[str | None, Field(description="Optional. Default: fa fa-heart")] = None,
        clientId: ClientId = None,  # noqa: N803
        sessionToken: SessionToken = None,  # noqa: N803
        appsBaseUrl: AppsBaseUrl = None,  # noqa: N803
    ) -> str:
        return await _call(
            "create_app",
            appName=appName,
            AppearOnMobile=AppearOnMobile,
            appIdentifier=appIdentifier,
            shortNotes=shortNotes,
            icon=icon,
            clientId=clientId,
            sessionToken=sessionToken,
            appsBaseUrl=appsBaseUrl,
        )

    @mcp.tool(
        name="import_app",
        description=(
            "Import an app from MCP storage by appName using Import/Export APIs "
            "(uploadFile -> validateAppIdentifier -> importApp)."
        ),
    )
    async def import_app(
        appName: Annotated[  # noqa: N803
            str,
            Field(description="Required. App name (folder name under MCP_IMPORT_APPS_DIR)."),
        ],
        newAppIdentifier: Annotated[  # noqa: N803
            str | None,
            Field(description="Optional. Used only if the app already exists. New 3-letter identifier."),
        ] = None,
        newAppName: Annotated[  # noqa: N803
            str | None,
            Field(description="Optional. Used only if the app already exists. New app name."),
        ] = None,
        debug: Annotated[bool, Field(description="Include full upstream API payloads.")] = False,
        clientId: ClientId = None,  # noqa: N803
        sessionToken: SessionToken = None,  # noqa: N803
        appsBaseUrl: AppsBaseUrl = None,  # noqa: N803
    ) -> str:
        return await _call(
            "import_app",
            appName=appName,
            newAppIdentifier=newAppIdentifier,
            newAppName=newAppName,
            debug=debug,
            clientId=clientId,
            sessionToken=sessionToken,
            appsBaseUrl=appsBaseUrl,
        )

    logger.info("Broker MCP tools registered.")
