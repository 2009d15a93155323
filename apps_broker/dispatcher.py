"""Route tool requests to handlers and enforce session tokens for protected actions."""

import logging
from collections.abc import Awaitable, Callable, Mapping

from apps_broker.file_selector import FileSelector
from apps_broker.gateways import AppsGateway, AuthGateway
from apps_broker.handlers import CreateAppHandler, LoginHandler, handle_ping
from apps_broker.importer import ImportOrchestrator
from apps_broker.models import ErrorCode, Failure, Outcome, ToolRequest
from apps_broker.params import is_blank
from apps_broker.sessions import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "default"
PUBLIC_ACTIONS = frozenset({"ping", "login"})

Handler = Callable[[ToolRequest, str | None], Awaitable[Outcome]]


class RequestDispatcher:
    """
    Entry point for every tool call, whatever the transport.

    Protected actions get a session token injected into a copy of their
    parameters: an explicit ``sessionToken`` argument wins, otherwise the
    token stored for the caller's clientId (or ``"default"``) is used.
    """

    def __init__(self, sessions: SessionStore, handlers: Mapping[str, Handler]) -> None:
        self._sessions = sessions
        self._handlers = dict(handlers)

    @classmethod
    def build(
        cls,
        *,
        sessions: SessionStore,
        auth_gateway: AuthGateway,
        apps_gateway: AppsGateway,
        file_selector: FileSelector,
    ) -> "RequestDispatcher":
        """Wire the standard tool set."""
        return cls(
            sessions,
            {
                "ping": handle_ping,
                "login": LoginHandler(auth_gateway, sessions),
                "create_app": CreateAppHandler(apps_gateway),
                "import_app": ImportOrchestrator(apps_gateway, file_selector),
            },
        )

    def _authorize(self, request: ToolRequest, client_id: str | None) -> ToolRequest | Failure:
        if not is_blank(request.parameters.get("sessionToken")):
            return request

        effective_client_id = client_id if not is_blank(client_id) else DEFAULT_CLIENT_ID
        token = self._sessions.get_token(effective_client_id)
        if is_blank(token):
            logger.info(
                "Rejected %s without a session", request.action, extra={"client_id": effective_client_id}
            )
            return Failure.of(request, ErrorCode.FORBIDDEN, "you must log in first")
        return request.with_parameters({**request.parameters, "sessionToken": token})

    async def execute(self, request: ToolRequest, client_id: str | None = None) -> Outcome:
        logger.debug("Executing request: action=%s, clientId=%s", request.action, client_id)

        if request.action not in PUBLIC_ACTIONS:
            authorized = self._authorize(request, client_id)
            if isinstance(authorized, Failure):
                return authorized
            request = authorized

        handler = self._handlers.get(request.action)
        if handler is None:
            return Failure.of(
                request,
                ErrorCode.INVALID_ACTION,
                "Unknown action",
                {"action": request.action},
            )

        try:
            return await handler(request, client_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Handler %s failed unexpectedly", request.action)
            return Failure.of(request, ErrorCode.INTERNAL_ERROR, str(exc))
