"""Handlers for the ping, login and create_app tools."""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from apps_broker.gateways import AppsGateway, AuthGateway
from apps_broker.identifiers import derive_identifier
from apps_broker.models import ErrorCode, Failure, Outcome, Success, ToolRequest
from apps_broker.params import CreateAppParams, LoginParams, is_blank
from apps_broker.sessions import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_ICON = "fa fa-heart"
UNAUTHORIZED_STATUSES = frozenset({401, 403})

ParamsT = TypeVar("ParamsT", bound=BaseModel)


def parse_params(model: type[ParamsT], request: ToolRequest) -> ParamsT | Failure:
    """Validate the request parameters, reporting type errors as validation_failed."""
    try:
        return model.model_validate(request.parameters)
    except ValidationError as exc:
        return Failure.of(
            request,
            ErrorCode.VALIDATION_FAILED,
            f"Invalid parameters for {request.action}",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        )


async def handle_ping(request: ToolRequest, client_id: str | None = None) -> Outcome:
    return Success(request.id, {"message": "pong"})


class LoginHandler:
    """Authenticate upstream and remember the token under a stable clientId."""

    def __init__(self, auth_gateway: AuthGateway, sessions: SessionStore) -> None:
        self._auth = auth_gateway
        self._sessions = sessions

    async def __call__(self, request: ToolRequest, client_id: str | None = None) -> Outcome:
        params = parse_params(LoginParams, request)
        if isinstance(params, Failure):
            return params
        if is_blank(params.username) or is_blank(params.password) or is_blank(params.companyname):
            return Failure.of(
                request,
                ErrorCode.VALIDATION_FAILED,
                "Missing required fields: username, password, companyname",
            )

        try:
            result = await self._auth.login(params.username, params.password, params.companyname)
            stable_client_id = (
                client_id if not is_blank(client_id) else f"{params.companyname}::{params.username}"
            )
            self._sessions.set_token(stable_client_id, result.session_token)
        except Exception as exc:  # noqa: BLE001
            logger.error("Login failed", exc_info=True)
            return Failure.of(
                request,
                ErrorCode.FORBIDDEN,
                f"Login failed: {exc}",
                {"error": str(exc)},
            )

        logger.info("Login successful: clientId=%s", stable_client_id)
        return Success(
            request.id,
            {"sessionToken": result.session_token, "clientId": stable_client_id},
        )


class CreateAppHandler:
    """Create an app through saveApp, filling in defaults for optional fields."""

    def __init__(self, apps_gateway: AppsGateway) -> None:
        self._apps = apps_gateway

    @staticmethod
    def build_spec(params: CreateAppParams) -> dict[str, Any]:
        app_name = (params.app_name or "").strip()
        return {
            "AppearOnMobile": True if params.appear_on_mobile is None else params.appear_on_mobile,
            "appName": app_name,
            "appIdentifier": (
                derive_identifier(app_name)
                if is_blank(params.app_identifier)
                else params.app_identifier.strip()
            ),
            "shortNotes": app_name if is_blank(params.short_notes) else params.short_notes,
            "icon": DEFAULT_ICON if is_blank(params.icon) else params.icon,
        }

    async def __call__(self, request: ToolRequest, client_id: str | None = None) -> Outcome:
        params = parse_params(CreateAppParams, request)
        if isinstance(params, Failure):
            return params
        if is_blank(params.app_name):
            return Failure.of(request, ErrorCode.VALIDATION_FAILED, "appName is required")

        spec = self.build_spec(params)
        if is_blank(params.session_token):
            return Failure.of(request, ErrorCode.VALIDATION_FAILED, "Missing sessionToken")

        try:
            response = await self._apps.save_app(spec, params.session_token)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to create app")
            return Failure.of(request, ErrorCode.INTERNAL_ERROR, str(exc))

        if not response.ok:
            message = "Apps service returned non-success status"
            if response.status_code in UNAUTHORIZED_STATUSES:
                message = (
                    "Apps service rejected the sessionToken (unauthorized). Provide a valid "
                    "Smart2Go UserSessionToken (set MCP_DEFAULT_SESSION_TOKEN or pass sessionToken)."
                )
            return Failure.of(request, ErrorCode.VALIDATION_FAILED, message, response.summary())

        logger.info(
            "App created successfully: appName=%s, appIdentifier=%s",
            spec["appName"],
            spec["appIdentifier"],
        )
        return Success(request.id, {"app": spec, "appsService": response.summary()})
