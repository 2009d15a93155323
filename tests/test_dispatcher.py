import pytest

from apps_broker.client import AuthenticationError
from apps_broker.dispatcher import RequestDispatcher
from apps_broker.models import ErrorCode, Failure, Success, ToolRequest, UpstreamResponse
from apps_broker.sessions import SessionStore
from tests.fakes import FakeAppsGateway, FakeAuthGateway


@pytest.mark.anyio
@pytest.mark.parametrize("action", ["create_app", "import_app", "does_not_exist"])
async def test_protected_actions_require_a_session(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway, action: str
) -> None:
    outcome = await dispatcher.execute(ToolRequest(action, {"appName": "Orders"}), None)

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.FORBIDDEN
    assert apps_gateway.calls == []


@pytest.mark.anyio
async def test_ping_bypasses_session_enforcement(dispatcher: RequestDispatcher) -> None:
    outcome = await dispatcher.execute(ToolRequest("ping"), None)
    assert outcome == Success(outcome.id, {"message": "pong"})


@pytest.mark.anyio
async def test_explicit_session_token_wins_and_request_is_not_mutated(
    dispatcher: RequestDispatcher, sessions: SessionStore, apps_gateway: FakeAppsGateway
) -> None:
    sessions.set_token("client", "STORED")
    parameters = {"appName": "Orders", "sessionToken": "EXPLICIT"}
    request = ToolRequest("create_app", parameters)

    outcome = await dispatcher.execute(request, "client")

    assert isinstance(outcome, Success)
    assert apps_gateway.calls[0][2] == "EXPLICIT"
    assert request.parameters == {"appName": "Orders", "sessionToken": "EXPLICIT"}


@pytest.mark.anyio
async def test_stored_token_is_injected_into_a_copy(
    dispatcher: RequestDispatcher, sessions: SessionStore, apps_gateway: FakeAppsGateway
) -> None:
    sessions.set_token("client", "STORED")
    request = ToolRequest("create_app", {"appName": "Orders"})

    outcome = await dispatcher.execute(request, "client")

    assert isinstance(outcome, Success)
    assert apps_gateway.calls[0][2] == "STORED"
    assert "sessionToken" not in request.parameters


@pytest.mark.anyio
async def test_missing_client_id_uses_default_session(
    dispatcher: RequestDispatcher, sessions: SessionStore, apps_gateway: FakeAppsGateway
) -> None:
    sessions.set_token("default", "DEFAULT-TOKEN")

    outcome = await dispatcher.execute(ToolRequest("create_app", {"appName": "Orders"}), "  ")

    assert isinstance(outcome, Success)
    assert apps_gateway.calls[0][2] == "DEFAULT-TOKEN"


@pytest.mark.anyio
async def test_unknown_action_with_session_is_invalid_action(dispatcher: RequestDispatcher) -> None:
    outcome = await dispatcher.execute(ToolRequest("delete_app", {"sessionToken": "tok"}), None)

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.INVALID_ACTION
    assert outcome.error.details == {"action": "delete_app"}


@pytest.mark.anyio
async def test_login_then_call_with_stable_client_id(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    login = await dispatcher.execute(
        ToolRequest("login", {"username": "u", "password": "p", "companyname": "c"}),
        None,
    )
    assert isinstance(login, Success)
    assert login.result == {"sessionToken": "T1", "clientId": "c::u"}

    outcome = await dispatcher.execute(ToolRequest("create_app", {"appName": "Orders"}), "c::u")

    assert isinstance(outcome, Success)
    assert apps_gateway.calls[0][2] == "T1"


@pytest.mark.anyio
async def test_login_keeps_caller_client_id(
    dispatcher: RequestDispatcher, sessions: SessionStore
) -> None:
    outcome = await dispatcher.execute(
        ToolRequest("login", {"username": "u", "password": "p", "companyname": "c"}),
        "cursor-1",
    )

    assert isinstance(outcome, Success)
    assert outcome.result["clientId"] == "cursor-1"
    assert sessions.get_token("cursor-1") == "T1"


@pytest.mark.anyio
async def test_login_requires_all_fields(
    dispatcher: RequestDispatcher, auth_gateway: FakeAuthGateway
) -> None:
    outcome = await dispatcher.execute(
        ToolRequest("login", {"username": "u", "password": " ", "companyname": "c"}), None
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.VALIDATION_FAILED
    assert auth_gateway.calls == []


@pytest.mark.anyio
async def test_login_gateway_failure_is_forbidden(
    dispatcher: RequestDispatcher, auth_gateway: FakeAuthGateway, sessions: SessionStore
) -> None:
    auth_gateway.error = AuthenticationError("No session token in response")

    outcome = await dispatcher.execute(
        ToolRequest("login", {"username": "u", "password": "p", "companyname": "c"}), None
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.FORBIDDEN
    assert "No session token in response" in outcome.error.message
    assert sessions.get_token("c::u") is None


@pytest.mark.anyio
async def test_create_app_fills_defaults(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    outcome = await dispatcher.execute(
        ToolRequest("create_app", {"appName": "  Sales Hub ", "sessionToken": "tok"}), None
    )

    expected_spec = {
        "AppearOnMobile": True,
        "appName": "Sales Hub",
        "appIdentifier": "SAL",
        "shortNotes": "Sales Hub",
        "icon": "fa fa-heart",
    }
    assert isinstance(outcome, Success)
    assert apps_gateway.payload_for("saveApp") == expected_spec
    assert outcome.result == {
        "app": expected_spec,
        "appsService": {"status_code": 200, "body": {"returnValue": "saved"}},
    }


@pytest.mark.anyio
async def test_create_app_keeps_supplied_values(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    await dispatcher.execute(
        ToolRequest(
            "create_app",
            {
                "appName": "Sales",
                "AppearOnMobile": False,
                "appIdentifier": " slx ",
                "shortNotes": "notes",
                "icon": "fa fa-star",
                "sessionToken": "tok",
            },
        ),
        None,
    )

    spec = apps_gateway.payload_for("saveApp")
    assert spec["AppearOnMobile"] is False
    assert spec["appIdentifier"] == "slx"
    assert spec["shortNotes"] == "notes"
    assert spec["icon"] == "fa fa-star"


@pytest.mark.anyio
@pytest.mark.parametrize("status", [401, 403])
async def test_create_app_rejected_token_has_clear_message(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway, status: int
) -> None:
    apps_gateway.save_response = UpstreamResponse(status, {"error": "denied"})

    outcome = await dispatcher.execute(
        ToolRequest("create_app", {"appName": "Sales", "sessionToken": "tok"}), None
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.VALIDATION_FAILED
    assert "rejected the sessionToken" in outcome.error.message
    assert outcome.error.details == {"status_code": status, "body": {"error": "denied"}}


@pytest.mark.anyio
async def test_create_app_upstream_status_is_surfaced(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    apps_gateway.save_response = UpstreamResponse(500, None)

    outcome = await dispatcher.execute(
        ToolRequest("create_app", {"appName": "Sales", "sessionToken": "tok"}), None
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.message == "Apps service returned non-success status"
    assert outcome.error.details == {"status_code": 500, "body": {}}


@pytest.mark.anyio
async def test_create_app_transport_failure_is_internal_error(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    apps_gateway.error = RuntimeError("upstream unreachable")

    outcome = await dispatcher.execute(
        ToolRequest("create_app", {"appName": "Sales", "sessionToken": "tok"}), None
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.INTERNAL_ERROR
    assert outcome.error.message == "upstream unreachable"


@pytest.mark.anyio
async def test_create_app_rejects_uncoercible_types(
    dispatcher: RequestDispatcher, apps_gateway: FakeAppsGateway
) -> None:
    outcome = await dispatcher.execute(
        ToolRequest("create_app", {"appName": "Sales", "AppearOnMobile": "sometimes", "sessionToken": "tok"}),
        None,
    )

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.VALIDATION_FAILED
    assert apps_gateway.calls == []


@pytest.mark.anyio
async def test_handler_exceptions_never_escape(sessions: SessionStore) -> None:
    async def broken(request: ToolRequest, client_id: str | None) -> Success:
        raise RuntimeError("kaboom")

    dispatcher = RequestDispatcher(sessions, {"broken": broken})
    outcome = await dispatcher.execute(ToolRequest("broken", {"sessionToken": "tok"}), None)

    assert isinstance(outcome, Failure)
    assert outcome.error.code == ErrorCode.INTERNAL_ERROR
