import json

import pytest
from fastmcp import Client, FastMCP

from apps_broker.dispatcher import RequestDispatcher
from apps_broker.protocol import ToolInvoker
from apps_broker.tools import BrokerToolDependencies, register_broker_tools
from tests.fakes import FakeAppsGateway


@pytest.fixture
def mcp(dispatcher: RequestDispatcher) -> FastMCP:
    server = FastMCP(name="test-broker")
    dependencies = BrokerToolDependencies()
    dependencies.attach_invoker(ToolInvoker(dispatcher))
    register_broker_tools(server, dependencies)
    return server


@pytest.mark.anyio
async def test_sse_tools_are_registered(mcp: FastMCP) -> None:
    async with Client(mcp) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == {"ping", "login", "create_app", "import_app"}


@pytest.mark.anyio
async def test_sse_login_then_create_app(mcp: FastMCP, apps_gateway: FakeAppsGateway) -> None:
    async with Client(mcp) as client:
        login = await client.call_tool(
            "login", {"username": "u", "password": "p", "companyname": "c"}
        )
        created = await client.call_tool("create_app", {"appName": "Orders", "clientId": "c::u"})

    assert json.loads(login.content[0].text) == {"sessionToken": "T1", "clientId": "c::u"}
    assert json.loads(created.content[0].text)["app"]["appIdentifier"] == "ORD"
    assert apps_gateway.calls[0][2] == "T1"


@pytest.mark.anyio
async def test_sse_failures_are_returned_as_text(mcp: FastMCP) -> None:
    async with Client(mcp) as client:
        result = await client.call_tool("import_app", {"appName": "Orders"})

    assert json.loads(result.content[0].text)["code"] == "forbidden"


def test_tools_require_an_attached_invoker() -> None:
    dependencies = BrokerToolDependencies()
    with pytest.raises(RuntimeError):
        dependencies.require_invoker()
