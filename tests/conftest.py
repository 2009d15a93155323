from pathlib import Path

import pytest

from apps_broker.dispatcher import RequestDispatcher
from apps_broker.file_selector import FileSelector
from apps_broker.sessions import SessionStore
from tests.fakes import FakeAppsGateway, FakeAuthGateway


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def auth_gateway() -> FakeAuthGateway:
    return FakeAuthGateway()


@pytest.fixture
def apps_gateway() -> FakeAppsGateway:
    return FakeAppsGateway()


@pytest.fixture
def import_root(tmp_path: Path) -> Path:
    root = tmp_path / "import-apps"
    app_dir = root / "Orders"
    app_dir.mkdir(parents=True)
    (app_dir / "orders-v1.NTGapps").write_bytes(b"archive")
    return root


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore()


@pytest.fixture
def dispatcher(
    sessions: SessionStore,
    auth_gateway: FakeAuthGateway,
    apps_gateway: FakeAppsGateway,
    import_root: Path,
) -> RequestDispatcher:
    return RequestDispatcher.build(
        sessions=sessions,
        auth_gateway=auth_gateway,
        apps_gateway=apps_gateway,
        file_selector=FileSelector(import_root),
    )
