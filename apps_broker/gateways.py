"""Upstream capabilities the handlers depend on."""

from pathlib import Path
from typing import Any, Protocol

from apps_broker.models import LoginResult, UpstreamResponse


class AuthGateway(Protocol):
    async def login(self, username: str, password: str, companyname: str) -> LoginResult: ...


class AppsGateway(Protocol):
    async def save_app(self, spec: dict[str, Any], session_token: str) -> UpstreamResponse: ...

    async def upload_import_file(self, file: Path, session_token: str) -> UpstreamResponse: ...

    async def validate_app_identifier(
        self, payload: dict[str, Any], session_token: str
    ) -> UpstreamResponse: ...

    async def import_app(self, payload: dict[str, Any], session_token: str) -> UpstreamResponse: ...
