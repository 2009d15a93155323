"""
Smart2Go API client wrappers used by the tool handlers.

Each call is atomic from the caller's point of view: connection failures and
timeouts are retried according to the client's RetryPolicy, HTTP error
statuses are never retried and are returned verbatim as UpstreamResponse.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from apps_broker.http_client import CallTimeouts, RetryPolicy, create_upstream_client, session_headers
from apps_broker.models import LoginResult, UpstreamResponse
from apps_broker.settings import Settings
from apps_broker.upstream_context import current_overrides

logger = logging.getLogger(__name__)

LOGIN_PATH = "/rest/MainFunciton/login"
SAVE_APP_PATH = "/rest/Apps/saveApp"
UPLOAD_FILE_PATH = "/rest/importExport/uploadFile"
VALIDATE_IDENTIFIER_PATH = "/rest/importExport/validateAppIdentifier"
IMPORT_APP_PATH = "/rest/importExport/importApp"

IMPORT_FILE_EXTENSION = ".ntgapps"
TOKEN_FIELDS = ("UserSessionToken", "userSessionToken", "sessionToken", "SessionToken", "token")


class UpstreamApiError(RuntimeError):
    """Represents failures when communicating with the Smart2Go backend."""


class AuthenticationError(UpstreamApiError):
    """Login was rejected or returned no usable session token."""


def _snippet(text: str, limit: int = 512) -> str:
    cleaned = text.strip()
    if len(cleaned) > limit:
        return f"{cleaned[:limit]}..."
    return cleaned


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


def _error_response(response: httpx.Response) -> UpstreamResponse:
    status = f"{response.status_code} {response.reason_phrase}".strip()
    return UpstreamResponse(
        response.status_code,
        {
            "error": f"Upstream responded with {status}",
            "response_body": response.text,
            "status": status,
        },
    )


def extract_session_token(body: Any) -> str | None:
    """Pick the first non-blank token field from a login response body."""
    if not isinstance(body, dict):
        return None
    for key in TOKEN_FIELDS:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


async def _send(
    client: httpx.AsyncClient,
    retry_policy: RetryPolicy,
    url: str,
    **kwargs: Any,
) -> httpx.Response:
    """POST with retries, converting exhausted transport failures to UpstreamApiError."""
    try:
        return await retry_policy.run(lambda: client.post(url, **kwargs))
    except httpx.TimeoutException as exc:
        logger.error("Upstream request timed out", extra={"url": url}, exc_info=exc)
        raise UpstreamApiError(f"Upstream request timed out (POST {url}).") from exc
    except httpx.RequestError as exc:
        logger.error("Upstream request failed", extra={"url": url}, exc_info=exc)
        raise UpstreamApiError(f"Upstream request failed (POST {url}): {exc!s}") from exc


@dataclass(slots=True)
class AuthApiClient:
    """Login against the Smart2Go MainFunciton endpoint."""

    _client: httpx.AsyncClient
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    timeouts: CallTimeouts = field(default_factory=CallTimeouts)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthApiClient":
        return cls(create_upstream_client(settings.auth_base_url))

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        overrides = current_overrides()
        if overrides is not None and overrides.auth_base_url:
            return f"{overrides.auth_base_url}{path}"
        return path

    async def login(self, username: str, password: str, companyname: str) -> LoginResult:
        payload = {
            "LoginUserInfo": {"loginUserName": username, "companyName": companyname},
            "Password": password,
        }
        url = self._url(LOGIN_PATH)
        logger.info("Calling login API", extra={"url": url})

        try:
            response = await _send(
                self._client,
                self.retry_policy,
                url,
                json=payload,
                headers={"SessionToken": "NTG"},
                timeout=self.timeouts.login,
            )
        except UpstreamApiError as exc:
            raise AuthenticationError(str(exc)) from exc

        if response.is_error:
            logger.warning(
                "Login API responded with error",
                extra={"status_code": response.status_code},
            )
            raise AuthenticationError(
                f"Login API error ({response.status_code}): {_snippet(response.text) or 'no body provided.'}"
            )

        body = _decode_body(response)
        token = extract_session_token(body)
        if token is None:
            raise AuthenticationError("No session token in response")
        return LoginResult(token, body)


@dataclass(slots=True)
class AppsApiClient:
    """Apps and import/export endpoints of the Smart2Go backend."""

    _client: httpx.AsyncClient
    time_offset_ms: int = 7_200_000
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    timeouts: CallTimeouts = field(default_factory=CallTimeouts)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppsApiClient":
        return cls(
            create_upstream_client(settings.apps_base_url),
            time_offset_ms=settings.time_offset_ms,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        overrides = current_overrides()
        if overrides is not None and overrides.apps_base_url:
            return f"{overrides.apps_base_url}{path}"
        return path

    async def save_app(self, spec: dict[str, Any], session_token: str) -> UpstreamResponse:
        return await self._post(
            "saveApp",
            SAVE_APP_PATH,
            json=spec,
            headers=session_headers(session_token),
            timeout=self.timeouts.save_app,
        )

    async def upload_import_file(self, file: Path, session_token: str) -> UpstreamResponse:
        """Upload an exported app archive; local pre-checks answer without calling upstream."""
        if not file.is_file():
            return UpstreamResponse(404, {"error": f"File not found: {file}"})
        filename = file.name
        if not filename.lower().endswith(IMPORT_FILE_EXTENSION):
            return UpstreamResponse(
                400, {"error": "Only .NTGapps files are supported.", "file": filename}
            )
        content = await asyncio.to_thread(file.read_bytes)
        if not content:
            return UpstreamResponse(400, {"error": "File is empty", "file": filename})

        logger.debug("Uploading import file", extra={"file": str(file), "size": len(content)})
        return await self._post(
            "uploadFile",
            UPLOAD_FILE_PATH,
            files={"file": (filename, content, "application/octet-stream")},
            headers={**session_headers(session_token), "ngsw-bypass": "true"},
            timeout=self.timeouts.upload,
        )

    async def validate_app_identifier(
        self, payload: dict[str, Any], session_token: str
    ) -> UpstreamResponse:
        return await self._post(
            "validateAppIdentifier",
            VALIDATE_IDENTIFIER_PATH,
            json=payload,
            headers=session_headers(session_token),
            timeout=self.timeouts.validate,
        )

    async def import_app(self, payload: dict[str, Any], session_token: str) -> UpstreamResponse:
        return await self._post(
            "importApp",
            IMPORT_APP_PATH,
            json=payload,
            headers={**session_headers(session_token), "TimeOffset": str(self.time_offset_ms)},
            timeout=self.timeouts.import_app,
        )

    async def _post(self, operation: str, path: str, **kwargs: Any) -> UpstreamResponse:
        url = self._url(path)
        logger.info("Calling %s API", operation, extra={"url": url})
        response = await _send(self._client, self.retry_policy, url, **kwargs)

        if response.is_error:
            logger.warning(
                "%s API responded with error",
                operation,
                extra={
                    "status_code": response.status_code,
                    "content": _snippet(response.text),
                },
            )
            return _error_response(response)

        logger.info("%s API response received", operation, extra={"status_code": response.status_code})
        return UpstreamResponse(response.status_code, _decode_body(response))
