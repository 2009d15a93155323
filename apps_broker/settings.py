"""Environment-driven configuration utilities for the MCP gateway."""

import os
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

DEFAULT_UPSTREAM_BASE_URL = "http://localhost:7070/Smart2Go"
TRANSPORTS = ("stdio", "http", "sse")


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value.")


def _parse_positive_int(raw: str, name: str, *, allow_zero: bool = False) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer.") from exc
    if value < 0 or (value == 0 and not allow_zero):
        raise ValueError(f"{name} must be greater than zero.")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Container for runtime configuration."""

    auth_base_url: str = DEFAULT_UPSTREAM_BASE_URL
    apps_base_url: str = DEFAULT_UPSTREAM_BASE_URL
    import_apps_dir: str = "storage/import-apps"
    default_client_id: str = ""
    default_session_token: str = ""
    http_auth_token: str = ""
    baseurl_override_enabled: bool = True
    time_offset_ms: int = 7_200_000
    transport: str = "stdio"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def load(cls) -> "Settings":
        """
        Load configuration from environment variables.

        Python-dotenv is used so developers can rely on a local .env file without
        exporting variables globally.
        """
        load_dotenv()

        transport = (os.getenv("MCP_TRANSPORT", "").strip() or "stdio").lower()
        if transport not in TRANSPORTS:
            raise ValueError(f"MCP_TRANSPORT must be one of: {', '.join(TRANSPORTS)}.")

        return cls(
            auth_base_url=os.getenv("MCP_AUTH_BASE_URL", "").strip() or DEFAULT_UPSTREAM_BASE_URL,
            apps_base_url=os.getenv("MCP_APPS_BASE_URL", "").strip() or DEFAULT_UPSTREAM_BASE_URL,
            import_apps_dir=os.getenv("MCP_IMPORT_APPS_DIR", "").strip() or "storage/import-apps",
            default_client_id=os.getenv("MCP_DEFAULT_CLIENT_ID", "").strip(),
            default_session_token=os.getenv("MCP_DEFAULT_SESSION_TOKEN", "").strip(),
            http_auth_token=os.getenv("MCP_HTTP_AUTH_TOKEN", "").strip(),
            baseurl_override_enabled=_parse_bool(
                os.getenv("MCP_UPSTREAM_BASEURL_OVERRIDE_ENABLED", "").strip() or "true",
                "MCP_UPSTREAM_BASEURL_OVERRIDE_ENABLED",
            ),
            time_offset_ms=_parse_positive_int(
                os.getenv("MCP_TIME_OFFSET_MS", "").strip() or "7200000",
                "MCP_TIME_OFFSET_MS",
                allow_zero=True,
            ),
            transport=transport,
            host=os.getenv("MCP_HOST", "").strip() or "0.0.0.0",
            port=_parse_positive_int(os.getenv("MCP_PORT", "").strip() or "8000", "MCP_PORT"),
        )

    def describe(self) -> dict[str, Any]:
        """Non-secret view of the effective configuration, for startup logging."""
        return {
            "transport": self.transport,
            "host": self.host,
            "port": self.port,
            "auth_base_url": self.auth_base_url,
            "apps_base_url": self.apps_base_url,
            "import_apps_dir": self.import_apps_dir,
            "default_client_id": self.default_client_id,
            "default_session_token_configured": bool(self.default_session_token),
            "http_auth_enabled": bool(self.http_auth_token),
            "baseurl_override_enabled": self.baseurl_override_enabled,
        }
