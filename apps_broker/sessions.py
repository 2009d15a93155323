"""In-memory session store keyed by logical client identity."""

import logging
import threading

logger = logging.getLogger(__name__)


def _non_blank(value: str | None) -> bool:
    return bool(value and value.strip())


class SessionStore:
    """
    Thread-safe mapping of clientId to upstream session token.

    When no token has been stored for a client, a configured default token is
    handed out instead (``default_session_token`` first, then
    ``fallback_token``) and cached under that client so repeated lookups stay
    consistent.
    """

    def __init__(
        self,
        *,
        default_client_id: str = "",
        default_session_token: str = "",
        fallback_token: str = "",
    ) -> None:
        self._sessions: dict[str, str] = {}
        self._lock = threading.Lock()
        self._default_client_id = default_client_id
        self._default_session_token = default_session_token
        self._fallback_token = fallback_token

    def _configured_default(self) -> str | None:
        if _non_blank(self._default_session_token):
            return self._default_session_token
        if _non_blank(self._fallback_token):
            return self._fallback_token
        return None

    def preload_default_session(self) -> None:
        """Store the configured default token under the default clientId, if both exist."""
        token = self._configured_default()
        if token is None:
            return
        if _non_blank(self._default_client_id):
            with self._lock:
                self._sessions[self._default_client_id] = token
            logger.info("Preloaded default session token for clientId=%s", self._default_client_id)
        else:
            logger.info(
                "Default session token configured without a default clientId; "
                "it will be used as a fallback when needed."
            )

    def set_token(self, client_id: str, token: str) -> None:
        if not _non_blank(client_id):
            raise ValueError("clientId must be a non-empty string.")
        with self._lock:
            self._sessions[client_id] = token
        logger.debug("Session stored", extra={"client_id": client_id})

    def get_token(self, client_id: str | None) -> str | None:
        if not _non_blank(client_id):
            return None
        with self._lock:
            token = self._sessions.get(client_id)
            if _non_blank(token):
                return token

            fallback = self._configured_default()
            if fallback is None:
                logger.debug("No session found", extra={"client_id": client_id})
                return None
            self._sessions[client_id] = fallback
        logger.info("No stored session for clientId=%s; using configured default token", client_id)
        return fallback

    def clear_token(self, client_id: str | None) -> None:
        if not _non_blank(client_id):
            return
        with self._lock:
            self._sessions.pop(client_id, None)
        logger.debug("Session cleared", extra={"client_id": client_id})
