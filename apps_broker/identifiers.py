"""Three-letter app identifier helpers."""

import re
import secrets
import string

IDENTIFIER_LENGTH = 3
_NON_LETTERS = re.compile(r"[^A-Za-z]")


def derive_identifier(app_name: str) -> str:
    """Build an identifier from the letters of ``app_name``, padding with ``X``."""
    letters = _NON_LETTERS.sub("", app_name).upper()
    return letters[:IDENTIFIER_LENGTH].ljust(IDENTIFIER_LENGTH, "X")


def generate_identifier(exclude: str | None = None) -> str:
    """Return a random A-Z identifier, never equal to ``exclude``."""
    excluded = (exclude or "").strip().upper()
    while True:
        candidate = "".join(
            secrets.choice(string.ascii_uppercase) for _ in range(IDENTIFIER_LENGTH)
        )
        if candidate != excluded:
            return candidate
