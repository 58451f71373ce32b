"""CSRF state tokens and the random source behind them.

Every component that needs randomness (CSRF state, tenant app ids) takes a
``RandomBytes`` callable instead of reaching for a module-level generator, so
tests can substitute a deterministic source.
"""

from __future__ import annotations

import base64
import secrets
from collections.abc import Callable

RandomBytes = Callable[[int], bytes]

# 128 bits of entropy per state token
CSRF_TOKEN_BYTES = 16


def random_int64(random_bytes: RandomBytes = secrets.token_bytes) -> int:
    """Draw a signed 64-bit integer from the random source."""
    return int.from_bytes(random_bytes(8), "big", signed=True)


class CsrfTokenIssuer:
    """Issues unguessable, URL-safe state tokens for the OAuth handshake."""

    def __init__(self, random_bytes: RandomBytes = secrets.token_bytes) -> None:
        self._random_bytes = random_bytes

    def issue(self) -> str:
        """Return a fresh state token (22 URL-safe characters, no padding)."""
        raw = self._random_bytes(CSRF_TOKEN_BYTES)
        if len(raw) != CSRF_TOKEN_BYTES:
            raise ValueError("Random source returned the wrong number of bytes")
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")
