"""Security module for Pipehub.

This module provides:
- CSRF state tokens for the OAuth handshake
- GitHub OAuth sign-in with tenant provisioning (see pipehub.security.oauth)
"""

from pipehub.security.csrf import (
    CSRF_TOKEN_BYTES,
    CsrfTokenIssuer,
    RandomBytes,
    random_int64,
)

__all__ = [
    "CSRF_TOKEN_BYTES",
    "CsrfTokenIssuer",
    "RandomBytes",
    "random_int64",
]
