"""Tests for CSRF state tokens and the random source helpers."""

from __future__ import annotations

import base64
import re

import pytest

from pipehub.security.csrf import CSRF_TOKEN_BYTES, CsrfTokenIssuer, random_int64

URL_SAFE_TOKEN = re.compile(r"^[A-Za-z0-9_-]{22}$")


class TestCsrfTokenIssuer:
    """Tests for CsrfTokenIssuer."""

    def test_token_is_url_safe_and_fixed_length(self):
        token = CsrfTokenIssuer().issue()
        assert URL_SAFE_TOKEN.match(token)

    def test_tokens_are_unique(self):
        issuer = CsrfTokenIssuer()
        tokens = {issuer.issue() for _ in range(1000)}
        assert len(tokens) == 1000

    def test_uses_injected_random_source(self):
        """Token is the unpadded URL-safe encoding of 16 source bytes."""
        raw = bytes(range(CSRF_TOKEN_BYTES))
        issuer = CsrfTokenIssuer(lambda n: raw[:n])

        expected = base64.urlsafe_b64encode(raw).decode().rstrip("=")
        assert issuer.issue() == expected

    def test_requests_128_bits(self):
        requested = []

        def source(n: int) -> bytes:
            requested.append(n)
            return b"\x00" * n

        CsrfTokenIssuer(source).issue()
        assert requested == [16]

    def test_short_random_source_rejected(self):
        issuer = CsrfTokenIssuer(lambda n: b"\x00" * (n - 1))
        with pytest.raises(ValueError, match="wrong number of bytes"):
            issuer.issue()


class TestRandomInt64:
    """Tests for random_int64."""

    def test_signed_big_endian(self):
        assert random_int64(lambda n: b"\xff" * n) == -1
        assert random_int64(lambda n: b"\x00" * (n - 1) + b"\x01") == 1

    def test_range(self):
        for _ in range(100):
            value = random_int64()
            assert -(2**63) <= value < 2**63

    def test_draws_eight_bytes(self):
        requested = []

        def source(n: int) -> bytes:
            requested.append(n)
            return b"\x01" * n

        random_int64(source)
        assert requested == [8]
