"""Tests for src/llms_forge/security.py."""

import socket
from unittest.mock import patch

import pytest

from llms_forge.security import is_safe_url, wrap_external_content


def _addrinfo(*addresses):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (a, 0)) for a in addresses]


class TestIsSafeUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "ftp://example.com",
            "file:///etc/passwd",
            "http://localhost:8080",
            "http://127.0.0.1",
            "http://10.0.0.1/docs",
            "http://192.168.1.1",
            "http://169.254.169.254/latest/meta-data",
            "http://[::1]/",
            "http://0.0.0.0",
            "https://",
        ],
    )
    def test_blocked(self, url):
        assert is_safe_url(url) is False

    def test_public_ip_literal(self):
        assert is_safe_url("https://93.184.216.34") is True

    def test_resolves_to_private(self):
        """DNS names pointing at internal addresses are rejected."""
        with patch(
            "llms_forge.security.socket.getaddrinfo",
            return_value=_addrinfo("93.184.216.34", "10.1.2.3"),
        ):
            assert is_safe_url("https://internal.acme.io") is False

    def test_resolves_to_public(self):
        with patch(
            "llms_forge.security.socket.getaddrinfo",
            return_value=_addrinfo("93.184.216.34"),
        ):
            assert is_safe_url("https://acme.io") is True

    def test_unresolvable_allowed(self):
        with patch(
            "llms_forge.security.socket.getaddrinfo",
            side_effect=socket.gaierror("no such host"),
        ):
            assert is_safe_url("https://nope.invalid") is True

    def test_resolver_error_blocked(self):
        with patch(
            "llms_forge.security.socket.getaddrinfo",
            side_effect=OSError("resolver down"),
        ):
            assert is_safe_url("https://acme.io") is False


class TestWrapExternalContent:
    def test_wraps(self):
        wrapped = wrap_external_content("extract", '{"documents": []}')
        assert wrapped.startswith("<untrusted_extract_content>\n")
        assert '{"documents": []}\n</untrusted_extract_content>' in wrapped
        assert "UNTRUSTED" in wrapped

    def test_errors_pass_through(self):
        assert wrap_external_content("extract", "Error: nope") == "Error: nope"
