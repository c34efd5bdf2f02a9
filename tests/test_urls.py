"""Tests for src/llms_forge/sources/urls.py: normalization and candidates."""

import pytest

from llms_forge.models import DiscoveredCandidate
from llms_forge.sources.urls import (
    DOC_PATHS,
    DOC_SUBDOMAINS,
    InvalidUrlError,
    dedupe_candidates,
    generate_candidates,
    normalize_url,
    normalize_url_key,
    site_name,
)

# -----------------------------------------------------------------------
# normalize_url
# -----------------------------------------------------------------------


class TestNormalizeUrl:
    def test_compound_tld(self):
        """docs.example.co.uk splits into docs / example / co.uk."""
        parts = normalize_url("https://docs.example.co.uk")
        assert parts.base_domain == "example"
        assert parts.tld == "co.uk"
        assert parts.subdomain == "docs"
        assert parts.full_domain == "example.co.uk"
        assert parts.has_subdomain is True

    def test_compound_tld_without_subdomain(self):
        parts = normalize_url("example.com.au")
        assert parts.base_domain == "example"
        assert parts.tld == "com.au"
        assert parts.subdomain is None

    def test_simple_domain_gets_https(self):
        """Bare domains are treated as https URLs."""
        parts = normalize_url("example.com")
        assert parts.protocol == "https"
        assert parts.hostname == "example.com"
        assert parts.base_domain == "example"
        assert parts.tld == "com"
        assert parts.has_subdomain is False

    def test_http_scheme_preserved(self):
        assert normalize_url("http://example.com").protocol == "http"

    def test_www_is_not_a_subdomain(self):
        parts = normalize_url("https://www.example.com")
        assert parts.subdomain is None
        assert parts.has_subdomain is False
        assert parts.hostname == "www.example.com"

    def test_nested_subdomain(self):
        parts = normalize_url("https://api.docs.example.com")
        assert parts.subdomain == "api.docs"
        assert parts.full_domain == "example.com"

    def test_path_and_host_case(self):
        """Host is lower-cased, path kept as given."""
        parts = normalize_url("https://Docs.Example.com/Guide/")
        assert parts.hostname == "docs.example.com"
        assert parts.path == "/Guide/"

    def test_port_kept_in_origin(self):
        parts = normalize_url("http://localhost:8080/docs")
        assert parts.origin == "http://localhost:8080"
        assert parts.tld == ""
        assert parts.base_domain == "localhost"

    def test_ip_address(self):
        parts = normalize_url("http://192.168.1.10")
        assert parts.base_domain == "192.168.1.10"
        assert parts.full_domain == "192.168.1.10"
        assert parts.has_subdomain is False

    @pytest.mark.parametrize(
        "raw",
        ["", "   ", "https://", "https://exa mple.com", "https://example.com:notaport"],
    )
    def test_invalid_input_raises(self, raw):
        """Unparseable input raises InvalidUrlError."""
        with pytest.raises(InvalidUrlError):
            normalize_url(raw)

    def test_invalid_url_error_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_url("")


# -----------------------------------------------------------------------
# Candidate generation
# -----------------------------------------------------------------------


class TestGenerateCandidates:
    def test_explicit_subdomain_first(self):
        """A user-supplied subdomain gets priority 0."""
        candidates = generate_candidates(normalize_url("https://dev.acme.io"))
        assert candidates[0].url == "https://dev.acme.io"
        assert candidates[0].priority == 0
        assert candidates[0].source == "user-provided-subdomain"

    def test_no_user_candidate_for_bare_domain(self):
        candidates = generate_candidates(normalize_url("acme.io"))
        assert candidates[0].source == "main-domain"
        assert candidates[0].priority == 5
        assert candidates[1].url == "https://www.acme.io"
        assert candidates[1].priority == 6

    def test_user_path_candidate(self):
        candidates = generate_candidates(normalize_url("https://acme.io/platform/docs/"))
        path_candidates = [c for c in candidates if c.source == "user-provided-path"]
        assert path_candidates[0].url == "https://acme.io/platform/docs"
        assert path_candidates[0].priority == 1

    def test_subdomain_table_order(self):
        """Subdomain candidates follow the table order with offset priorities."""
        candidates = generate_candidates(normalize_url("acme.io"))
        subs = [c for c in candidates if c.source == "subdomain-pattern"]
        assert [c.url for c in subs[:3]] == [
            "https://docs.acme.io",
            "https://api-docs.acme.io",
            "https://documentation.acme.io",
        ]
        assert [c.priority for c in subs[:3]] == [10, 11, 12]
        assert len(subs) == len(DOC_SUBDOMAINS)

    def test_path_patterns_on_bare_and_www(self):
        candidates = generate_candidates(normalize_url("acme.io"))
        urls = {c.url for c in candidates if c.source == "path-pattern"}
        assert "https://acme.io/docs" in urls
        assert "https://www.acme.io/docs" in urls
        assert len(urls) == 2 * len(DOC_PATHS)

    def test_sorted_by_priority(self):
        candidates = generate_candidates(normalize_url("https://docs.acme.io/x"))
        priorities = [c.priority for c in candidates]
        assert priorities == sorted(priorities)

    def test_deterministic(self):
        """The same input always yields the same candidate list."""
        a = generate_candidates(normalize_url("acme.io"))
        b = generate_candidates(normalize_url("acme.io"))
        assert a == b

    def test_user_subdomain_deduped_with_table_entry(self):
        """docs.acme.io appears once, at the user-provided priority."""
        candidates = generate_candidates(normalize_url("https://docs.acme.io"))
        docs = [c for c in candidates if c.url == "https://docs.acme.io"]
        assert len(docs) == 1
        assert docs[0].priority == 0


class TestDedupe:
    def test_case_and_trailing_slash_insensitive(self):
        """Lowest priority wins among case/trailing-slash variants."""
        candidates = [
            DiscoveredCandidate(url="https://Example.com/docs/", priority=30, source="b"),
            DiscoveredCandidate(url="https://example.com/docs", priority=20, source="a"),
        ]
        result = dedupe_candidates(candidates)
        assert len(result) == 1
        assert result[0].source == "a"

    def test_first_seen_wins_on_equal_priority(self):
        candidates = [
            DiscoveredCandidate(url="https://example.com/x", priority=5, source="first"),
            DiscoveredCandidate(url="https://example.com/x/", priority=5, source="second"),
        ]
        assert dedupe_candidates(candidates)[0].source == "first"


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


class TestHelpers:
    def test_normalize_url_key(self):
        assert normalize_url_key("HTTPS://Example.COM/Docs/") == "https://example.com/Docs"
        assert normalize_url_key("example.com") == "https://example.com"
        assert normalize_url_key("https://a.com/x?y=1") == "https://a.com/x?y=1"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://docs.stripe.com/api", "stripe"),
            ("https://www.anthropic.com", "anthropic"),
            ("vercel.com", "vercel"),
        ],
    )
    def test_site_name(self, url, expected):
        assert site_name(url) == expected
