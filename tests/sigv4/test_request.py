# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for StaticRequest."""

from obj_store_auth.sigv4.request import RequestView, StaticRequest


class TestStaticRequestFromUrl:
    """Tests for StaticRequest.from_url."""

    def test_fields(self) -> None:
        """Method, host, path and query are split out of the URL."""
        request = StaticRequest.from_url(
            "get", "https://examplebucket.s3.amazonaws.com/a/b.txt?acl"
        )
        assert isinstance(request, RequestView)
        assert request.method == "GET"
        assert request.host == "examplebucket.s3.amazonaws.com"
        assert request.path == "a/b.txt"
        assert request.query == "acl"

    def test_host_case_kept(self) -> None:
        """The host keeps its case and matches the Host header."""
        request = StaticRequest.from_url(
            "GET", "https://Minio.Internal:9000/key"
        )
        assert request.host == "Minio.Internal"
        assert ("Host", "Minio.Internal:9000") in list(request.headers())

    def test_userinfo_and_ipv6(self) -> None:
        """Userinfo is dropped and IPv6 brackets removed."""
        assert StaticRequest.from_url("GET", "http://u@h.local:1/").host == (
            "h.local"
        )
        assert StaticRequest.from_url("GET", "http://[::1]:9000/").host == (
            "::1"
        )

    def test_existing_host_header_kept(self) -> None:
        """A given Host header is not duplicated."""
        request = StaticRequest.from_url(
            "GET", "https://h.local/", [("host", "other.local")]
        )
        assert list(request.headers()) == [("host", "other.local")]
