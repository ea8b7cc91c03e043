# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for FlowRequestView."""

from mitmproxy import http

from obj_store_auth.proxy.request_view import FlowRequestView
from obj_store_auth.sigv4.canonical import (
    DEFAULT_HEADER_POLICY,
    canonical_headers,
)
from obj_store_auth.sigv4.request import RequestView


def _request(url: str, headers: object = ()) -> http.Request:
    return http.Request.make("GET", url, b"", headers)  # type: ignore[arg-type]


class TestFlowRequestView:
    """Tests for the mitmproxy request view."""

    def test_is_request_view(self) -> None:
        """The view satisfies the RequestView protocol."""
        view = FlowRequestView(_request("https://example.com/"))
        assert isinstance(view, RequestView)

    def test_method_and_host(self) -> None:
        """Method and host come from the request."""
        view = FlowRequestView(
            http.Request.make("PUT", "https://s3.amazonaws.com:8443/k")
        )
        assert view.method == "PUT"
        assert view.host == "s3.amazonaws.com"

    def test_path_and_query_split(self) -> None:
        """The path loses its leading slash and the query is split off."""
        view = FlowRequestView(
            _request("https://example.com/bucket/a%20b.txt?x-id=1&acl")
        )
        assert view.path == "bucket/a%20b.txt"
        assert view.query == "x-id=1&acl"
        assert view.params == ""

    def test_root_path(self) -> None:
        """The root path becomes empty."""
        view = FlowRequestView(_request("https://example.com/?lifecycle"))
        assert view.path == ""
        assert view.query == "lifecycle"

    def test_no_query(self) -> None:
        """Without ? the query is empty."""
        assert FlowRequestView(_request("https://example.com/k")).query == ""

    def test_duplicate_headers_kept(self) -> None:
        """Repeated headers are reported separately, in order."""
        request = _request(
            "https://example.com/",
            [
                (b"Host", b"example.com"),
                (b"X-Amz-Meta-A", b"1"),
                (b"x-amz-meta-a", b"2"),
            ],
        )
        headers = [
            (name, value)
            for name, value in FlowRequestView(request).headers()
            if name.lower() != "content-length"
        ]
        assert headers == [
            ("Host", "example.com"),
            ("X-Amz-Meta-A", "1"),
            ("x-amz-meta-a", "2"),
        ]

    def test_reads_through(self) -> None:
        """Headers set after the view was created are visible."""
        request = _request("https://example.com/", {"Host": "example.com"})
        view = FlowRequestView(request)
        request.headers["x-amz-date"] = "20130524T000000Z"
        assert ("x-amz-date", "20130524T000000Z") in list(view.headers())

    def test_http2_authority_reported_as_host(self) -> None:
        """Without a Host header the HTTP/2 authority is used."""
        request = _request("https://example.com/")
        request.http_version = "HTTP/2.0"
        request.authority = "example.com"

        headers = list(FlowRequestView(request).headers())

        assert ("host", "example.com") in headers

    def test_non_utf8_value_round_trips(self) -> None:
        """Undecodable bytes survive into the canonical headers."""
        request = _request(
            "https://example.com/",
            [(b"Host", b"example.com"), (b"x-amz-meta-raw", b"a\xffb")],
        )

        block, _ = canonical_headers(
            FlowRequestView(request).headers(), DEFAULT_HEADER_POLICY
        )

        assert "x-amz-meta-raw:a\udcffb\n" in block
