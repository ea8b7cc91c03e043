# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""``RequestView`` over a live mitmproxy request."""

from __future__ import annotations

from collections.abc import Iterator

from mitmproxy import http


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


class FlowRequestView:
    """Read-only signing view of a ``mitmproxy.http.Request``.

    Reads through to the request on every access, so headers set on the
    request after the view was created (``x-amz-date``, for example) are
    part of the signature.
    """

    def __init__(self, request: http.Request) -> None:
        self._request = request

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def host(self) -> str:
        return self._request.host

    @property
    def path(self) -> str:
        path, _, _ = self._request.path.partition("?")
        return path.removeprefix("/")

    @property
    def params(self) -> str:
        # mitmproxy keeps ";params" inside the path
        return ""

    @property
    def query(self) -> str:
        _, _, query = self._request.path.partition("?")
        return query

    def headers(self) -> Iterator[tuple[str, str]]:
        """Yield raw header fields, duplicates included.

        HTTP/2 requests carry the host in ``:authority`` instead of a
        ``Host`` header; it is reported as ``host`` so it gets signed.
        """
        has_host = False
        for name, value in self._request.headers.fields:
            decoded = _decode(name)
            if decoded.lower() == "host":
                has_host = True
            yield decoded, _decode(value)

        if not has_host and self._request.host_header:
            yield "host", self._request.host_header
