# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Read-only view of the HTTP request being signed.

The signer never owns a request object.  Callers hand it anything that
satisfies ``RequestView``: the proxy wraps a live mitmproxy request, the
CLI and tests use ``StaticRequest``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit


def _host_from_netloc(netloc: str) -> str:
    """Host part of *netloc*, without userinfo or port, case kept."""
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        return host[1:].partition("]")[0]
    return host.partition(":")[0]


@runtime_checkable
class RequestView(Protocol):
    """Accessors the signer needs from an HTTP request.

    Attributes:
        method: HTTP method (e.g. "GET").
        host: Host name the request is sent to, without port.
        path: Request path without the leading ``/`` and without query.
        params: Path parameters (the part after ``;``), usually empty.
        query: Query string without the leading ``?``.
    """

    @property
    def method(self) -> str: ...

    @property
    def host(self) -> str: ...

    @property
    def path(self) -> str: ...

    @property
    def params(self) -> str: ...

    @property
    def query(self) -> str: ...

    def headers(self) -> Iterable[tuple[str, str]]:
        """Yield ``(name, value)`` pairs in request order.

        Names may repeat and keep the case they were sent with.
        """
        ...


@dataclass(frozen=True)
class StaticRequest:
    """Request view over plain values.

    Attributes:
        method: HTTP method.
        host: Host name.
        path: Path without the leading ``/``.
        query: Query string without ``?``.
        header_list: Ordered ``(name, value)`` pairs.
        params: Path parameters.
    """

    method: str
    host: str
    path: str = ""
    query: str = ""
    header_list: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    params: str = ""

    def headers(self) -> Iterator[tuple[str, str]]:
        """Yield the stored header pairs."""
        return iter(self.header_list)

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        headers: Iterable[tuple[str, str]] = (),
        *,
        add_host: bool = True,
    ) -> StaticRequest:
        """Build a view from a URL.

        Args:
            method: HTTP method.
            url: Absolute URL, e.g. ``https://bucket.s3.amazonaws.com/key``.
            headers: Extra header pairs.
            add_host: Prepend a ``Host`` header (the URL's netloc) unless
                *headers* already has one.

        Returns:
            StaticRequest for the URL.
        """
        parts = urlsplit(url)
        header_list = list(headers)
        if add_host and not any(n.lower() == "host" for n, _ in header_list):
            header_list.insert(0, ("Host", parts.netloc))
        return cls(
            method=method.upper(),
            host=_host_from_netloc(parts.netloc),
            path=parts.path.removeprefix("/"),
            query=parts.query,
            header_list=tuple(header_list),
        )
