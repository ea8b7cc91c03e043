# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""SigV4 canonical request construction.

The canonical request is::

    <method>\\n
    <canonical URI>\\n
    <canonical query string>\\n
    <canonical headers>\\n
    <signed header names>\\n
    <payload hash>

Its SHA-256 is what the string to sign commits to.  Every collection that
feeds it is sorted, so identical input always yields identical bytes.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field

from obj_store_auth.sigv4.encoding import (
    canonical_encode,
    squeeze_whitespace,
    to_bytes,
)
from obj_store_auth.sigv4.request import RequestView


UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

EMPTY_PAYLOAD_SHA256 = hashlib.sha256(b"").hexdigest()

DEFAULT_EXCLUDED_HEADERS = frozenset({"x-forwarded-for", "forwarded", "via"})

# Names with this prefix are proxy-internal and never leave the proxy
_INTERNAL_HEADER_PREFIX = "@"

_AMZ_HEADER_PREFIX = "x-amz-"
_MANDATORY_HEADERS = frozenset({"host", "content-type"})


def parse_header_names(value: str | Iterable[str] | None) -> frozenset[str]:
    """Parse a header name list from configuration.

    Accepts either a comma-separated string (``"Via, X-Foo"``) or an
    iterable of names.  Names are trimmed and lower-cased; empty entries
    are dropped.

    Args:
        value: Raw config value, or None.

    Returns:
        Set of lower-cased header names.
    """
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    names = (str(item).strip().lower() for item in items)
    return frozenset(name for name in names if name)


def is_mandatory_header(name: str) -> bool:
    """True if a lower-cased header name must always be signed."""
    return name in _MANDATORY_HEADERS or name.startswith(_AMZ_HEADER_PREFIX)


@dataclass(frozen=True)
class HeaderPolicy:
    """Which optional headers get signed.

    ``host``, ``content-type`` and ``x-amz-*`` are always signed and
    ``@``-prefixed internal headers never are, whatever the policy says.

    Attributes:
        included: If non-empty, only these optional headers are signed.
        excluded: Optional headers that are never signed.  Proxies rewrite
            these, so signing them would break the signature downstream.
    """

    included: frozenset[str] = field(default_factory=frozenset)
    excluded: frozenset[str] = DEFAULT_EXCLUDED_HEADERS

    @classmethod
    def from_lists(
        cls,
        included: str | Iterable[str] | None = None,
        excluded: str | Iterable[str] | None = None,
    ) -> HeaderPolicy:
        """Build a policy from config values.

        An empty or missing exclusion list keeps the default exclusions.
        """
        excluded_names = parse_header_names(excluded)
        return cls(
            included=parse_header_names(included),
            excluded=excluded_names or DEFAULT_EXCLUDED_HEADERS,
        )

    def should_sign(self, name: str) -> bool:
        """Decide whether a lower-cased header name is signed."""
        if is_mandatory_header(name):
            return True
        if name.startswith(_INTERNAL_HEADER_PREFIX):
            return False
        if name in self.excluded:
            return False
        return not self.included or name in self.included


DEFAULT_HEADER_POLICY = HeaderPolicy()


@dataclass(frozen=True)
class CanonicalRequest:
    """A canonical request and the headers it covers.

    Attributes:
        text: The canonical request string.
        signed_headers: Sorted lower-cased names of the signed headers.
    """

    text: str
    signed_headers: tuple[str, ...]

    @property
    def sha256(self) -> str:
        """Lower-case hex SHA-256 of the canonical request."""
        return hashlib.sha256(to_bytes(self.text)).hexdigest()


def payload_sha256(sign_payload: bool) -> str:
    """Return the payload hash for the canonical request.

    Only empty payloads can be signed; everything else is sent unsigned.

    Args:
        sign_payload: Whether the (empty) payload is signed.

    Returns:
        Hex SHA-256 of the empty payload, or ``UNSIGNED-PAYLOAD``.
    """
    if not sign_payload:
        return UNSIGNED_PAYLOAD
    return EMPTY_PAYLOAD_SHA256


def canonical_uri(path: str, params: str = "") -> str:
    """Build the canonical URI from a path without its leading ``/``."""
    uri = "/" + path
    if params:
        uri += ";" + params
    return canonical_encode(uri, is_object_name=True)


def _split_query(query: str) -> list[str]:
    # A trailing "&" does not produce an extra empty parameter
    tokens = query.split("&")
    if tokens[-1] == "":
        tokens.pop()
    return tokens


def canonical_query_string(query: str) -> str:
    """Build the canonical query string.

    Names and values are encoded separately and the pairs sorted by
    encoded name.  When a name repeats, the last value wins.

    Args:
        query: Query string without the leading ``?``.

    Returns:
        Canonical query string.
    """
    params: dict[str, str] = {}
    for token in _split_query(query):
        name, _, value = token.partition("=")
        params[canonical_encode(name)] = canonical_encode(value)

    names = sorted(params, key=to_bytes)
    return "&".join(f"{name}={params[name]}" for name in names)


def canonical_headers(
    headers: Iterable[tuple[str, str]], policy: HeaderPolicy
) -> tuple[str, tuple[str, ...]]:
    """Build the canonical headers block.

    Names are lower-cased, values trimmed and squeezed, and repeated
    headers merged into one comma-separated value in request order.

    Args:
        headers: Request header pairs.
        policy: Header selection policy.

    Returns:
        Tuple of (block of ``name:value\\n`` lines, sorted signed names).
    """
    merged: dict[str, list[str]] = {}
    for name, value in headers:
        if not name:
            continue
        lower_name = name.lower()
        if not policy.should_sign(lower_name):
            continue
        merged.setdefault(lower_name, []).append(squeeze_whitespace(value))

    signed = tuple(sorted(merged, key=to_bytes))
    block = "".join(f"{name}:{','.join(merged[name])}\n" for name in signed)
    return block, signed


def build_canonical_request(
    request: RequestView,
    policy: HeaderPolicy = DEFAULT_HEADER_POLICY,
    sign_payload: bool = False,
) -> CanonicalRequest:
    """Build the canonical request for *request*.

    Args:
        request: The request to canonicalize.
        policy: Header selection policy.
        sign_payload: Whether the (empty) payload is signed.

    Returns:
        CanonicalRequest with the text and signed header names.
    """
    headers_block, signed = canonical_headers(request.headers(), policy)
    text = "\n".join(
        [
            request.method,
            canonical_uri(request.path, request.params),
            canonical_query_string(request.query),
            headers_block,
            ";".join(signed),
            payload_sha256(sign_payload),
        ]
    )
    return CanonicalRequest(text=text, signed_headers=signed)


def canonicalize(
    request: RequestView,
    policy: HeaderPolicy = DEFAULT_HEADER_POLICY,
    sign_payload: bool = False,
) -> tuple[str, list[str]]:
    """Hash the canonical request of *request*.

    Returns:
        Tuple of (hex SHA-256 of the canonical request, signed names).
    """
    creq = build_canonical_request(request, policy, sign_payload)
    return creq.sha256, list(creq.signed_headers)
