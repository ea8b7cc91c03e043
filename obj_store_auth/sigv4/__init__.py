# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS SigV4 signing engine.

Pure functions and immutable values only: no clock reads after a signer
is created, no I/O, no shared mutable state.
"""

from obj_store_auth.sigv4.canonical import (
    DEFAULT_EXCLUDED_HEADERS,
    DEFAULT_HEADER_POLICY,
    EMPTY_PAYLOAD_SHA256,
    UNSIGNED_PAYLOAD,
    CanonicalRequest,
    HeaderPolicy,
    build_canonical_request,
    canonicalize,
    payload_sha256,
)
from obj_store_auth.sigv4.encoding import (
    canonical_encode,
    is_uri_encoded,
    uri_encode,
)
from obj_store_auth.sigv4.region import DEFAULT_REGION_MAP, resolve_region
from obj_store_auth.sigv4.request import RequestView, StaticRequest
from obj_store_auth.sigv4.signer import (
    SIGV4_TIMESTAMP_FORMAT,
    Credentials,
    SigV4Signer,
    derive_signing_key,
    hmac_sha256,
)


__all__ = [
    # canonical
    "DEFAULT_EXCLUDED_HEADERS",
    "DEFAULT_HEADER_POLICY",
    "EMPTY_PAYLOAD_SHA256",
    "UNSIGNED_PAYLOAD",
    "CanonicalRequest",
    "HeaderPolicy",
    "build_canonical_request",
    "canonicalize",
    "payload_sha256",
    # encoding
    "canonical_encode",
    "is_uri_encoded",
    "uri_encode",
    # region
    "DEFAULT_REGION_MAP",
    "resolve_region",
    # request
    "RequestView",
    "StaticRequest",
    # signer
    "SIGV4_TIMESTAMP_FORMAT",
    "Credentials",
    "SigV4Signer",
    "derive_signing_key",
    "hmac_sha256",
]
