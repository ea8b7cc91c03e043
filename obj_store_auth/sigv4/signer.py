# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 header signing.

``SigV4Signer`` computes the ``Authorization`` header value for one
request.  It only computes; applying the header is up to the caller.

The timestamp is captured once when the signer is created.  Every value
the signer returns is derived from that snapshot, so repeated calls on
the same signer always agree.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from obj_store_auth.sigv4.canonical import (
    DEFAULT_HEADER_POLICY,
    CanonicalRequest,
    HeaderPolicy,
    build_canonical_request,
    payload_sha256,
)
from obj_store_auth.sigv4.region import DEFAULT_REGION_MAP, resolve_region
from obj_store_auth.sigv4.request import RequestView


logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"

SIGV4_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

_SCOPE_TERMINATOR = "aws4_request"


@dataclass(frozen=True)
class Credentials:
    """Credentials used to sign requests.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key (never shown in repr).
        service: Service name in the credential scope.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    service: str = "s3"


def format_timestamp(now: datetime | None = None) -> str:
    """Format *now* as a SigV4 timestamp (``YYYYMMDDTHHMMSSZ``).

    Naive datetimes are taken to be UTC.  Defaults to the current time.
    """
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(UTC).strftime(SIGV4_TIMESTAMP_FORMAT)


def hmac_sha256(key: bytes, message: str | bytes) -> bytes:
    """HMAC-SHA256 helper."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str, date: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key.

    Args:
        secret_key: AWS secret access key.
        date: Date string (YYYYMMDD).
        region: AWS region.
        service: AWS service name.

    Returns:
        Derived signing key bytes.
    """
    k_date = hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, _SCOPE_TERMINATOR)


def credential_scope(date: str, region: str, service: str) -> str:
    """Build the credential scope (date/region/service/aws4_request)."""
    return f"{date}/{region}/{service}/{_SCOPE_TERMINATOR}"


def build_string_to_sign(
    timestamp: str, scope: str, canonical_request_hash: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        timestamp: SigV4 timestamp (YYYYMMDDTHHMMSSZ).
        scope: Credential scope.
        canonical_request_hash: Hex SHA-256 of the canonical request.

    Returns:
        String to sign.
    """
    return "\n".join([ALGORITHM, timestamp, scope, canonical_request_hash])


def sign(signing_key: bytes, string_to_sign: str) -> str:
    """Compute the hex-encoded signature of *string_to_sign*."""
    return hmac_sha256(signing_key, string_to_sign).hex()


class SigV4Signer:
    """Signs a single request with SigV4.

    The signer keeps only values that are fixed at construction time
    and never changes them afterwards, so one instance can be read from
    several threads as long as the request view itself is not mutated.
    """

    def __init__(
        self,
        request: RequestView,
        now: datetime | None,
        sign_payload: bool,
        credentials: Credentials,
        policy: HeaderPolicy | None = None,
        region_map: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            request: The request to sign.
            now: Signing time; None means the current time.
            sign_payload: Sign the (empty) payload instead of sending
                ``UNSIGNED-PAYLOAD``.
            credentials: Signing credentials and service name.
            policy: Header selection policy; defaults to
                ``DEFAULT_HEADER_POLICY``.
            region_map: Host to region table; None or empty uses
                ``DEFAULT_REGION_MAP``.
        """
        self._request = request
        self._date_time = format_timestamp(now)
        self._sign_payload = sign_payload
        self._credentials = credentials
        self._policy = policy if policy is not None else DEFAULT_HEADER_POLICY
        self._region_map = region_map or DEFAULT_REGION_MAP

    @property
    def date_time(self) -> str:
        """The frozen signing timestamp (YYYYMMDDTHHMMSSZ)."""
        return self._date_time

    @property
    def date(self) -> str:
        """Date part of the signing timestamp (YYYYMMDD)."""
        return self._date_time[:8]

    @property
    def region(self) -> str:
        """Region resolved from the request host."""
        return resolve_region(self._region_map, self._request.host)

    def payload_hash(self) -> str:
        """Value for the ``x-amz-content-sha256`` header."""
        return payload_sha256(self._sign_payload)

    def canonical_request(self) -> CanonicalRequest:
        """Build the canonical request this signer signs."""
        return build_canonical_request(
            self._request, self._policy, self._sign_payload
        )

    def authorization_header(self) -> str:
        """Compute the ``Authorization`` header value.

        Returns:
            ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=...,
            Signature=...``
        """
        creq = self.canonical_request()
        logger.debug("Canonical request:\n%s", creq.text)

        region = self.region
        service = self._credentials.service
        scope = credential_scope(self.date, region, service)
        string_to_sign = build_string_to_sign(
            self._date_time, scope, creq.sha256
        )
        logger.debug("String to sign:\n%s", string_to_sign)

        signing_key = derive_signing_key(
            self._credentials.secret_access_key, self.date, region, service
        )
        signature = sign(signing_key, string_to_sign)

        return (
            f"{ALGORITHM} "
            f"Credential={self._credentials.access_key_id}/{scope}, "
            f"SignedHeaders={';'.join(creq.signed_headers)}, "
            f"Signature={signature}"
        )
