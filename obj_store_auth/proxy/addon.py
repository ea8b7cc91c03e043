# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""mitmproxy addon that signs object store requests with SigV4.

Clients talk to the proxy without AWS credentials.  Each request names
its tenant in a header (``x-obj-store-tenant`` by default, falling back
to the Host the client asked for).  The addon looks up the tenant's
credential record, routes the request to the record's endpoint and
bucket, and adds ``x-amz-date``, ``x-amz-content-sha256`` and
``Authorization``.

Blocked requests get a JSON error response:

- 503 when no configuration could be loaded
- 403 for unknown tenants
- 501 for non-empty bodies when payload signing is enabled (only the
  empty payload can be signed)

Usage:
    mitmdump -s obj_store_auth/proxy/addon.py \\
        --set obj_store_auth_config=/etc/obj-store-auth/obj_store_auth.yaml
"""

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from mitmproxy import ctx, http
from mitmproxy.addonmanager import Loader

from obj_store_auth.config import AuthConfig, ConfigError, CredentialRecord
from obj_store_auth.proxy.request_view import FlowRequestView
from obj_store_auth.sigv4.signer import SigV4Signer


logger = logging.getLogger(__name__)

CONFIG_OPTION = "obj_store_auth_config"

_META_TENANT = "obj_store_tenant"
_META_REGION = "obj_store_region"
_META_ACTION = "obj_store_action"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _error_response(status: int, error: str, message: str) -> http.Response:
    """Build a JSON error response."""
    return http.Response.make(
        status,
        json.dumps({"error": error, "message": message}),
        {"Content-Type": "application/json"},
    )


class ObjStoreAuth:
    """mitmproxy addon that signs requests with per-tenant credentials."""

    def __init__(
        self,
        config: AuthConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the addon.

        Args:
            config: Signing configuration.  When None it is loaded from
                the ``obj_store_auth_config`` option on startup.
            clock: Source of the signing time.
        """
        self.config = config
        self._clock = clock

    def load(self, loader: Loader) -> None:
        """Register the config path option."""
        loader.add_option(
            name=CONFIG_OPTION,
            typespec=str,
            default="",
            help="Path to obj_store_auth.yaml (default: XDG config path)",
        )

    def configure(self, updated: set[str]) -> None:
        """(Re)load the signing configuration when its option changes."""
        if CONFIG_OPTION not in updated:
            return

        option = getattr(ctx.options, CONFIG_OPTION)
        config_path = Path(option) if option else None
        try:
            self.config = AuthConfig.from_yaml(config_path)
        except ConfigError as e:
            logger.error(
                "Failed to load signing config: %s. "
                "All requests will be blocked.",
                e,
            )
            self.config = None

    def _tenant_key(self, flow: http.HTTPFlow, config: AuthConfig) -> str:
        """Tenant named by the request, falling back to its host."""
        key = flow.request.headers.get(config.tenant_header, "")
        return key or flow.request.pretty_host

    def _route(self, request: http.Request, record: CredentialRecord) -> None:
        """Point *request* at the record's endpoint and bucket."""
        request.scheme = record.scheme
        request.host = record.host
        request.port = record.port
        request.host_header = record.netloc
        if record.bucket:
            request.path = f"/{record.bucket}{request.path}"

    def _sign(
        self,
        request: http.Request,
        record: CredentialRecord,
        config: AuthConfig,
    ) -> SigV4Signer:
        """Add the SigV4 headers to *request*."""
        signer = SigV4Signer(
            FlowRequestView(request),
            self._clock(),
            config.sign_payload,
            record.credentials(config.service),
            config.policy,
            config.region_map_for(record),
        )
        # The date and payload hash headers are signed too, so they must
        # be on the request before the Authorization value is computed.
        request.headers["x-amz-date"] = signer.date_time
        request.headers["x-amz-content-sha256"] = signer.payload_hash()
        request.headers["Authorization"] = signer.authorization_header()
        return signer

    def request(self, flow: http.HTTPFlow) -> None:
        """Resolve the tenant, route and sign the request."""
        config = self.config
        method = flow.request.method
        url = flow.request.pretty_url

        if config is None:
            flow.metadata[_META_ACTION] = "blocked"
            logger.warning("BLOCKED %s %s -> 503 (no config)", method, url)
            flow.response = _error_response(
                503,
                "not_configured",
                "The signing proxy has no valid configuration.",
            )
            return

        tenant = self._tenant_key(flow, config)
        record = config.lookup(tenant)
        if record is None:
            flow.metadata[_META_ACTION] = "blocked"
            logger.warning(
                "BLOCKED %s %s -> 403 (unknown tenant %r)", method, url, tenant
            )
            flow.response = _error_response(
                403,
                "unknown_tenant",
                f"No credentials are configured for tenant '{tenant}'.",
            )
            return

        has_body = flow.request.stream or flow.request.raw_content
        if config.sign_payload and has_body:
            flow.metadata[_META_ACTION] = "blocked"
            logger.warning(
                "BLOCKED %s %s -> 501 (non-empty payload)", method, url
            )
            flow.response = _error_response(
                501,
                "payload_signing_unsupported",
                "Only requests with an empty body can be signed.",
            )
            return

        flow.request.headers.pop(config.tenant_header, None)
        flow.request.headers.pop("Authorization", None)
        self._route(flow.request, record)
        signer = self._sign(flow.request, record, config)

        flow.metadata[_META_ACTION] = "signed"
        flow.metadata[_META_TENANT] = tenant
        flow.metadata[_META_REGION] = signer.region

    def response(self, flow: http.HTTPFlow) -> None:
        """Log signed requests with their response status."""
        if flow.metadata.get(_META_ACTION) != "signed":
            return

        code = flow.response.status_code if flow.response else "?"
        logger.info(
            "signed %s %s -> %s [tenant: %s] [region: %s]",
            flow.request.method,
            flow.request.pretty_url,
            code,
            flow.metadata.get(_META_TENANT),
            flow.metadata.get(_META_REGION),
        )

    def error(self, flow: http.HTTPFlow) -> None:
        """Log upstream connection errors for signed requests."""
        if flow.metadata.get(_META_ACTION) != "signed":
            return

        msg = flow.error.msg if flow.error else "unknown error"
        logger.warning(
            "ERROR %s %s -> %s",
            flow.request.method,
            flow.request.pretty_url,
            msg,
        )


addons = [ObjStoreAuth()]
