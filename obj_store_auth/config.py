# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for the signing proxy and CLI.

Configuration is loaded from a YAML file.  The default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/obj-store-auth/obj_store_auth.yaml``
    (typically ``~/.config/obj-store-auth/obj_store_auth.yaml``)

``!env`` tags resolve values from environment variables, so secret keys
do not have to live in the file itself.

Example::

    service: s3
    sign_payload: false
    tenant_header: x-obj-store-tenant
    include_headers: []
    exclude_headers: x-forwarded-for, forwarded, via
    region_map:
      "": us-east-1
    credentials:
      - key: tenant-a
        bucket: my-bucket
        endpoint: s3.eu-west-3.amazonaws.com
        region: eu-west-3
        access_key: !env TENANT_A_ACCESS_KEY
        secret_key: !env TENANT_A_SECRET_KEY
    credentials_file: /etc/obj-store-auth/credentials.tsv

Tenants can also come from ``credentials_file``, a flat export of the
credential store: one ``<key>\\t<record>`` line per tenant, where the
record is ``bucket\\tendpoint\\tregion\\taccess_key\\tsecret_key``.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

import yaml
from platformdirs import user_config_path

from obj_store_auth.dotenv_loader import load_dotenv_once
from obj_store_auth.logging import SecretFilter
from obj_store_auth.sigv4.canonical import HeaderPolicy
from obj_store_auth.sigv4.region import DEFAULT_REGION_MAP
from obj_store_auth.sigv4.signer import Credentials


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "obj-store-auth"

DEFAULT_TENANT_HEADER = "x-obj-store-tenant"

_RECORD_FIELDS = ("bucket", "endpoint", "region", "access_key", "secret_key")

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


def get_config_path() -> Path:
    """Return the default config file path.

    Returns:
        ``$XDG_CONFIG_HOME/obj-store-auth/obj_store_auth.yaml``.
    """
    return user_config_path(_APP_NAME) / "obj_store_auth.yaml"


def get_dotenv_path() -> Path:
    """Return the ``.env`` path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


class ConfigError(Exception):
    """Raised when configuration is missing or malformed."""


# ---------------------------------------------------------------------------
# Credential records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialRecord:
    """Upstream object store credentials of one tenant.

    Attributes:
        bucket: Bucket requests are routed to; empty for none.
        endpoint: Upstream endpoint, ``host[:port]`` optionally prefixed
            with ``http://`` or ``https://`` (default https).
        region: Region to sign for; empty to resolve it from the host.
        access_key: AWS access key ID.
        secret_key: AWS secret access key (never shown in repr).
    """

    bucket: str
    endpoint: str
    region: str
    access_key: str
    secret_key: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ConfigError("Credential record has an empty endpoint")
        if not self.access_key or not self.secret_key:
            raise ConfigError(
                f"Credential record for {self.endpoint} is missing "
                "access_key or secret_key"
            )
        SecretFilter.register_secret(self.secret_key)

    @classmethod
    def from_record(cls, value: str) -> "CredentialRecord":
        """Parse a tab-separated credential store record.

        Args:
            value: ``bucket\\tendpoint\\tregion\\taccess_key\\tsecret_key``.

        Returns:
            CredentialRecord.

        Raises:
            ConfigError: If the record does not have five fields.
        """
        fields = value.rstrip("\r\n").split("\t")
        if len(fields) != len(_RECORD_FIELDS):
            raise ConfigError(
                f"Credential record must have {len(_RECORD_FIELDS)} "
                f"tab-separated fields, got {len(fields)}"
            )
        return cls(*fields)

    def to_record(self) -> str:
        """Serialize to the tab-separated store layout."""
        return "\t".join(
            [
                self.bucket,
                self.endpoint,
                self.region,
                self.access_key,
                self.secret_key,
            ]
        )

    @property
    def scheme(self) -> str:
        """URL scheme of the endpoint."""
        return urlsplit(self._endpoint_url).scheme

    @property
    def host(self) -> str:
        """Host name of the endpoint, without port."""
        return urlsplit(self._endpoint_url).hostname or ""

    @property
    def port(self) -> int:
        """Port of the endpoint, defaulting by scheme."""
        parts = urlsplit(self._endpoint_url)
        if parts.port is not None:
            return parts.port
        return 80 if parts.scheme == "http" else 443

    @property
    def netloc(self) -> str:
        """``host[:port]`` as it appears in the Host header."""
        return urlsplit(self._endpoint_url).netloc

    @property
    def _endpoint_url(self) -> str:
        if "://" in self.endpoint:
            return self.endpoint
        return "https://" + self.endpoint

    def credentials(self, service: str) -> Credentials:
        """Return signing credentials for *service*."""
        return Credentials(
            access_key_id=self.access_key,
            secret_access_key=self.secret_key,
            service=service,
        )


# ---------------------------------------------------------------------------
# YAML loading and value resolution
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its value, or stringify a literal.

    Returns None if the value is None or the env var is not set.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name)
    if value is None:
        return None
    return str(value)


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _resolve_bool(value: object, *, default: bool) -> bool:
    """Resolve a boolean value, handling ``!env`` tags."""
    if isinstance(value, bool):
        return value
    resolved = _raw_resolve(value)
    if resolved is None:
        return default
    return _coerce_bool(resolved)


def _resolve_str(
    value: object, *, default: str = "", required: str = ""
) -> str:
    """Resolve a string value, handling ``!env`` tags.

    Args:
        value: Raw YAML value.
        default: Returned when the value is absent.
        required: Human-readable field name.  When set, an absent value
            raises ``ConfigError``.

    Returns:
        The resolved string.
    """
    resolved = _raw_resolve(value)
    if resolved is not None:
        return resolved
    if required:
        if isinstance(value, _EnvVar):
            raise ConfigError(
                f"Required config '{required}': environment variable "
                f"'{value.var_name}' is not set"
            )
        raise ConfigError(f"Required config '{required}' is missing")
    return default


def _resolve_header_list(value: object, name: str) -> str | list[str] | None:
    """Resolve a header list given as a YAML list or comma string."""
    if value is None:
        return None
    if isinstance(value, list):
        return [v for v in (_raw_resolve(item) for item in value) if v]
    if isinstance(value, (str, _EnvVar)):
        return _raw_resolve(value)
    raise ConfigError(
        f"Config '{name}' must be a list or a comma-separated string, "
        f"got {type(value).__name__}"
    )


def _parse_region_map(value: object) -> Mapping[str, str]:
    """Parse the optional ``region_map`` mapping.

    A missing or empty mapping keeps the built-in table.
    """
    if value is None:
        return DEFAULT_REGION_MAP
    if not isinstance(value, dict):
        raise ConfigError("'region_map' must be a YAML mapping")
    if not value:
        return DEFAULT_REGION_MAP
    region_map = {
        "" if host is None else str(host): _resolve_str(region)
        for host, region in value.items()
    }
    return MappingProxyType(region_map)


def _parse_credential_entry(
    index: int, raw: object
) -> tuple[str, CredentialRecord]:
    """Parse one entry of the ``credentials`` list."""
    if not isinstance(raw, dict):
        raise ConfigError(f"credentials[{index}] must be a YAML mapping")

    key = _resolve_str(raw.get("key"), required=f"credentials[{index}].key")
    record = CredentialRecord(
        bucket=_resolve_str(raw.get("bucket")),
        endpoint=_resolve_str(
            raw.get("endpoint"), required=f"credentials[{index}].endpoint"
        ),
        region=_resolve_str(raw.get("region")),
        access_key=_resolve_str(
            raw.get("access_key"), required=f"credentials[{index}].access_key"
        ),
        secret_key=_resolve_str(
            raw.get("secret_key"), required=f"credentials[{index}].secret_key"
        ),
    )
    return key, record


def load_credentials_file(path: Path) -> dict[str, CredentialRecord]:
    """Load tenants from a ``<key>\\t<record>`` file.

    Blank lines and lines starting with ``#`` are skipped.

    Args:
        path: Path to the credentials file.

    Returns:
        Records keyed by tenant.

    Raises:
        ConfigError: If the file cannot be read, a line is malformed or a
            key repeats.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(
            f"Could not read credentials file {path}: {exc}"
        ) from exc

    tenants: dict[str, CredentialRecord] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        key, sep, record = line.partition("\t")
        if not sep or not key:
            raise ConfigError(f"{path}:{lineno}: expected '<key>\\t<record>'")
        try:
            parsed = CredentialRecord.from_record(record)
        except ConfigError as exc:
            raise ConfigError(f"{path}:{lineno}: {exc}") from exc
        if key in tenants:
            raise ConfigError(f"{path}:{lineno}: duplicate tenant key '{key}'")
        tenants[key] = parsed
    return tenants


# ---------------------------------------------------------------------------
# Top-level configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthConfig:
    """Complete signing configuration.

    Attributes:
        tenants: Credential records keyed by tenant.
        service: Service name used in the credential scope.
        sign_payload: Sign the empty payload instead of sending
            ``UNSIGNED-PAYLOAD``.
        tenant_header: Request header carrying the tenant key.
        policy: Header selection policy.
        region_map: Host to region table.
    """

    tenants: Mapping[str, CredentialRecord]
    service: str = "s3"
    sign_payload: bool = False
    tenant_header: str = DEFAULT_TENANT_HEADER
    policy: HeaderPolicy = field(default_factory=HeaderPolicy)
    region_map: Mapping[str, str] = field(
        default_factory=lambda: DEFAULT_REGION_MAP
    )

    def __post_init__(self) -> None:
        """Validate and log a summary.

        Raises:
            ConfigError: If validation fails.
        """
        if not self.service:
            raise ConfigError("'service' must not be empty")
        if not self.tenant_header:
            raise ConfigError("'tenant_header' must not be empty")

        logger.info(
            "Signing config loaded: %d tenants, service=%s, sign_payload=%s",
            len(self.tenants),
            self.service,
            self.sign_payload,
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "AuthConfig":
        """Load configuration from a YAML file.

        ``.env`` files are loaded first so ``!env`` tags can use them.

        Args:
            config_path: Path to the YAML file.  Defaults to the XDG
                location.

        Returns:
            AuthConfig instance.

        Raises:
            ConfigError: If the file is missing or a value is invalid.
        """
        load_dotenv_once(get_dotenv_path())

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            with open(config_path) as f:
                raw = yaml.load(f, Loader=_make_loader())
        except yaml.YAMLError as exc:
            raise ConfigError(
                f"Invalid YAML in config file {config_path}: {exc}"
            ) from exc

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        return cls.from_raw(raw, base_dir=config_path.parent)

    @classmethod
    def from_raw(
        cls, raw: dict[str, Any], base_dir: Path | None = None
    ) -> "AuthConfig":
        """Build config from a parsed (but unresolved) YAML mapping.

        Args:
            raw: Parsed YAML.
            base_dir: Directory relative ``credentials_file`` paths are
                resolved against.  Defaults to the working directory.
        """
        tenants: dict[str, CredentialRecord] = {}

        credentials_file = raw.get("credentials_file")
        if credentials_file is not None:
            path = Path(_resolve_str(credentials_file)).expanduser()
            if not path.is_absolute() and base_dir is not None:
                path = base_dir / path
            tenants.update(load_credentials_file(path))

        raw_credentials = raw.get("credentials", [])
        if raw_credentials is None:
            raw_credentials = []
        if not isinstance(raw_credentials, list):
            raise ConfigError("'credentials' must be a YAML list")
        for index, entry in enumerate(raw_credentials):
            key, record = _parse_credential_entry(index, entry)
            if key in tenants:
                raise ConfigError(f"Duplicate tenant key '{key}'")
            tenants[key] = record

        policy = HeaderPolicy.from_lists(
            _resolve_header_list(raw.get("include_headers"), "include_headers"),
            _resolve_header_list(raw.get("exclude_headers"), "exclude_headers"),
        )

        return cls(
            tenants=MappingProxyType(tenants),
            service=_resolve_str(raw.get("service"), default="s3"),
            sign_payload=_resolve_bool(raw.get("sign_payload"), default=False),
            tenant_header=_resolve_str(
                raw.get("tenant_header"), default=DEFAULT_TENANT_HEADER
            ).lower(),
            policy=policy,
            region_map=_parse_region_map(raw.get("region_map")),
        )

    def lookup(self, key: str) -> CredentialRecord | None:
        """Return the record for tenant *key*, if any."""
        return self.tenants.get(key)

    def region_map_for(self, record: CredentialRecord) -> Mapping[str, str]:
        """Region table for signing requests to *record*'s endpoint.

        For a record with its own region this is a table whose only entry
        is that region as the fallback, so every host resolves to it.
        """
        if not record.region:
            return self.region_map
        return MappingProxyType({"": record.region})
