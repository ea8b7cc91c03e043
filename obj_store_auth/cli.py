# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""obj-store-auth CLI.

Subcommands:

* ``sign``: print the SigV4 Authorization header for a request
* ``check``: load the config file and summarize it (no secrets)

Examples::

    obj-store-auth sign GET https://examplebucket.s3.amazonaws.com/test.txt \\
        --tenant tenant-a -H "Range: bytes=0-9"

    obj-store-auth sign GET https://s3.eu-west-3.amazonaws.com/bucket/key \\
        --access-key AKIA... --secret-key ... --time 20130524T000000Z -v
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path

from obj_store_auth import __version__
from obj_store_auth.config import AuthConfig, ConfigError
from obj_store_auth.logging import SecretFilter, configure_logging
from obj_store_auth.sigv4.canonical import HeaderPolicy, payload_sha256
from obj_store_auth.sigv4.request import StaticRequest
from obj_store_auth.sigv4.signer import (
    SIGV4_TIMESTAMP_FORMAT,
    Credentials,
    SigV4Signer,
    format_timestamp,
)


logger = logging.getLogger(__name__)


def _parse_header(value: str) -> tuple[str, str]:
    """Parse a ``Name: value`` header argument."""
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(
            f"Header must look like 'Name: value', got {value!r}"
        )
    return name.strip(), header_value.strip()


def _parse_time(value: str) -> datetime:
    """Parse a ``YYYYMMDDTHHMMSSZ`` timestamp."""
    try:
        return datetime.strptime(value, SIGV4_TIMESTAMP_FORMAT).replace(
            tzinfo=UTC
        )
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"Time must be YYYYMMDDTHHMMSSZ, got {value!r}"
        ) from e


def _with_amz_headers(
    headers: list[tuple[str, str]], date_time: str, payload_hash: str
) -> list[tuple[str, str]]:
    """Add ``x-amz-date`` and ``x-amz-content-sha256`` unless present."""
    names = {name.lower() for name, _ in headers}
    result = list(headers)
    if "x-amz-date" not in names:
        result.append(("x-amz-date", date_time))
    if "x-amz-content-sha256" not in names:
        result.append(("x-amz-content-sha256", payload_hash))
    return result


def _build_signer(args: argparse.Namespace) -> SigV4Signer:
    """Build a signer from the ``sign`` arguments.

    With ``--tenant`` the credentials, policy and region table come from
    the config file.  Otherwise ``--access-key`` and ``--secret-key`` are
    used with the default policy and region table.

    Raises:
        ConfigError: If the config cannot be loaded or the tenant is
            unknown.
    """
    policy: HeaderPolicy | None = None
    region_map: Mapping[str, str] | None = None
    sign_payload = args.sign_payload

    if args.tenant:
        config = AuthConfig.from_yaml(args.config)
        record = config.lookup(args.tenant)
        if record is None:
            raise ConfigError(f"Unknown tenant: {args.tenant}")
        credentials = record.credentials(args.service or config.service)
        policy = config.policy
        region_map = config.region_map_for(record)
        sign_payload = sign_payload or config.sign_payload
    else:
        credentials = Credentials(
            access_key_id=args.access_key,
            secret_access_key=args.secret_key,
            service=args.service or "s3",
        )
        SecretFilter.register_secret(args.secret_key)

    now = args.time or datetime.now(UTC)
    request = StaticRequest.from_url(
        args.method,
        args.url,
        _with_amz_headers(
            args.headers, format_timestamp(now), payload_sha256(sign_payload)
        ),
    )
    if args.region:
        region_map = {"": args.region}

    logger.debug("Signing %s %s", request.method, args.url)
    return SigV4Signer(
        request, now, sign_payload, credentials, policy, region_map
    )


def cmd_sign(args: argparse.Namespace) -> int:
    """Print the Authorization header for a request.

    Returns:
        Exit code.
    """
    if not args.tenant and not (args.access_key and args.secret_key):
        print(
            "error: either --tenant or both --access-key and --secret-key "
            "are required",
            file=sys.stderr,
        )
        return 2

    try:
        signer = _build_signer(args)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    authorization = signer.authorization_header()

    if args.verbose:
        creq = signer.canonical_request()
        print(f"x-amz-date: {signer.date_time}")
        print(f"x-amz-content-sha256: {signer.payload_hash()}")
        print(f"region: {signer.region}")
        print()
        print("Canonical request:")
        print(creq.text)
        print()
        print("Authorization:")

    print(authorization)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Load the config and print a summary.

    Returns:
        Exit code.
    """
    try:
        config = AuthConfig.from_yaml(args.config)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"service: {config.service}")
    print(f"sign_payload: {str(config.sign_payload).lower()}")
    print(f"tenant_header: {config.tenant_header}")
    included = ", ".join(sorted(config.policy.included)) or "(all)"
    excluded = ", ".join(sorted(config.policy.excluded)) or "(none)"
    print(f"include_headers: {included}")
    print(f"exclude_headers: {excluded}")
    print(f"region_map: {len(config.region_map)} entries")
    print(f"tenants: {len(config.tenants)}")
    for key in sorted(config.tenants):
        record = config.tenants[key]
        region = record.region or "(from host)"
        bucket = record.bucket or "(none)"
        print(
            f"  {key}: endpoint={record.endpoint} bucket={bucket} "
            f"region={region} access_key={record.access_key}"
        )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="obj-store-auth",
        description="AWS SigV4 signing for object store requests",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # sign subcommand
    sign_parser = subparsers.add_parser(
        "sign",
        help="Print the Authorization header for a request",
        description="Compute the SigV4 Authorization header for a request",
    )
    sign_parser.add_argument("method", help="HTTP method, e.g. GET")
    sign_parser.add_argument("url", help="Absolute request URL")
    sign_parser.add_argument(
        "-H",
        "--header",
        dest="headers",
        action="append",
        type=_parse_header,
        default=[],
        help="Request header as 'Name: value' (repeatable)",
    )
    sign_parser.add_argument(
        "--tenant",
        help="Sign with this tenant's credentials from the config file",
    )
    sign_parser.add_argument(
        "--config",
        type=Path,
        help="Config file (default: XDG config path)",
    )
    sign_parser.add_argument("--access-key", help="AWS access key ID")
    sign_parser.add_argument("--secret-key", help="AWS secret access key")
    sign_parser.add_argument(
        "--region",
        help="Region for the URL's host (default: resolved from the host)",
    )
    sign_parser.add_argument(
        "--service",
        help="Service name (default: from config, or s3)",
    )
    sign_parser.add_argument(
        "--sign-payload",
        action="store_true",
        help="Sign the empty payload instead of sending UNSIGNED-PAYLOAD",
    )
    sign_parser.add_argument(
        "--time",
        type=_parse_time,
        help="Signing time as YYYYMMDDTHHMMSSZ (default: now)",
    )
    sign_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Also print the canonical request and signing headers",
    )

    # check subcommand
    check_parser = subparsers.add_parser(
        "check",
        help="Validate the config file",
        description="Load the config file and print a summary",
    )
    check_parser.add_argument(
        "--config",
        type=Path,
        help="Config file (default: XDG config path)",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=getattr(logging, args.log_level))

    if args.command == "sign":
        return cmd_sign(args)
    elif args.command == "check":
        return cmd_check(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    sys.exit(main())
