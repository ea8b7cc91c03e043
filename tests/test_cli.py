# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the obj-store-auth CLI."""

from collections.abc import Callable
from pathlib import Path

import pytest

from obj_store_auth import __version__
from obj_store_auth.cli import main
from tests.sigv4.vectors import (
    ACCESS_KEY_ID,
    GET_OBJECT_SIGNATURE,
    LIST_OBJECTS_SIGNATURE,
    SCOPE,
    SECRET_ACCESS_KEY,
    SIGNING_TIMESTAMP,
)


WriteConfig = Callable[..., Path]

GET_OBJECT_URL = "https://examplebucket.s3.amazonaws.com/test.txt"

EXPLICIT_KEYS = [
    "--access-key",
    ACCESS_KEY_ID,
    "--secret-key",
    SECRET_ACCESS_KEY,
    "--time",
    SIGNING_TIMESTAMP,
]

TENANT_YAML = f"""\
sign_payload: true
credentials:
  - key: tenant-a
    endpoint: examplebucket.s3.amazonaws.com
    access_key: {ACCESS_KEY_ID}
    secret_key: {SECRET_ACCESS_KEY}
"""


pytestmark = pytest.mark.usefixtures("restore_root_logger")


class TestSign:
    """Tests for the sign subcommand."""

    def test_get_object_example(self, capsys: pytest.CaptureFixture) -> None:
        """The AWS GET object example signs to the documented value."""
        code = main(
            [
                "sign",
                "GET",
                GET_OBJECT_URL,
                "-H",
                "Range: bytes=0-9",
                "--sign-payload",
                *EXPLICIT_KEYS,
            ]
        )

        assert code == 0
        assert capsys.readouterr().out == (
            "AWS4-HMAC-SHA256 "
            f"Credential={ACCESS_KEY_ID}/{SCOPE}, "
            "SignedHeaders=host;range;x-amz-content-sha256;x-amz-date, "
            f"Signature={GET_OBJECT_SIGNATURE}\n"
        )

    def test_list_objects_example(self, capsys: pytest.CaptureFixture) -> None:
        """Query parameters in the URL are signed."""
        code = main(
            [
                "sign",
                "get",
                "https://examplebucket.s3.amazonaws.com/?max-keys=2&prefix=J",
                "--sign-payload",
                *EXPLICIT_KEYS,
            ]
        )

        assert code == 0
        assert capsys.readouterr().out.endswith(
            f"Signature={LIST_OBJECTS_SIGNATURE}\n"
        )

    def test_tenant_from_config(
        self, write_config: WriteConfig, capsys: pytest.CaptureFixture
    ) -> None:
        """--tenant signs with the tenant's configured credentials."""
        path = write_config(TENANT_YAML)

        code = main(
            [
                "sign",
                "GET",
                GET_OBJECT_URL,
                "-H",
                "Range: bytes=0-9",
                "--tenant",
                "tenant-a",
                "--config",
                str(path),
                "--time",
                SIGNING_TIMESTAMP,
            ]
        )

        assert code == 0
        assert capsys.readouterr().out.endswith(
            f"Signature={GET_OBJECT_SIGNATURE}\n"
        )

    def test_unsigned_payload_by_default(
        self, capsys: pytest.CaptureFixture
    ) -> None:
        """Without --sign-payload the payload is UNSIGNED-PAYLOAD."""
        code = main(["sign", "GET", GET_OBJECT_URL, "-v", *EXPLICIT_KEYS])

        assert code == 0
        out = capsys.readouterr().out
        assert "x-amz-content-sha256: UNSIGNED-PAYLOAD\n" in out
        assert out.count("UNSIGNED-PAYLOAD") >= 2

    def test_verbose_output(self, capsys: pytest.CaptureFixture) -> None:
        """-v prints the signing inputs and the canonical request."""
        code = main(
            ["sign", "GET", GET_OBJECT_URL, "--sign-payload", "-v"]
            + EXPLICIT_KEYS
        )

        assert code == 0
        out = capsys.readouterr().out
        assert f"x-amz-date: {SIGNING_TIMESTAMP}\n" in out
        assert "region: us-east-1\n" in out
        assert "Canonical request:\nGET\n/test.txt\n" in out
        assert "host:examplebucket.s3.amazonaws.com\n" in out
        assert SECRET_ACCESS_KEY not in out

    def test_region_override(self, capsys: pytest.CaptureFixture) -> None:
        """--region replaces the region resolved from the host."""
        code = main(
            ["sign", "GET", GET_OBJECT_URL, "--region", "eu-north-1"]
            + EXPLICIT_KEYS
        )

        assert code == 0
        assert "/20130524/eu-north-1/s3/aws4_request, " in (
            capsys.readouterr().out
        )

    def test_service_override(self, capsys: pytest.CaptureFixture) -> None:
        """--service changes the credential scope."""
        code = main(
            ["sign", "GET", GET_OBJECT_URL, "--service", "s3-object-lambda"]
            + EXPLICIT_KEYS
        )

        assert code == 0
        assert "/us-east-1/s3-object-lambda/aws4_request, " in (
            capsys.readouterr().out
        )

    def test_missing_credentials(self, capsys: pytest.CaptureFixture) -> None:
        """Signing needs a tenant or explicit keys."""
        code = main(["sign", "GET", GET_OBJECT_URL])

        assert code == 2
        assert "--tenant" in capsys.readouterr().err

    def test_unknown_tenant(
        self, write_config: WriteConfig, capsys: pytest.CaptureFixture
    ) -> None:
        """An unknown tenant is an error."""
        path = write_config(TENANT_YAML)

        code = main(
            [
                "sign",
                "GET",
                GET_OBJECT_URL,
                "--tenant",
                "tenant-z",
                "--config",
                str(path),
            ]
        )

        assert code == 1
        assert "Unknown tenant: tenant-z" in capsys.readouterr().err

    def test_missing_config(
        self, tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        """A missing config file is an error."""
        code = main(
            [
                "sign",
                "GET",
                GET_OBJECT_URL,
                "--tenant",
                "tenant-a",
                "--config",
                str(tmp_path / "nope.yaml"),
            ]
        )

        assert code == 1
        assert "Config file not found" in capsys.readouterr().err

    @pytest.mark.parametrize(
        "bad_args",
        [
            ["-H", "no-colon"],
            ["-H", ": value"],
            ["--time", "2013-05-24"],
        ],
    )
    def test_bad_arguments(self, bad_args: list[str]) -> None:
        """Malformed headers and times are usage errors."""
        with pytest.raises(SystemExit) as exc_info:
            main(["sign", "GET", GET_OBJECT_URL, *bad_args])
        assert exc_info.value.code == 2


class TestCheck:
    """Tests for the check subcommand."""

    def test_summary(
        self, write_config: WriteConfig, capsys: pytest.CaptureFixture
    ) -> None:
        """The summary lists tenants without secrets."""
        path = write_config(TENANT_YAML)

        code = main(["check", "--config", str(path)])

        assert code == 0
        out = capsys.readouterr().out
        assert "service: s3\n" in out
        assert "sign_payload: true\n" in out
        assert "tenant_header: x-obj-store-tenant\n" in out
        assert "include_headers: (all)\n" in out
        assert "exclude_headers: forwarded, via, x-forwarded-for\n" in out
        assert "tenants: 1\n" in out
        assert "tenant-a: endpoint=examplebucket.s3.amazonaws.com" in out
        assert f"access_key={ACCESS_KEY_ID}" in out
        assert SECRET_ACCESS_KEY not in out

    def test_invalid_config(
        self, write_config: WriteConfig, capsys: pytest.CaptureFixture
    ) -> None:
        """Config errors are reported with exit code 1."""
        path = write_config("sign_payload: maybe\n")

        assert main(["check", "--config", str(path)]) == 1
        assert "Cannot convert" in capsys.readouterr().err


class TestMain:
    """Tests for top-level argument handling."""

    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        """--version prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self) -> None:
        """A subcommand is required."""
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
