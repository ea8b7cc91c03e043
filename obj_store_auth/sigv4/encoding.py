# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""URI encoding and whitespace helpers for SigV4 canonicalization.

AWS uses its own subset of RFC 3986 percent-encoding.  Request paths and
query strings may reach the proxy either raw or already encoded, so
``canonical_encode`` first guesses which one it was handed and only
encodes raw input.
"""

from __future__ import annotations

import re


_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Matches C isspace() in the "C" locale
_WHITESPACE = " \t\n\v\f\r"
_WHITESPACE_RUN_RE = re.compile(r"[ \t\n\v\f\r]+")


def to_bytes(value: str) -> bytes:
    """Encode as UTF-8, restoring bytes that were decoded with
    ``surrogateescape``.  Any other lone surrogate is passed through."""
    try:
        return value.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        return value.encode("utf-8", "surrogatepass")


def uri_encode(value: str, *, is_object_name: bool = False) -> str:
    """URI-encode a value using AWS's rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - Space and ``+`` both become ``%20`` (never ``+`` or ``%2B``)
    - ``/`` is preserved in object names and encoded everywhere else
    - Every other byte of the UTF-8 encoding becomes ``%XX`` (uppercase)

    Args:
        value: String to encode.
        is_object_name: If True, keep ``/`` as is.

    Returns:
        URI-encoded string.
    """
    result: list[str] = []
    for byte in to_bytes(value):
        ch = chr(byte)
        if ch in _AWS_UNRESERVED:
            result.append(ch)
        elif ch == " " or ch == "+":
            result.append("%20")
        elif ch == "/" and is_object_name:
            result.append("/")
        else:
            result.append(f"%{byte:02X}")
    return "".join(result)


def is_uri_encoded(value: str, *, is_object_name: bool = False) -> bool:
    """Guess whether *value* is already URI-encoded.

    Scans left to right.  A literal space, or a ``/`` outside of object
    names, means the string was not encoded.  The first ``%`` decides:
    followed by two hex digits it means encoded, otherwise a lone ``%``
    would have been written as ``%25`` so the string is not encoded.
    A string without any of these markers counts as not encoded.

    Args:
        value: String to check.
        is_object_name: If True, an unencoded ``/`` is expected.

    Returns:
        True if the string looks encoded.
    """
    length = len(value)
    for pos, ch in enumerate(value):
        if ch in _AWS_UNRESERVED:
            continue
        if ch == " ":
            return False
        if ch == "/" and not is_object_name:
            return False
        if ch == "%":
            return (
                pos + 2 < length
                and value[pos + 1] in _HEX_DIGITS
                and value[pos + 2] in _HEX_DIGITS
            )
    return False


def canonical_encode(value: str, *, is_object_name: bool = False) -> str:
    """Encode *value* unless it already looks encoded."""
    if is_uri_encoded(value, is_object_name=is_object_name):
        return value
    return uri_encode(value, is_object_name=is_object_name)


def trim_whitespace(value: str) -> str:
    """Strip leading and trailing whitespace."""
    return value.strip(_WHITESPACE)


def squeeze_whitespace(value: str) -> str:
    """Trim *value* and collapse interior whitespace runs to one space.

    This is the header value normalization SigV4 requires before a value
    goes into the canonical headers block.
    """
    return _WHITESPACE_RUN_RE.sub(" ", trim_whitespace(value))
