# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Host name to AWS region resolution.

S3 endpoint names are not consistent enough to parse the region out of
them, so the region comes from a lookup table keyed by host name or host
suffix.  The empty key is the fallback region.

See https://docs.aws.amazon.com/general/latest/gr/s3.html
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType


_DEFAULT_REGION = "us-east-1"

# Regions served by the s3.<region>, s3-<region> and s3.dualstack.<region>
# endpoint families.
_STANDARD_REGIONS = (
    "us-east-2",
    "us-east-1",
    "us-west-1",
    "us-west-2",
    "ap-south-1",
    "ap-northeast-3",
    "ap-northeast-2",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-northeast-1",
    "ca-central-1",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-west-3",
    "sa-east-1",
)


def _build_default_region_map() -> dict[str, str]:
    region_map: dict[str, str] = {}
    for region in _STANDARD_REGIONS:
        region_map[f"s3.{region}.amazonaws.com"] = region
        region_map[f"s3.dualstack.{region}.amazonaws.com"] = region
        if region != "us-east-1":
            region_map[f"s3-{region}.amazonaws.com"] = region

    # us-east-1 legacy global endpoints
    region_map["s3.amazonaws.com"] = "us-east-1"
    region_map["s3-external-1.amazonaws.com"] = "us-east-1"

    region_map["s3.cn-north-1.amazonaws.com.cn"] = "cn-north-1"
    region_map["s3.cn-northwest-1.amazonaws.com.cn"] = "cn-northwest-1"

    region_map[""] = _DEFAULT_REGION
    return region_map


DEFAULT_REGION_MAP: Mapping[str, str] = MappingProxyType(
    _build_default_region_map()
)


def resolve_region(region_map: Mapping[str, str], host: str) -> str:
    """Find the region for *host*.

    Tries the suffixes of *host* from the shortest to the longest
    (``com``, ``amazonaws.com``, ``s3.amazonaws.com``, ...) and returns
    the first one found in *region_map*.  A virtual-hosted bucket name in
    front of a known endpoint therefore resolves to the endpoint's region.

    Args:
        region_map: Host or host suffix to region mapping.
        host: Request host name.

    Returns:
        The matching region, the ``""`` entry when nothing matches, or an
        empty string when the map has no ``""`` entry either.
    """
    region = ""
    end = len(host)
    while True:
        dot = host.rfind(".", 0, end)
        suffix = host[dot + 1 :] if dot != -1 else host
        if suffix in region_map:
            region = region_map[suffix]
            break
        if dot == -1:
            break
        end = dot

    # An entry mapped to "" also falls back to the default region
    return region or region_map.get("", "")
