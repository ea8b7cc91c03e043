# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS SigV4 request signing for object store proxies.

Subpackages:

- ``obj_store_auth.sigv4``: the signing engine (no I/O)
- ``obj_store_auth.proxy``: mitmproxy addon that signs forwarded requests
"""

__version__ = "0.1.0"
