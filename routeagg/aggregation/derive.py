"""
aggregation/derive.py

Fields derived from the canonical key when a sink asks for them:
  asn               — origin AS, the last AS number of the path
  start_ip / end_ip — integer network / broadcast bounds of the prefix,
                      as decimal strings (IPv4 and IPv6)
"""

from __future__ import annotations

import ipaddress
import logging
from functools import lru_cache

logger = logging.getLogger(__name__)


def origin_asn(as_path: str) -> str:
    """
    Return the last AS token of a space-separated path.

    An AS_SET at the end ('{64500,64501}') is returned verbatim since it has
    no single origin. Empty path → ''.
    """
    tokens = as_path.split()
    return tokens[-1] if tokens else ""


@lru_cache(maxsize=65_536)
def prefix_bounds(prefix: str) -> tuple[str, str]:
    """
    Return (start_ip, end_ip) as decimal integer strings.

    Host bits are ignored (strict=False). An unparseable prefix yields
    ('', '') rather than an error; the prefix itself is still reported.
    """
    try:
        net = ipaddress.ip_network(prefix, strict=False)
    except ValueError:
        logger.debug("prefix_bounds: not a network: %r", prefix)
        return "", ""
    return str(int(net.network_address)), str(int(net.broadcast_address))
