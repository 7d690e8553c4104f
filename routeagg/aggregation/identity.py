"""
aggregation/identity.py

Content-derived identity for a RouteKey.

The identity is a version-5 UUID: SHA-1 over a fixed namespace UUID
followed by the UTF-8 bytes of the key's canonical string, with the
version/variant bits patched by uuid.uuid5(). The canonical string is the
five key fields joined by '|' in RouteKey order.

Both the namespace and the join are frozen: identities already persisted
by earlier runs (and by other implementations) must keep matching, which
is what lets independent runs be merged by upsert later on.
"""

from __future__ import annotations

import uuid

from .models import RouteKey

NAMESPACE = uuid.UUID("40689d13-36ac-4216-9c41-f02b007d46c2")
DELIMITER = "|"


def canonical_string(key: RouteKey) -> str:
    """Join the key fields in fixed order: elem_type|prefix|as_path|next_hop|peer_ip."""
    return DELIMITER.join(
        (key.elem_type, key.prefix, key.as_path, key.next_hop, key.peer_ip)
    )


def identity_of(key: RouteKey) -> uuid.UUID:
    """Return the deterministic UUIDv5 for a RouteKey."""
    return uuid.uuid5(NAMESPACE, canonical_string(key))
