"""
tests/test_identity.py

Tests for aggregation/identity.py — canonical string and UUIDv5 identity.
"""

from __future__ import annotations

import hashlib
import uuid

from routeagg.aggregation.identity import NAMESPACE, canonical_string, identity_of
from routeagg.aggregation.models import RouteKey

KEY = RouteKey("ANNOUNCE", "10.0.0.0/24", "100 200", "1.1.1.1", "2.2.2.2")


class TestCanonicalString:

    def test_pipe_joined_in_field_order(self):
        assert canonical_string(KEY) == "ANNOUNCE|10.0.0.0/24|100 200|1.1.1.1|2.2.2.2"

    def test_empty_fields_keep_delimiters(self):
        key = RouteKey("WITHDRAW", "10.0.0.0/24", "", "", "2.2.2.2")
        assert canonical_string(key) == "WITHDRAW|10.0.0.0/24|||2.2.2.2"


class TestIdentityOf:

    def test_namespace_is_fixed(self):
        assert NAMESPACE == uuid.UUID("40689d13-36ac-4216-9c41-f02b007d46c2")

    def test_is_version_5(self):
        assert identity_of(KEY).version == 5

    def test_stable_across_calls(self):
        assert identity_of(KEY) == identity_of(RouteKey(*KEY))

    def test_matches_sha1_construction(self):
        """SHA-1(namespace bytes + UTF-8 name), version/variant bits patched."""
        digest = bytearray(
            hashlib.sha1(NAMESPACE.bytes + canonical_string(KEY).encode("utf-8")).digest()[:16]
        )
        digest[6] = (digest[6] & 0x0F) | 0x50
        digest[8] = (digest[8] & 0x3F) | 0x80
        assert identity_of(KEY) == uuid.UUID(bytes=bytes(digest))

    def test_field_order_matters(self):
        swapped = RouteKey("ANNOUNCE", "10.0.0.0/24", "100 200", "2.2.2.2", "1.1.1.1")
        assert identity_of(swapped) != identity_of(KEY)

    def test_elem_type_matters(self):
        withdraw = KEY._replace(elem_type="WITHDRAW")
        assert identity_of(withdraw) != identity_of(KEY)
