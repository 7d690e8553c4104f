"""
aggregation/__init__.py

Public API for the aggregation sub-package.
"""

from .aggregator import Aggregator, merge_runs
from .identity import NAMESPACE, canonical_string, identity_of
from .models import AggregateRow, RouteKey, make_route_key
from .tracker import RouteTracker

__all__ = [
    "Aggregator",
    "RouteTracker",
    "RouteKey",
    "AggregateRow",
    "make_route_key",
    "identity_of",
    "canonical_string",
    "NAMESPACE",
    "merge_runs",
]
