"""
Delegation walking.

DelegationResolver starts at the root servers, follows referrals down to the
servers authoritative for a domain and asks them for NS, A and AAAA records.
All queries are non-recursive; no recursive resolver is trusted.

Public entrypoint: DelegationResolver
"""

from .models import DiscoveredAnswer, ResolutionError
from .query import DNSQuerier, QueryError
from .resolver import DelegationResolver

__all__ = ["DelegationResolver", "DiscoveredAnswer", "ResolutionError", "DNSQuerier", "QueryError"]
