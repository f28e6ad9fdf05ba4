# conftest.py
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple, Union

import dns.flags
import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset
import pytest

from delegation.query import DNSQuerier, QueryError
from dns_audit.names import normalize_name
from rootzone.index import ZoneIndex, parse

# Two root servers; "a" is dual-stack.
HINTS = """\
; formerly NS.INTERNIC.NET
.                        3600000      NS    A.ROOT-SERVERS.NET.
A.ROOT-SERVERS.NET.      3600000      A     198.41.0.4
A.ROOT-SERVERS.NET.      3600000      AAAA  2001:503:ba3e::2:30
;
.                        3600000      NS    B.ROOT-SERVERS.NET.
B.ROOT-SERVERS.NET.      3600000      A     170.247.170.2
"""

ROOT_A = "198.41.0.4"
ROOT_A6 = "2001:503:ba3e::2:30"
ROOT_B = "170.247.170.2"
GTLD = "192.5.6.30"


# ----------------------------
# Fake wire layer
# ----------------------------
Record = Sequence[str]  # (owner, type, value, value, ...)


def make_response(
    qname: str,
    rdtype: str,
    *,
    aa: bool = False,
    rcode: int = dns.rcode.NOERROR,
    answer: Sequence[Record] = (),
    authority: Sequence[Record] = (),
    additional: Sequence[Record] = (),
) -> dns.message.Message:
    q = dns.message.make_query(qname, rdtype)
    r = dns.message.make_response(q)
    if aa:
        r.flags |= dns.flags.AA
    r.set_rcode(rcode)
    for section, records in ((r.answer, answer), (r.authority, authority), (r.additional, additional)):
        for owner, rtype, *values in records:
            section.append(dns.rrset.from_text(owner, 300, "IN", rtype, *values))
    return r


class FakeQuerier(DNSQuerier):
    """
    DNSQuerier whose network layer is a routing table.

    Routes are keyed by (address, qname, type). An unrouted query behaves like a
    timeout; a routed exception is raised as-is.
    """

    def __init__(self) -> None:
        super().__init__(timeout=0.1)
        self.routes: Dict[Tuple[str, str, str], Union[dns.message.Message, Exception]] = {}
        self.calls: List[Tuple[str, str, str]] = []

    def add(self, address: str, qname: str, rdtype: str, response) -> "FakeQuerier":
        self.routes[(address, normalize_name(qname), rdtype.upper())] = response
        return self

    def _send(self, address, qname, rdtype):
        key = (address, normalize_name(qname), dns.rdatatype.to_text(dns.rdatatype.RdataType.make(rdtype)))
        self.calls.append(key)
        value = self.routes.get(key)
        if value is None:
            raise QueryError(address, qname, rdtype, "TIMEOUT")
        if isinstance(value, Exception):
            raise value
        return value

    def addresses_called(self) -> List[str]:
        return [c[0] for c in self.calls]


def wire_example_com(q: FakeQuerier, root: str = ROOT_A) -> FakeQuerier:
    """root -> com. -> example.com. with glue at every step, two authoritative servers."""
    q.add(root, "example.com.", "NS", make_response(
        "example.com.", "NS",
        authority=[("com.", "NS", "a.gtld-servers.net.")],
        additional=[("a.gtld-servers.net.", "A", GTLD)],
    ))
    q.add(GTLD, "example.com.", "NS", make_response(
        "example.com.", "NS",
        authority=[("example.com.", "NS", "ns1.example.com.", "ns2.example.com.")],
        additional=[("ns1.example.com.", "A", "192.0.2.1"), ("ns2.example.com.", "A", "192.0.2.2")],
    ))
    for auth in ("192.0.2.1", "192.0.2.2"):
        q.add(auth, "example.com.", "NS", make_response(
            "example.com.", "NS", aa=True,
            answer=[("example.com.", "NS", "ns1.example.com.", "ns2.example.com.")],
        ))
        q.add(auth, "example.com.", "A", make_response(
            "example.com.", "A", aa=True, answer=[("example.com.", "A", "93.184.216.34")],
        ))
        q.add(auth, "example.com.", "AAAA", make_response("example.com.", "AAAA", aa=True))
    return q


# ----------------------------
# Fixtures
# ----------------------------
@pytest.fixture
def hints_index() -> ZoneIndex:
    return parse(HINTS, source="hints")


@pytest.fixture
def querier() -> FakeQuerier:
    return FakeQuerier()


@pytest.fixture
def respond():
    return make_response


@pytest.fixture
def example_com():
    return wire_example_com


@pytest.fixture
def hints_file(tmp_path):
    p = tmp_path / "named.root"
    p.write_text(HINTS, encoding="utf-8")
    return p
