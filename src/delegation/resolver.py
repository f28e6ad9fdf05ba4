from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Set, Tuple

import dns.flags
import dns.message
import dns.name
import dns.rcode
import dns.rdatatype
import dns.rrset

from dns_audit.names import address_family, normalize_address, normalize_name
from rootperf.cache import PerformanceCache
from rootzone.index import ZoneIndex
from rootzone.models import ServerIdentity

from .models import DiscoveredAnswer, Level, ResolutionError
from .query import DNSQuerier, QueryError

logger = logging.getLogger(__name__)

_ADDRESS_TYPES = (dns.rdatatype.A, dns.rdatatype.AAAA)


class DelegationResolver:
    """
    Walk the delegation chain for a domain and collect what its authoritative
    servers publish.

    The walk is a loop over levels. Each level is a ranked list of server
    addresses for one zone; a referral replaces the level with the servers of
    the child zone. A level fails only when every one of its servers times
    out, errors, or gives a lame answer.
    """

    def __init__(
        self,
        index: ZoneIndex,
        cache: PerformanceCache,
        querier: Optional[DNSQuerier] = None,
        families: Tuple[str, ...] = ("ipv4", "ipv6"),
        use_zone_delegations: bool = True,
        max_steps: int = 16,
        max_glue_depth: int = 2,
    ) -> None:
        self.index = index
        self.cache = cache
        self.querier = querier or DNSQuerier()
        self.families = tuple(families)
        self.use_zone_delegations = bool(use_zone_delegations)
        self.max_steps = int(max_steps)
        self.max_glue_depth = int(max_glue_depth)

    # ----------------------------
    # Public entrypoint
    # ----------------------------

    def resolve(self, domain: str, want_ns: bool = True, want_addresses: bool = True) -> DiscoveredAnswer:
        """
        Find the servers authoritative for domain and ask each of them for NS, A
        and AAAA records. Answers from all servers are merged.

        want_ns / want_addresses turn off the NS or A/AAAA queries; a skipped
        axis comes back empty and unanswered.

        Raises:
            ResolutionError: every server at some required level was unreachable.
        """
        qname = normalize_name(domain)
        started = time.perf_counter()

        authority = self._walk(qname, depth=0)
        logger.debug(
            "%s: authority is %s (%d addresses)", qname, authority.zone, len(authority.servers)
        )
        wanted: List[dns.rdatatype.RdataType] = []
        if want_ns:
            wanted.append(dns.rdatatype.NS)
        if want_addresses:
            wanted.extend(_ADDRESS_TYPES)
        answer = self._collect(qname, authority, wanted)

        logger.info(
            "%s: %d nameservers, %d addresses in %d ms",
            qname,
            len(answer.nameservers),
            len(answer.ips),
            int((time.perf_counter() - started) * 1000),
        )
        return answer

    # ----------------------------
    # Delegation walk
    # ----------------------------

    def _walk(self, qname: str, depth: int) -> Level:
        level = self._start_level(qname)
        for _ in range(self.max_steps):
            level, done = self._step(level, qname, depth)
            if done:
                return level
        raise ResolutionError(level.zone, "referral loop")

    def _start_level(self, qname: str) -> Level:
        if self.use_zone_delegations:
            delegation = self.index.delegation_for(qname)
            if delegation is not None:
                servers = delegation.identities(self.families)
                if servers:
                    return Level(zone=delegation.zone, servers=self.cache.ranked(servers))

        servers = self.index.identities(self.families)
        if not servers:
            raise ResolutionError(".", "no root server addresses for the enabled address families")
        return Level(zone=".", servers=self.cache.ranked(servers))

    def _step(self, level: Level, qname: str, depth: int) -> Tuple[Level, bool]:
        """
        Ask the servers of one level, best first, until one gives a usable answer.

        Returns (next level, done). done is True when next level is the set of
        servers authoritative for qname.
        """
        target = dns.name.from_text(qname)
        zone = dns.name.from_text(level.zone)
        last_error = "no servers to ask"

        for server in level.servers:
            try:
                response = self.querier.query(server.address, qname, dns.rdatatype.NS)
            except QueryError as e:
                logger.debug("%s: %s", qname, e)
                last_error = str(e)
                continue

            # The server answers for qname itself: NS answer, NODATA or NXDOMAIN.
            if response.flags & dns.flags.AA:
                answered_zone = qname if _ns_rrset(response, target) is not None else level.zone
                return Level(zone=answered_zone, servers=level.servers), True

            referral = _referral(response, target, zone)
            if referral is None:
                last_error = f"lame answer from {server} for {qname}"
                logger.debug("%s: %s", qname, last_error)
                continue

            child = normalize_name(referral.name.to_text())
            servers = self._referred_servers(referral, response, server, depth)
            if not servers:
                last_error = f"{server} referred to {child} but no delegated nameserver has an address"
                logger.debug("%s: %s", qname, last_error)
                continue

            logger.debug("%s: %s refers to %s", qname, server, child)
            return Level(zone=child, servers=self.cache.ranked(servers)), child == qname

        raise ResolutionError(level.zone, last_error)

    def _referred_servers(
        self,
        referral: dns.rrset.RRset,
        response: dns.message.Message,
        contacted: ServerIdentity,
        depth: int,
    ) -> List[ServerIdentity]:
        glue = self._glue(response)
        servers: List[ServerIdentity] = []
        for rdata in referral:
            name = normalize_name(rdata.target.to_text())
            addresses = glue.get(name) or self._glueless(name, contacted, depth)
            for address in addresses:
                identity = ServerIdentity(name, address)
                if identity not in servers:
                    servers.append(identity)
        return servers

    def _glue(self, response: dns.message.Message) -> Dict[str, List[str]]:
        glue: Dict[str, List[str]] = {}
        for rrset in response.additional:
            if rrset.rdtype not in _ADDRESS_TYPES:
                continue
            name = normalize_name(rrset.name.to_text())
            for rdata in rrset:
                address = normalize_address(rdata.address)
                if address_family(address) in self.families:
                    glue.setdefault(name, []).append(address)
        return glue

    def _glueless(self, name: str, contacted: ServerIdentity, depth: int) -> List[str]:
        """Addresses for a nameserver the referral carried no glue for."""
        addresses = self._ask_addresses(contacted, name)
        if addresses:
            return addresses
        if depth >= self.max_glue_depth:
            logger.info("not resolving %s: glue lookup depth %d reached", name, depth)
            return []
        try:
            authority = self._walk(name, depth + 1)
        except ResolutionError as e:
            logger.info("could not resolve nameserver %s: %s", name, e)
            return []
        for server in authority.servers:
            addresses = self._ask_addresses(server, name)
            if addresses:
                return addresses
        return []

    def _ask_addresses(self, server: ServerIdentity, name: str) -> List[str]:
        """A/AAAA records for name from one server's answer section, for the enabled families."""
        found: List[str] = []
        wanted = [t for t in _ADDRESS_TYPES if _family_of(t) in self.families]
        for rdtype in wanted:
            try:
                response = self.querier.query(server.address, name, rdtype)
            except QueryError as e:
                logger.debug("%s: %s", name, e)
                continue
            for address in _addresses(response):
                if address not in found:
                    found.append(address)
        return found

    # ----------------------------
    # Authoritative collection
    # ----------------------------

    def _collect(self, qname: str, authority: Level, wanted: List[dns.rdatatype.RdataType]) -> DiscoveredAnswer:
        """
        Ask every authoritative server name (one address each, next address on
        failure) for each wanted type. Disagreeing servers are merged by union.
        """
        by_name: Dict[str, List[ServerIdentity]] = {}
        for server in authority.servers:
            by_name.setdefault(server.name, []).append(server)

        target = dns.name.from_text(qname)
        nameservers: Set[str] = set()
        ips: Set[str] = set()
        answered = {rdtype: False for rdtype in wanted}
        last_error = "no authoritative servers"

        for name, servers in by_name.items():
            for rdtype in answered:
                response, error = self._authoritative_answer(servers, qname, rdtype)
                if response is None:
                    last_error = error or last_error
                    continue
                answered[rdtype] = True
                if rdtype == dns.rdatatype.NS:
                    ns = _ns_rrset(response, target)
                    if ns is not None:
                        nameservers.update(normalize_name(r.target.to_text()) for r in ns)
                else:
                    ips.update(_addresses(response, rdtype))

        if answered and not any(answered.values()):
            raise ResolutionError("authoritative", last_error)

        return DiscoveredAnswer(
            nameservers=frozenset(nameservers),
            ips=frozenset(ips),
            ns_answered=answered.get(dns.rdatatype.NS, False),
            ips_answered=answered.get(dns.rdatatype.A, False) or answered.get(dns.rdatatype.AAAA, False),
        )

    def _authoritative_answer(
        self, servers: List[ServerIdentity], qname: str, rdtype: dns.rdatatype.RdataType
    ) -> Tuple[Optional[dns.message.Message], Optional[str]]:
        error: Optional[str] = None
        for server in servers:
            try:
                response = self.querier.query(server.address, qname, rdtype)
            except QueryError as e:
                error = str(e)
                logger.debug("%s: %s", qname, e)
                continue
            if not response.flags & dns.flags.AA:
                error = f"{server} is not authoritative for {qname}"
                logger.debug("%s: %s", qname, error)
                continue
            return response, None
        return None, error


# ----------------------------
# Response helpers
# ----------------------------


def _ns_rrset(response: dns.message.Message, target: dns.name.Name) -> Optional[dns.rrset.RRset]:
    for rrset in response.answer:
        if rrset.rdtype == dns.rdatatype.NS and rrset.name == target:
            return rrset
    return None


def _referral(
    response: dns.message.Message, target: dns.name.Name, zone: dns.name.Name
) -> Optional[dns.rrset.RRset]:
    """The authority-section NS set of a zone strictly below zone that contains target."""
    if response.rcode() != dns.rcode.NOERROR:
        return None
    for rrset in response.authority:
        if rrset.rdtype != dns.rdatatype.NS:
            continue
        child = rrset.name
        if child != zone and child.is_subdomain(zone) and target.is_subdomain(child):
            return rrset
    return None


def _addresses(response: dns.message.Message, rdtype: Optional[dns.rdatatype.RdataType] = None) -> List[str]:
    out: List[str] = []
    for rrset in response.answer:
        if rrset.rdtype not in _ADDRESS_TYPES or (rdtype is not None and rrset.rdtype != rdtype):
            continue
        for rdata in rrset:
            address = normalize_address(rdata.address)
            if address not in out:
                out.append(address)
    return out


def _family_of(rdtype: dns.rdatatype.RdataType) -> str:
    return "ipv6" if rdtype == dns.rdatatype.AAAA else "ipv4"
