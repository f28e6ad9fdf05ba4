"""
Zone file -> root server index.

Only NS, A and AAAA records are used. Everything else a root zone carries
(SOA, DS, RRSIG, NSEC, DNSKEY, ZONEMD, ...) is parsed by dnspython and then
ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from os import PathLike
from typing import Dict, Iterator, List, Optional, Set, Union

import dns.exception
import dns.name
import dns.rdatatype
import dns.zone

from dns_audit.errors import ParseError
from dns_audit.names import normalize_name

from .models import RootServerRecord, ServerIdentity, ZoneDelegation

logger = logging.getLogger(__name__)

# Used when a record has no TTL and the file has no $TTL; the value is irrelevant here.
_DEFAULT_TTL = 3600000


class ZoneIndex(Mapping):
    """Read-only mapping of root server name -> RootServerRecord."""

    def __init__(
        self,
        root_servers: Dict[str, RootServerRecord],
        delegations: Optional[Dict[str, ZoneDelegation]] = None,
    ) -> None:
        self._root_servers = dict(root_servers)
        self.delegations: Dict[str, ZoneDelegation] = dict(delegations or {})

    def __getitem__(self, name: str) -> RootServerRecord:
        return self._root_servers[normalize_name(name)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._root_servers)

    def __len__(self) -> int:
        return len(self._root_servers)

    def identities(self, families=("ipv4", "ipv6")) -> List[ServerIdentity]:
        """Every root server address, in name order."""
        out: List[ServerIdentity] = []
        for name in sorted(self._root_servers):
            out.extend(self._root_servers[name].identities(families))
        return out

    def delegation_for(self, domain: str) -> Optional[ZoneDelegation]:
        """Deepest delegation in the file that covers domain, if any."""
        labels = normalize_name(domain).rstrip(".").split(".")
        for i in range(len(labels)):
            zone = ".".join(labels[i:]) + "."
            if zone in self.delegations:
                return self.delegations[zone]
        return None


def load(path: Union[str, PathLike]) -> ZoneIndex:
    """
    Parse a root zone file.

    Raises:
        OSError: the file cannot be read.
        ParseError: the file is not UTF-8, is not valid zone-file syntax, or lists no root servers.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            text = fh.read()
        except UnicodeDecodeError as e:
            raise ParseError(f"{path}: not a UTF-8 text file: {e}") from e
    return parse(text, source=str(path))


def parse(text: str, source: str = "<zone>") -> ZoneIndex:
    try:
        zone = dns.zone.from_text(
            _with_default_ttl(text),
            origin=dns.name.root,
            relativize=False,
            check_origin=False,
        )
    except (dns.exception.DNSException, ValueError) as e:
        raise ParseError(f"{source}: {e}") from e

    ns_by_owner: Dict[str, List[str]] = {}
    addresses: Dict[str, Dict[str, Set[str]]] = {}

    for name, rdataset in zone.iterate_rdatasets():
        owner = normalize_name(name.to_text())
        if rdataset.rdtype == dns.rdatatype.NS:
            targets = ns_by_owner.setdefault(owner, [])
            for rdata in rdataset:
                target = normalize_name(rdata.target.to_text())
                if target not in targets:
                    targets.append(target)
        elif rdataset.rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
            family = "ipv4" if rdataset.rdtype == dns.rdatatype.A else "ipv6"
            slot = addresses.setdefault(owner, {"ipv4": set(), "ipv6": set()})
            slot[family].update(rdata.address for rdata in rdataset)

    root_servers: Dict[str, RootServerRecord] = {}
    for ns in ns_by_owner.get(".", []):
        glue = addresses.get(ns)
        if not glue or not (glue["ipv4"] or glue["ipv6"]):
            logger.warning("%s: root server %s has no address records, skipping", source, ns)
            continue
        root_servers[ns] = RootServerRecord(
            name=ns,
            ipv4=frozenset(glue["ipv4"]),
            ipv6=frozenset(glue["ipv6"]),
        )

    if not root_servers:
        raise ParseError(f"{source}: no root nameservers with addresses found")

    delegations: Dict[str, ZoneDelegation] = {}
    for owner, targets in ns_by_owner.items():
        if owner == ".":
            continue
        glue_map = {}
        for ns in targets:
            slot = addresses.get(ns)
            if slot:
                glue_map[ns] = tuple(sorted(slot["ipv4"])) + tuple(sorted(slot["ipv6"]))
        delegations[owner] = ZoneDelegation(zone=owner, nameservers=tuple(targets), glue=glue_map)

    logger.info(
        "%s: %d root servers, %d delegations", source, len(root_servers), len(delegations)
    )
    return ZoneIndex(root_servers, delegations)


def _with_default_ttl(text: str) -> str:
    # named.root style files always carry TTLs; this only covers hand-written files.
    if "$TTL" in text:
        return text
    return f"$TTL {_DEFAULT_TTL}\n{text}"
