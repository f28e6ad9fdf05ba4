from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Tuple

FAMILIES: Tuple[str, ...] = ("ipv4", "ipv6")


@dataclass(frozen=True, order=True)
class ServerIdentity:
    """One nameserver address. A server with two addresses is two identities."""
    name: str
    address: str

    def __str__(self) -> str:
        return f"{self.name} ({self.address})"


@dataclass(frozen=True)
class RootServerRecord:
    name: str
    ipv4: FrozenSet[str] = frozenset()
    ipv6: FrozenSet[str] = frozenset()

    def identities(self, families: Iterable[str] = FAMILIES) -> List[ServerIdentity]:
        out: List[ServerIdentity] = []
        for family in families:
            for address in sorted(getattr(self, family)):
                out.append(ServerIdentity(self.name, address))
        return out


@dataclass(frozen=True)
class ZoneDelegation:
    """
    A delegation from the root found in the zone file (e.g. "com.").

    glue maps nameserver name -> addresses; names without glue are absent.
    """
    zone: str
    nameservers: Tuple[str, ...]
    glue: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def identities(self, families: Iterable[str] = FAMILIES) -> List[ServerIdentity]:
        wanted = set(families)
        out: List[ServerIdentity] = []
        for ns in self.nameservers:
            for address in self.glue.get(ns, ()):
                if (":" in address and "ipv6" in wanted) or (":" not in address and "ipv4" in wanted):
                    out.append(ServerIdentity(ns, address))
        return out
