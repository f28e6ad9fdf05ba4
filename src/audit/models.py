from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from dns_audit.errors import ParseError
from dns_audit.names import normalize_address, normalize_name


class AnomalyFlag(str, Enum):
    RESOLVE_NS_NOT_MATCH = "ResolveNsNotMatch"
    RESOLVE_IP_NOT_MATCH = "ResolveIpNotMatch"
    RESOLUTION_FAILED = "ResolutionFailed"


@dataclass(frozen=True)
class Expectation:
    """
    One axis of a DomainSpec.

    present=False means the axis is not checked. present=True with no values
    means the domain is expected to publish nothing on that axis.
    """
    present: bool = False
    values: FrozenSet[str] = frozenset()

    @classmethod
    def absent(cls) -> "Expectation":
        return cls()

    @classmethod
    def of(cls, values: Iterable[str], normalize: Callable[[str], str] = normalize_name) -> "Expectation":
        return cls(present=True, values=frozenset(normalize(v) for v in values))

    def to_list(self) -> Optional[List[str]]:
        return sorted(self.values) if self.present else None


@dataclass(frozen=True)
class DomainSpec:
    domain_name: str
    expected_ns: Expectation = field(default_factory=Expectation.absent)
    expected_ip: Expectation = field(default_factory=Expectation.absent)

    @classmethod
    def create(
        cls,
        domain_name: str,
        ns: Optional[Iterable[str]] = None,
        ip: Optional[Iterable[str]] = None,
    ) -> "DomainSpec":
        """Build a spec from raw values; None means the axis is not checked."""
        expected_ns = Expectation.absent() if ns is None else Expectation.of(ns, normalize_name)
        try:
            expected_ip = Expectation.absent() if ip is None else Expectation.of(ip, normalize_address)
        except ValueError as e:
            raise ParseError(f"{domain_name}: {e}") from e
        return cls(domain_name=domain_name, expected_ns=expected_ns, expected_ip=expected_ip)


@dataclass
class DomainResult:
    domain_name: str
    success: bool = True
    reasons: List[str] = field(default_factory=list)
    flags: List[AnomalyFlag] = field(default_factory=list)
    nameservers: List[str] = field(default_factory=list)
    ips: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain_name": self.domain_name,
            "success": self.success,
            "reason": list(self.reasons),
            "flags": [f.value for f in self.flags],
            "nameservers": list(self.nameservers),
            "ips": list(self.ips),
        }
