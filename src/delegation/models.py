from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional

from rootzone.models import ServerIdentity


class ResolutionError(Exception):
    """No server at a required level of the hierarchy could be reached."""

    def __init__(self, stage: str, cause: str) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"resolution failed at {stage}: {cause}")


@dataclass(frozen=True)
class DiscoveredAnswer:
    """
    What the authoritative servers of a domain returned.

    ns_answered / ips_answered are False when no authoritative server produced
    any response for that axis (as opposed to answering with an empty set).
    """
    nameservers: FrozenSet[str] = frozenset()
    ips: FrozenSet[str] = frozenset()
    ns_answered: bool = True
    ips_answered: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "DiscoveredAnswer":
        return cls(ns_answered=False, ips_answered=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nameservers": sorted(self.nameservers),
            "ips": sorted(self.ips),
            "ns_answered": self.ns_answered,
            "ips_answered": self.ips_answered,
            "error": self.error,
        }


@dataclass
class Level:
    """Servers to ask at one step of the walk, best first."""
    zone: str
    servers: List[ServerIdentity]
