"""
Expected vs discovered.

compare() is pure: the same spec and answer always give the same result,
with flags and reasons in a fixed order (nameserver axis, then address axis).
"""

from __future__ import annotations

from typing import FrozenSet, Iterable

from delegation.models import DiscoveredAnswer
from dns_audit.names import normalize_address, normalize_name

from .models import AnomalyFlag, DomainResult, DomainSpec

NS_MISMATCH = "did not return the correct nameservers"
IP_MISMATCH = "did not return the correct ips"
UNRESOLVED = "could not resolve authoritative records"


def compare(spec: DomainSpec, discovered: DiscoveredAnswer) -> DomainResult:
    nameservers = _normalized(discovered.nameservers, normalize_name)
    ips = _normalized(discovered.ips, normalize_address)

    result = DomainResult(
        domain_name=spec.domain_name,
        nameservers=sorted(nameservers),
        ips=sorted(ips),
    )

    if spec.expected_ns.present:
        if not discovered.ns_answered:
            _fail(result, AnomalyFlag.RESOLUTION_FAILED, UNRESOLVED)
        elif nameservers != spec.expected_ns.values:
            _fail(result, AnomalyFlag.RESOLVE_NS_NOT_MATCH, NS_MISMATCH)

    if spec.expected_ip.present:
        if not discovered.ips_answered:
            _fail(result, AnomalyFlag.RESOLUTION_FAILED, UNRESOLVED)
        elif ips != spec.expected_ip.values:
            _fail(result, AnomalyFlag.RESOLVE_IP_NOT_MATCH, IP_MISMATCH)

    return result


def _fail(result: DomainResult, flag: AnomalyFlag, reason: str) -> None:
    result.success = False
    # One ResolutionFailed per result even when both axes were unresolved.
    if flag in result.flags:
        return
    result.flags.append(flag)
    result.reasons.append(reason)


def _normalized(values: Iterable[str], normalize) -> FrozenSet[str]:
    out = set()
    for v in values:
        try:
            out.add(normalize(v))
        except ValueError:
            # Not an address literal; keep it so it still counts as a mismatch.
            out.add(v.strip().lower())
    return frozenset(out)
