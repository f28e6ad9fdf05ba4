from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from audit.orchestrator import AuditOrchestrator
from delegation.query import DNSQuerier
from delegation.resolver import DelegationResolver
from rootperf.cache import PerformanceCache
from rootperf.prober import RootProber
from rootzone.index import ZoneIndex, load

from .config import AuditSettings
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class AuditEngine:
    """Everything one audit process needs, wired from AuditSettings."""

    settings: AuditSettings
    index: ZoneIndex
    cache: PerformanceCache
    prober: RootProber
    resolver: DelegationResolver
    orchestrator: AuditOrchestrator

    def probe(self, force: bool = False) -> int:
        return self.prober.probe(self.index, self.cache, force=force)

    def save_cache(self, path: Optional[str] = None) -> None:
        target = path or self.settings.cache_out
        if target:
            self.cache.save(target)


def build_engine(settings: AuditSettings, querier: Optional[DNSQuerier] = None) -> AuditEngine:
    """
    Load the root zone and the performance cache and wire the components.

    Raises:
        ConfigError: no root zone configured.
        ParseError: zone or cache file is malformed.
        OSError: zone or cache file cannot be read.
    """
    if not settings.root_zone:
        raise ConfigError("a root zone file is required")

    index = load(settings.root_zone)
    cache = PerformanceCache.load(settings.cache_in) if settings.cache_in else PerformanceCache()
    querier = querier or DNSQuerier(timeout=settings.timeout, edns_payload=settings.edns_payload)
    families = settings.families()

    prober = RootProber(
        querier=querier,
        attempts=settings.probe_attempts,
        max_workers=settings.probe_workers,
        families=families,
        max_age=settings.cache_max_age,
    )
    resolver = DelegationResolver(index=index, cache=cache, querier=querier, families=families)
    orchestrator = AuditOrchestrator(resolver=resolver, max_workers=settings.threads)

    return AuditEngine(
        settings=settings,
        index=index,
        cache=cache,
        prober=prober,
        resolver=resolver,
        orchestrator=orchestrator,
    )
