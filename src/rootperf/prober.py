"""
Root server latency probing.

Each root server address gets a few priming queries (". NS", RD=0). The mean
round-trip time of the attempts that answered is recorded in the cache; an
address where every attempt failed is recorded as unreachable. Nothing here
raises for a slow or dead server: the probe only informs server selection.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Iterable, List, Optional, Tuple

import dns.rdatatype

from delegation.query import DNSQuerier, QueryError
from rootzone.index import ZoneIndex
from rootzone.models import ServerIdentity

from .cache import PerformanceCache

logger = logging.getLogger(__name__)


class RootProber:
    def __init__(
        self,
        querier: Optional[DNSQuerier] = None,
        attempts: int = 3,
        max_workers: int = 20,
        families: Tuple[str, ...] = ("ipv4", "ipv6"),
        max_age: float = 86400.0,
    ) -> None:
        self.querier = querier or DNSQuerier()
        self.attempts = max(1, int(attempts))
        self.max_workers = max(1, int(max_workers))
        self.families = tuple(families)
        self.max_age = float(max_age)

    def probe(self, index: ZoneIndex, cache: PerformanceCache, force: bool = False) -> int:
        """
        Measure every root server address that has no fresh cache entry.

        Args:
            index: Root servers to measure.
            cache: Receives one record() per measured address.
            force: Re-measure addresses even if their entry is fresh.

        Returns:
            Number of addresses measured.
        """
        jobs = self._jobs(index.identities(self.families), cache, force)
        if not jobs:
            logger.info("all %d root server addresses are fresh in the cache", len(cache))
            return 0

        logger.info("probing %d root server addresses", len(jobs))
        started = time.perf_counter()

        with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(jobs))) as ex:
            futs = [ex.submit(self._probe_one, identity, cache) for identity in jobs]
            for f in concurrent.futures.as_completed(futs):
                f.result()

        logger.info("root probe finished in %d ms", int((time.perf_counter() - started) * 1000))
        return len(jobs)

    def _jobs(self, identities: Iterable[ServerIdentity], cache: PerformanceCache, force: bool) -> List[ServerIdentity]:
        if force:
            return list(identities)
        return [i for i in identities if not cache.is_fresh(i, self.max_age)]

    def _probe_one(self, identity: ServerIdentity, cache: PerformanceCache) -> None:
        latency = self.measure(identity)
        cache.record(identity, latency)
        if latency is None:
            logger.info("root server %s did not answer", identity)
        else:
            logger.debug("root server %s answered in %.1f ms", identity, latency)

    def measure(self, identity: ServerIdentity) -> Optional[float]:
        """Mean latency in ms over the attempts that answered, or None if none did."""
        samples: List[float] = []
        for _ in range(self.attempts):
            try:
                _, elapsed = self.querier.timed_query(identity.address, ".", dns.rdatatype.NS)
            except QueryError as e:
                logger.debug("probe failed: %s", e)
                continue
            samples.append(elapsed)
        if not samples:
            return None
        return sum(samples) / len(samples)
