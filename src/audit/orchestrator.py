from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Callable, List, Optional, Sequence

from delegation.models import DiscoveredAnswer, ResolutionError
from delegation.resolver import DelegationResolver

from .comparator import compare
from .models import DomainResult, DomainSpec

logger = logging.getLogger(__name__)


class AuditOrchestrator:
    """
    Runs audit passes over a list of domain specs.

    Domains are audited in parallel on a bounded thread pool; results always
    come back in input order. A domain whose resolution fails outright becomes
    a failed result, it never stops the pass.
    """

    def __init__(
        self,
        resolver: DelegationResolver,
        max_workers: int = 1,
        comparator: Callable[[DomainSpec, DiscoveredAnswer], DomainResult] = compare,
    ) -> None:
        self.resolver = resolver
        self.max_workers = max(1, int(max_workers))
        self.comparator = comparator

    def audit(self, spec: DomainSpec) -> DomainResult:
        try:
            discovered = self.resolver.resolve(spec.domain_name)
        except ResolutionError as e:
            logger.warning("%s: %s", spec.domain_name, e)
            discovered = DiscoveredAnswer.failed(str(e))

        result = self.comparator(spec, discovered)
        if not result.success:
            logger.info("%s FAIL: %s", spec.domain_name, "; ".join(result.reasons))
        return result

    def run_once(self, specs: Sequence[DomainSpec]) -> List[DomainResult]:
        if not specs:
            return []

        started = time.perf_counter()
        results: List[Optional[DomainResult]] = [None] * len(specs)

        with concurrent.futures.ThreadPoolExecutor(max_workers=min(self.max_workers, len(specs))) as ex:
            futs = {ex.submit(self.audit, spec): i for i, spec in enumerate(specs)}
            for f in concurrent.futures.as_completed(futs):
                results[futs[f]] = f.result()

        failed = sum(1 for r in results if r is not None and not r.success)
        logger.info(
            "audited %d domains (%d failed) in %d ms",
            len(specs),
            failed,
            int((time.perf_counter() - started) * 1000),
        )
        return [r for r in results if r is not None]

    def watch(
        self,
        specs: Sequence[DomainSpec],
        interval: float,
        emit: Callable[[List[DomainResult]], None],
        sleep: Callable[[float], None] = time.sleep,
        max_passes: Optional[int] = None,
    ) -> List[DomainResult]:
        """
        Repeat run_once() every interval seconds until a pass has a failure.

        emit() receives every pass's results, including the failing one. No
        further pass is scheduled after a failure. Returns the last pass.
        """
        passes = 0
        while True:
            results = self.run_once(specs)
            passes += 1
            emit(results)

            if any(not r.success for r in results):
                logger.warning("pass %d had failures, stopping watch", passes)
                return results
            if max_passes is not None and passes >= max_passes:
                return results

            logger.debug("pass %d clean, next pass in %s seconds", passes, interval)
            sleep(interval)
