from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from os import PathLike
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from dns_audit.errors import ParseError
from dns_audit.names import normalize_address, normalize_name
from rootzone.models import ServerIdentity

logger = logging.getLogger(__name__)

# Ranking buckets: measured and reachable < never measured < measured unreachable.
_REACHABLE, _UNKNOWN, _UNREACHABLE = 0, 1, 2


@dataclass(frozen=True)
class ServerPerformance:
    identity: ServerIdentity
    latency_ms: Optional[float]  # None: did not answer
    measured_at: datetime

    @property
    def reachable(self) -> bool:
        return self.latency_ms is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_name": self.identity.name,
            "address": self.identity.address,
            "latency_ms": None if self.latency_ms is None else round(self.latency_ms, 3),
            "measured_at": self.measured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: Any) -> "ServerPerformance":
        if not isinstance(d, dict):
            raise ParseError(f"cache entry must be an object, got {type(d).__name__}")
        try:
            identity = ServerIdentity(
                name=normalize_name(str(d["server_name"])),
                address=normalize_address(str(d["address"])),
            )
            latency = d.get("latency_ms")
            if latency is not None:
                latency = float(latency)
            measured_at = _parse_time(str(d["measured_at"]))
        except KeyError as e:
            raise ParseError(f"cache entry is missing {e}") from e
        except (TypeError, ValueError) as e:
            raise ParseError(f"invalid cache entry {d!r}: {e}") from e
        return cls(identity=identity, latency_ms=latency, measured_at=measured_at)


class PerformanceCache:
    """
    Last known latency per server address.

    All access goes through one lock, so prober threads can record while
    resolver threads rank. Entries are never evicted; the table only ever
    holds the root server addresses this process has measured.
    """

    def __init__(self, entries: Iterable[ServerPerformance] = ()) -> None:
        self._lock = threading.RLock()
        self._entries: Dict[ServerIdentity, ServerPerformance] = {}
        for e in entries:
            self._upsert(e)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ----------------------------
    # Writes
    # ----------------------------

    def record(
        self,
        identity: ServerIdentity,
        latency_ms: Optional[float],
        measured_at: Optional[datetime] = None,
    ) -> ServerPerformance:
        """Store a measurement. A measurement older than the stored one is ignored."""
        entry = ServerPerformance(
            identity=identity,
            latency_ms=None if latency_ms is None else float(latency_ms),
            measured_at=_as_utc(measured_at or datetime.now(timezone.utc)),
        )
        return self._upsert(entry)

    def _upsert(self, entry: ServerPerformance) -> ServerPerformance:
        with self._lock:
            current = self._entries.get(entry.identity)
            if current is not None and current.measured_at > entry.measured_at:
                logger.debug("ignoring stale measurement for %s", entry.identity)
                return current
            self._entries[entry.identity] = entry
            return entry

    # ----------------------------
    # Reads
    # ----------------------------

    def get(self, identity: ServerIdentity) -> Optional[ServerPerformance]:
        with self._lock:
            return self._entries.get(identity)

    def entries(self) -> List[ServerPerformance]:
        """Snapshot of all entries, best first."""
        with self._lock:
            snapshot = dict(self._entries)
        return sorted(snapshot.values(), key=lambda e: (_rank_key(e), e.identity.name, e.identity.address))

    def is_fresh(self, identity: ServerIdentity, max_age: float, now: Optional[datetime] = None) -> bool:
        entry = self.get(identity)
        if entry is None:
            return False
        now = _as_utc(now or datetime.now(timezone.utc))
        return now - entry.measured_at <= timedelta(seconds=max_age)

    def ranked(self, candidates: Iterable[ServerIdentity]) -> List[ServerIdentity]:
        """
        Candidates in preference order: lowest latency first, then servers never
        measured, then servers that failed their last measurement.

        Sequences keep their order among equal keys; unordered collections are
        put in name/address order first so the result is deterministic.
        """
        if isinstance(candidates, Sequence):
            ordered = list(candidates)
        else:
            ordered = sorted(candidates, key=lambda i: (i.name, i.address))
        with self._lock:
            snapshot = {i: self._entries.get(i) for i in ordered}
        return sorted(ordered, key=lambda i: _rank_key(snapshot[i]))

    def best_for(self, candidates: Iterable[ServerIdentity]) -> ServerIdentity:
        """Best candidate; equal keys go to the lowest name, then address."""
        ranked = self.ranked(sorted(candidates, key=lambda i: (i.name, i.address)))
        if not ranked:
            raise ValueError("best_for() needs at least one candidate")
        return ranked[0]

    # ----------------------------
    # Persistence
    # ----------------------------

    def to_json(self) -> str:
        return json.dumps([e.to_dict() for e in self.entries()], indent=2)

    @classmethod
    def from_json(cls, text: str, source: str = "<cache>") -> "PerformanceCache":
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"{source}: invalid JSON: {e}") from e
        if not isinstance(raw, list):
            raise ParseError(f"{source}: expected a JSON list of cache entries")
        return cls(ServerPerformance.from_dict(d) for d in raw)

    def save(self, path: Union[str, PathLike]) -> None:
        data = self.to_json()
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(data)
            fh.write("\n")
        logger.info("wrote %d cache entries to %s", len(self), path)

    @classmethod
    def load(cls, path: Union[str, PathLike], missing_ok: bool = True) -> "PerformanceCache":
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError:
            if not missing_ok:
                raise
            logger.info("cache file %s does not exist, starting empty", path)
            return cls()
        except UnicodeDecodeError as e:
            raise ParseError(f"{path}: not a UTF-8 text file: {e}") from e
        cache = cls.from_json(text, source=str(path))
        logger.info("loaded %d cache entries from %s", len(cache), path)
        return cache


def _rank_key(entry: Optional[ServerPerformance]) -> Tuple[int, float]:
    if entry is None:
        return (_UNKNOWN, 0.0)
    if entry.latency_ms is None:
        return (_UNREACHABLE, 0.0)
    return (_REACHABLE, entry.latency_ms)


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _parse_time(raw: str) -> datetime:
    # fromisoformat() only accepts a trailing "Z" on newer interpreters
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(raw))
