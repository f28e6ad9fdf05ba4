"""
Runtime settings.

Defaults live on AuditSettings; environment variables override them (this is how
the API process is configured), and the CLI overrides both with its flags.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .errors import ConfigError


@dataclass
class AuditSettings:
    root_zone: Optional[str] = None
    cache_in: Optional[str] = None
    cache_out: Optional[str] = None

    timeout: float = 5.0  # seconds, per query
    threads: int = 1  # domains audited in parallel
    probe_workers: int = 20
    probe_attempts: int = 3
    cache_max_age: float = 86400.0  # seconds before a root measurement is re-probed
    use_ipv6: bool = True
    edns_payload: int = 1232

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AuditSettings":
        env = os.environ if environ is None else environ
        s = cls()

        cache = env.get("DNS_AUDIT_CACHE")
        s.root_zone = env.get("DNS_AUDIT_ROOT_ZONE") or None
        s.cache_in = cache or None
        s.cache_out = cache or None

        s.timeout = _number(env, "DNS_AUDIT_TIMEOUT", s.timeout, float)
        s.threads = _number(env, "DNS_AUDIT_THREADS", s.threads, int)
        s.probe_attempts = _number(env, "DNS_AUDIT_PROBE_ATTEMPTS", s.probe_attempts, int)
        s.cache_max_age = _number(env, "DNS_AUDIT_CACHE_MAX_AGE", s.cache_max_age, float)
        s.use_ipv6 = _flag(env, "DNS_AUDIT_IPV6", s.use_ipv6)
        s.validate()
        return s

    def families(self) -> Tuple[str, ...]:
        return ("ipv4", "ipv6") if self.use_ipv6 else ("ipv4",)

    def validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.threads < 1:
            raise ConfigError("threads must be at least 1")
        if self.probe_attempts < 1:
            raise ConfigError("probe attempts must be at least 1")
        if self.cache_max_age < 0:
            raise ConfigError("cache max age cannot be negative")


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{key}={raw!r} is not a valid number") from e


def _flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
